class XlsxWriteError(Exception):
    """Base class for errors raised while generating an XLSX document."""


class LayoutViolation(XlsxWriteError, ValueError):
    """The cursor/merge contract of a sheet writer was broken by the caller.

    Raised for invalid cell dimensions, merged regions that overlap an earlier
    region, cells outside the Excel grid, and writes to a closed sheet.
    """


class SheetNameError(XlsxWriteError, ValueError):
    """A sheet name is already used in the same document."""


class StyleSpecError(XlsxWriteError, ValueError):
    """A style specification holds a key or value that cannot be translated."""


class FinalizationError(XlsxWriteError):
    """Serializing the document failed, or the document was already finalized."""


class ResourceExhaustion(XlsxWriteError, MemoryError):
    """The process ran out of memory while building the document.

    Usually means a large sheet was written in buffered mode; use
    ``SpecXlsxWriteOptions(if_streaming=True)`` instead.
    """
