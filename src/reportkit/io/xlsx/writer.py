import logging
import os
import shutil
import tempfile
import threading
import uuid
from pathlib import Path
from types import TracebackType
from typing import IO, Any

import xlsxwriter
import xlsxwriter.exceptions

from .errors import FinalizationError, ResourceExhaustion, SheetNameError
from .sheet import SheetWriter
from .spec import SpecXlsxReport, SpecXlsxWriteOptions
from .style import StyleCache
from .util import force_extension, sanitize_sheet_name

logger = logging.getLogger(__name__)

_EXC_SERIALIZATION = (OSError, xlsxwriter.exceptions.XlsxWriterException)


class XlsxWriter:
    """
    Document-level writer: owns one ``xlsxwriter.Workbook``, hands out
    :class:`SheetWriter` objects and serializes the document on :meth:`close`.

    The document is finalized exactly once. Used as a context manager, a clean
    exit calls :meth:`close` and an exception calls :meth:`discard`, so temp
    storage is released either way::

        from reportkit.io.xlsx import XlsxWriter

        with XlsxWriter("report.xlsx") as xw:
            sw = xw.create_sheet("Data")
            sw.write("Hello").write("World")

    Parameters
    ----------
    file_out:
        Destination path (``.xlsx`` is appended when missing) or a writable
        binary stream owned by the caller.
    options:
        Write options. ``options.if_streaming`` (default ``True``) uses
        xlsxwriter's ``constant_memory`` mode, which keeps one row per sheet in
        memory and is much faster for large sheets; ``False`` buffers the whole
        document until :meth:`close`.
    if_close_stream:
        Close ``file_out`` after writing when it is a stream. Ignored for paths
        (the writer always owns the files it opens).
    """

    def __init__(
        self,
        file_out: os.PathLike[str] | str | IO[bytes],
        *,
        options: SpecXlsxWriteOptions | None = None,
        if_close_stream: bool = False,
    ):
        self.options = SpecXlsxWriteOptions() if options is None else options
        self.file_out: Path | None = None
        self._stream: IO[bytes] | None = None
        self._if_close_stream = if_close_stream
        self._path_tmp: Path | None = None
        self._file_tmp: IO[bytes] | None = None

        if isinstance(file_out, (str, os.PathLike)):
            self.file_out = force_extension(file_out)
            if not self.file_out.parent.is_dir():
                raise FinalizationError(
                    f"Output directory does not exist: {self.file_out.parent}"
                )
            # Written next to the destination, then moved into place on success.
            self._path_tmp = self.file_out.with_name(
                f".{self.file_out.stem}.{uuid.uuid4().hex[:12]}.tmp.xlsx"
            )
            target: Any = self._path_tmp.as_posix()
        else:
            self._stream = file_out
            self._file_tmp = tempfile.TemporaryFile(dir=self.options.dir_tmp)
            target = self._file_tmp

        dict_wb_options: dict[str, Any] = {
            "constant_memory": self.options.if_streaming,
            # NaN/Inf are written as text by the value conversion layer.
            "nan_inf_to_errors": False,
            "remove_timezone": True,
        }
        if self.options.dir_tmp is not None:
            dict_wb_options["tmpdir"] = self.options.dir_tmp
        self.wb = xlsxwriter.Workbook(target, dict_wb_options)

        self._style_cache = StyleCache(self.wb, default_style=self.options.default_style)
        self._sheet_writers: list[SheetWriter] = []
        self._existing_sheet_names: set[str] = set()
        self._warnings: list[str] = []
        self._lock = threading.Lock()
        self._is_finalized = False

    def __enter__(self) -> "XlsxWriter":
        return self

    def __exit__(
        self, exc_type: type | None, exc: BaseException | None, tb: TracebackType | None
    ) -> None:
        if self._is_finalized:
            return
        if exc_type is None:
            self.close()
        else:
            self.discard()

    @property
    def is_finalized(self) -> bool:
        return self._is_finalized

    @property
    def style_cache(self) -> StyleCache:
        return self._style_cache

    @property
    def sheets(self) -> tuple[SheetWriter, ...]:
        return tuple(self._sheet_writers)

    def create_sheet(self, name: str) -> SheetWriter:
        """
        Add a worksheet and return its writer.

        Characters Excel does not allow in sheet names are replaced and the
        name is cut to 31 characters. Raises :class:`SheetNameError` when the
        resulting name is already used (Excel compares names case-insensitively).
        """
        if self._is_finalized:
            raise FinalizationError("Cannot add a sheet to a finalized document.")
        c_name_sheet = sanitize_sheet_name(str(name))
        with self._lock:
            if c_name_sheet.lower() in self._existing_sheet_names:
                raise SheetNameError(
                    f"Sheet name {c_name_sheet!r} is already used in this document."
                )
            try:
                ws = self.wb.add_worksheet(c_name_sheet)
            except xlsxwriter.exceptions.InvalidWorksheetName as e:
                raise SheetNameError(
                    f"Invalid sheet name {c_name_sheet!r}: {e}"
                ) from e
            self._existing_sheet_names.add(c_name_sheet.lower())
            if c_name_sheet != str(name):
                c_msg = f"Sheet name {name!r} written as {c_name_sheet!r}."
                logger.warning(c_msg)
                self._warnings.append(c_msg)

            sw = SheetWriter(ws, self._style_cache, options=self.options)
            self._sheet_writers.append(sw)
        logger.debug("Created sheet %r.", c_name_sheet)
        return sw

    def close(self) -> Path | IO[bytes]:
        """
        Finalize the document: close every sheet, serialize the workbook and
        publish it to the destination. Returns the destination path or stream.

        Raises:
            FinalizationError: serialization or I/O failed, or the document was
                already finalized.
            ResourceExhaustion: the process ran out of memory.
        """
        if self._is_finalized:
            raise FinalizationError("Document is already finalized.")
        self._is_finalized = True
        is_published = False
        try:
            for _sw in self._sheet_writers:
                _sw.close()
            self.wb.close()
            output = self._publish()
            is_published = True
        except MemoryError as e:
            raise ResourceExhaustion(
                "Out of memory while serializing the document."
            ) from e
        except _EXC_SERIALIZATION as e:
            raise FinalizationError(f"Failed to write XLSX document: {e}") from e
        finally:
            if not is_published:
                self._remove_tmp()

        logger.info(
            "Wrote XLSX document to %s: %d sheets, %d cell formats.",
            self.file_out if self.file_out is not None else "stream",
            len(self._sheet_writers),
            self._style_cache.n_styles,
        )
        return output

    def discard(self) -> None:
        """
        Release the workbook and its temp storage without publishing anything.
        No-op once the document is finalized.
        """
        if self._is_finalized:
            return
        self._is_finalized = True
        try:
            # xlsxwriter only releases its temp files by closing the workbook;
            # the output goes to our temp target and is dropped.
            self.wb.close()
        except _EXC_SERIALIZATION as e:
            logger.warning("Error while discarding XLSX document: %s", e)
        finally:
            self._remove_tmp()
        logger.debug("Discarded XLSX document for %s.", self.file_out or "stream")

    def report(self) -> SpecXlsxReport:
        report = SpecXlsxReport(n_styles=self._style_cache.n_styles)
        for _msg in self._warnings:
            report.warn(_msg)
        for _sw in self._sheet_writers:
            report.sheets.append(_sw.report())
            for _msg in _sw.warnings:
                report.warn(_msg)
        return report

    def _publish(self) -> Path | IO[bytes]:
        if self.file_out is not None and self._path_tmp is not None:
            os.replace(self._path_tmp, self.file_out)
            self._path_tmp = None
            return self.file_out

        assert self._file_tmp is not None and self._stream is not None
        self._file_tmp.seek(0)
        shutil.copyfileobj(self._file_tmp, self._stream)
        self._file_tmp.close()
        self._file_tmp = None
        if self._if_close_stream:
            self._stream.close()
        elif hasattr(self._stream, "flush"):
            self._stream.flush()
        return self._stream

    def _remove_tmp(self) -> None:
        if self._path_tmp is not None:
            self._path_tmp.unlink(missing_ok=True)
            self._path_tmp = None
        if self._file_tmp is not None:
            self._file_tmp.close()
            self._file_tmp = None
