"""Grids of cells and the driver that writes them into XLSX documents.

A grid is a sequence of rows, each a sequence of cells. A cell is either a plain
value or a :class:`SpecCell` carrying the value with its style and merge
dimensions::

    grid = [
        [cell("Name", {"font": {"bold": True}}), cell("Total", {"font": {"bold": True}})],
        ["Cash", 1200.5],
        [cell("Merged note", width=2)],
    ]
    write_workbook({"Summary": grid}, "summary.xlsx")
"""

import io
import logging
import os
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import IO, Any, TypeAlias

from .errors import ResourceExhaustion
from .sheet import SheetWriter
from .spec import SpecCell, SpecXlsxWriteOptions
from .style import deep_merge
from .writer import XlsxWriter

logger = logging.getLogger(__name__)

Grid: TypeAlias = Iterable[Iterable[Any]]
WorkbookGrids: TypeAlias = Mapping[str, Grid] | Sequence[tuple[str, Grid]]

################################################################################
# #region CellHelpers


def cell(
    value: Any,
    style: Mapping[str, Any] | None = None,
    *,
    width: int = 1,
    height: int = 1,
) -> SpecCell:
    return SpecCell(value=value, style=dict(style or {}), width=width, height=height)


def wrap_cell(x: Any) -> SpecCell:
    """Return ``x`` if it is already a wrapped cell, otherwise wrap it."""
    return x if isinstance(x, SpecCell) else SpecCell(value=x)


def cell_value(x: Any) -> Any:
    return x.value if isinstance(x, SpecCell) else x


def cell_style(x: Any) -> Mapping[str, Any]:
    return x.style if isinstance(x, SpecCell) else {}


def cell_dims(x: Any) -> tuple[int, int]:
    """``(width, height)`` of a cell; plain values are ``(1, 1)``."""
    return (x.width, x.height) if isinstance(x, SpecCell) else (1, 1)


def with_style(x: Any, style: Mapping[str, Any] | None) -> SpecCell:
    """Deep-merge ``style`` onto the current style of ``x``."""
    c = wrap_cell(x)
    return SpecCell(
        value=c.value,
        style=deep_merge(c.style, style),
        width=c.width,
        height=c.height,
    )


def with_dims(x: Any, *, width: int | None = None, height: int | None = None) -> SpecCell:
    c = wrap_cell(x)
    return SpecCell(
        value=c.value,
        style=c.style,
        width=c.width if width is None else width,
        height=c.height if height is None else height,
    )


# #endregion
################################################################################
# #region GridDriver


def write_rows(sheet_writer: SheetWriter, rows: Grid) -> int:
    """Write ``rows`` through ``sheet_writer``; return the number of rows consumed."""
    n_rows = 0
    for _row in rows:
        for _cell in _row:
            if isinstance(_cell, SpecCell):
                sheet_writer.write(_cell.value, _cell.style, _cell.width, _cell.height)
            else:
                sheet_writer.write(_cell)
        sheet_writer.newline()
        n_rows += 1
    return n_rows


def _generate_sheet_grids(workbook: WorkbookGrids) -> Iterable[tuple[str, Grid]]:
    if isinstance(workbook, Mapping):
        return workbook.items()
    return workbook


def write_sheets(xlsx_writer: XlsxWriter, workbook: WorkbookGrids) -> None:
    """
    Write each ``(sheet_name, grid)`` pair into its own sheet, in order.

    Columns are autosized only for sheets below
    ``autosize_policy.n_rows_max`` rows, and only the first
    ``autosize_policy.n_cols`` of them, since autosizing scales with the number
    of cells.
    """
    policy = xlsx_writer.options.autosize_policy
    for _name, _grid in _generate_sheet_grids(workbook):
        sw = xlsx_writer.create_sheet(_name)
        try:
            n_rows_written = write_rows(sw, _grid)
        except MemoryError as e:
            raise ResourceExhaustion(
                f"Out of memory after {sw.n_rows_written} rows of sheet "
                f"{sw.sheet_name!r}; use streaming mode for large sheets."
            ) from e
        if n_rows_written < policy.n_rows_max:
            for _col_idx in range(policy.n_cols):
                sw.autosize(_col_idx)
        else:
            logger.debug(
                "Skipped autosizing sheet %r: %d rows.", sw.sheet_name, n_rows_written
            )
        sw.close()


def write_workbook(
    workbook: WorkbookGrids,
    file_out: os.PathLike[str] | str | IO[bytes],
    *,
    options: SpecXlsxWriteOptions | None = None,
    if_close_stream: bool = False,
) -> Path | IO[bytes]:
    """
    Write a workbook of grids and return the written destination.

    Args:
        workbook: Mapping of sheet name to grid, or a sequence of
            ``(sheet_name, grid)`` pairs when order matters.
        file_out: Destination path (``.xlsx`` appended when missing) or a
            caller-owned binary stream.
        options: Write options; streaming mode by default.
        if_close_stream: Close ``file_out`` when it is a stream.

    Any error while writing discards the document; nothing is published.
    """
    with XlsxWriter(file_out, options=options, if_close_stream=if_close_stream) as xw:
        write_sheets(xw, workbook)
        output = xw.close()
    return output


def write_workbook_bytes(
    workbook: WorkbookGrids, *, options: SpecXlsxWriteOptions | None = None
) -> bytes:
    """Write a workbook of grids into memory and return the XLSX bytes."""
    buffer = io.BytesIO()
    write_workbook(workbook, buffer, options=options)
    return buffer.getvalue()


# #endregion
################################################################################
