import logging
from collections.abc import Callable, Mapping
from typing import Any, Self

import xlsxwriter.format
import xlsxwriter.worksheet

from .conf import N_LEN_EXCEL_CELL_STR_MAX, N_NCOLS_EXCEL_MAX, N_NROWS_EXCEL_MAX
from .errors import LayoutViolation
from .spec import (
    RichText,
    SpecMergedRegion,
    SpecSheetCursor,
    SpecSheetReport,
    SpecXlsxWriteOptions,
    validate_span,
)
from .style import StyleCache, deep_merge
from .util import estimate_width_len
from .value_conversion import CellKind, convert_cell_value, select_temporal_format

logger = logging.getLogger(__name__)


class SheetWriter:
    """
    Cursor-tracking writer for one worksheet.

    Cells are written left to right, rows top to bottom: :meth:`write` places a
    cell just after the previous one in the current row, :meth:`newline` moves
    on to the next row. Rows are created lazily, so a trailing ``newline()``
    never produces an empty row::

        with XlsxWriter("report.xlsx") as xw:
            sw = xw.create_sheet("Summary")
            sw.write("Name", {"font": {"bold": True}}).write("Total")
            sw.newline()
            sw.write("Wide cell", width=2).write("next")

    A cell with ``width``/``height`` > 1 registers a merged region anchored at
    the cell and the cursor skips past it. Writer state is exclusively owned by
    one instance; do not share a sheet writer between threads.

    Instances are created by :meth:`XlsxWriter.create_sheet`.
    """

    def __init__(
        self,
        worksheet: xlsxwriter.worksheet.Worksheet,
        style_cache: StyleCache,
        *,
        options: SpecXlsxWriteOptions,
    ):
        self._ws = worksheet
        self._style_cache = style_cache
        self._options = options
        self._cursor = SpecSheetCursor()

        self._merged_regions: list[SpecMergedRegion] = []
        # Regions that can still collide with new cells (row_end >= current row).
        self._merged_regions_active: list[SpecMergedRegion] = []
        # row -> [(col_start, col_end, fmt)] blanks still owed to tall merges.
        self._pending_padding: dict[
            int, list[tuple[int, int, xlsxwriter.format.Format]]
        ] = {}

        self._col_widths: dict[int, int] = {}
        self._cols_autosized: set[int] = set()
        self._n_cols_max = 0
        self._n_values_stringified = 0
        self._n_values_truncated = 0
        self._warnings: list[str] = []
        self._is_closed = False

        self._dict_value_writers: Mapping[CellKind, Callable[..., Any]] = {
            "boolean": self._ws.write_boolean,
            "datetime": self._ws.write_datetime,
            "string": self._ws.write_string,
            "number": self._ws.write_number,
            "rich": self._write_rich_text,
        }

    ############################################################################
    # #region Properties

    @property
    def sheet_name(self) -> str:
        return self._ws.get_name()

    @property
    def worksheet(self) -> xlsxwriter.worksheet.Worksheet:
        return self._ws

    @property
    def row_idx(self) -> int:
        return self._cursor.row_idx

    @property
    def col_idx(self) -> int:
        return self._cursor.col_idx

    @property
    def n_rows_written(self) -> int:
        return self._cursor.row_idx + 1

    @property
    def merged_regions(self) -> tuple[SpecMergedRegion, ...]:
        return tuple(self._merged_regions)

    @property
    def warnings(self) -> tuple[str, ...]:
        return tuple(self._warnings)

    @property
    def is_closed(self) -> bool:
        return self._is_closed

    # #endregion
    ############################################################################
    # #region CursorOperations

    def write(
        self,
        value: Any,
        style: Mapping[str, Any] | None = None,
        width: int = 1,
        height: int = 1,
    ) -> Self:
        """
        Write one cell at the next free position of the current row.

        Args:
            value: Cell value. Booleans, dates/times, strings, floats and
                :class:`RichText` are written natively; other numbers as floats;
                anything else as ``str(value)`` (``""`` for ``None``).
            style: Style specification, deep-merged onto the document default.
            width: Number of columns the cell spans (merged to the right).
            height: Number of rows the cell spans (merged downwards).

        Raises:
            LayoutViolation: on invalid dimensions, a merged region overlapping
                an earlier one, a cell outside the Excel grid, or a closed sheet.
        """
        if self._is_closed:
            raise LayoutViolation(f"Sheet {self.sheet_name!r} is already closed.")
        validate_span("width", width)
        validate_span("height", height)

        n_row_idx = (
            self._cursor.row_idx
            if self._cursor.is_row_started
            else self._cursor.row_idx + 1
        )
        n_col_idx = self._cursor.col_idx + 1
        n_row_idx_end = n_row_idx + height - 1
        n_col_idx_end = n_col_idx + width - 1
        if n_row_idx_end >= N_NROWS_EXCEL_MAX or n_col_idx_end >= N_NCOLS_EXCEL_MAX:
            raise LayoutViolation(
                f"Cell at row {n_row_idx}, col {n_col_idx} spanning {width}x{height} "
                f"exceeds the Excel grid ({N_NROWS_EXCEL_MAX} rows x "
                f"{N_NCOLS_EXCEL_MAX} cols)."
            )

        region = None
        if width > 1 or height > 1:
            region = SpecMergedRegion(
                row_start=n_row_idx,
                row_end=n_row_idx_end,
                col_start=n_col_idx,
                col_end=n_col_idx_end,
            )
            self._check_merge_overlap(region)

        if not self._cursor.is_row_started:
            self._start_row()
        self._cursor.col_idx = n_col_idx_end
        self._n_cols_max = max(self._n_cols_max, n_col_idx_end + 1)

        c_kind, val_cell, is_stringified = convert_cell_value(
            value, value_policy=self._options.value_policy
        )
        if is_stringified:
            self._n_values_stringified += 1
            logger.debug(
                "Wrote %s value as text at (%d, %d) in sheet %r.",
                type(value).__name__,
                n_row_idx,
                n_col_idx,
                self.sheet_name,
            )

        if c_kind == "rich" and len(val_cell.text) > N_LEN_EXCEL_CELL_STR_MAX:
            c_kind, val_cell = "string", val_cell.text
        if c_kind == "string" and len(val_cell) > N_LEN_EXCEL_CELL_STR_MAX:
            val_cell = self._truncate_text(val_cell, n_row_idx, n_col_idx)

        fmt_cell = self._resolve_cell_format(c_kind, val_cell, style)
        if region is not None:
            self._register_merge(region, fmt_cell)

        self._dict_value_writers[c_kind](n_row_idx, n_col_idx, val_cell, fmt_cell)

        if width == 1:
            self._track_col_width(n_row_idx, n_col_idx, c_kind, val_cell, fmt_cell)
        return self

    def newline(self) -> Self:
        """Move to the next row. The row itself is created by the next write."""
        self._cursor.is_row_started = False
        self._cursor.col_idx = -1
        return self

    def autosize(self, col_idx: int) -> Self:
        """
        Fit the width of column ``col_idx`` to the widest cell written to it.

        Widths are recorded while writing, for the first
        ``autosize_policy.n_cols`` columns and ``autosize_policy.n_rows_max``
        rows; a column with no recorded cell is left untouched.
        """
        policy = self._options.autosize_policy
        if (n_len_recorded := self._col_widths.get(col_idx)) is None:
            return self

        n_min = max(1, int(policy.width_min))
        n_max = min(255, max(n_min, int(policy.width_max)))
        n_pad = max(0, int(policy.width_padding))
        n_width = min(n_max, max(n_min, n_len_recorded + n_pad))
        self._ws.set_column(first_col=col_idx, last_col=col_idx, width=n_width)
        self._cols_autosized.add(col_idx)
        return self

    def close(self) -> None:
        """Apply print settings and flush owed merge padding. Safe to repeat."""
        if self._is_closed:
            return
        for _row_idx in sorted(self._pending_padding):
            self._write_padding(_row_idx)
        if self._options.if_fit_to_page:
            self._ws.fit_to_pages(1, 0)
        self._is_closed = True
        logger.debug(
            "Closed sheet %r: %d rows, %d merged regions.",
            self.sheet_name,
            self.n_rows_written,
            len(self._merged_regions),
        )

    def report(self) -> SpecSheetReport:
        return SpecSheetReport(
            sheet_name=self.sheet_name,
            n_rows=self.n_rows_written,
            n_cols_max=self._n_cols_max,
            n_merges=len(self._merged_regions),
            n_values_stringified=self._n_values_stringified,
            n_values_truncated=self._n_values_truncated,
            is_autosized=bool(self._cols_autosized),
        )

    # #endregion
    ############################################################################
    # #region Internals

    def _start_row(self) -> None:
        self._cursor.row_idx += 1
        self._cursor.col_idx = -1
        self._cursor.is_row_started = True
        n_row_idx = self._cursor.row_idx

        if self._merged_regions_active:
            self._merged_regions_active = [
                _region
                for _region in self._merged_regions_active
                if _region.row_end >= n_row_idx
            ]
        if n_row_idx in self._pending_padding:
            self._write_padding(n_row_idx)

        n_rows_warn = self._options.n_rows_buffered_warn
        if (
            not self._options.if_streaming
            and n_rows_warn is not None
            and n_row_idx == n_rows_warn
        ):
            c_msg = (
                f"Sheet {self.sheet_name!r} passed {n_rows_warn} rows in buffered "
                "mode; use streaming mode for large sheets to bound memory use."
            )
            logger.warning(c_msg)
            self._warnings.append(c_msg)

    def _truncate_text(self, text: str, row_idx: int, col_idx: int) -> str:
        # Excel cells hold at most 32767 characters.
        self._n_values_truncated += 1
        c_msg = (
            f"Text of {len(text)} characters at row {row_idx}, col {col_idx} in sheet "
            f"{self.sheet_name!r} cut to {N_LEN_EXCEL_CELL_STR_MAX} characters."
        )
        logger.warning(c_msg)
        self._warnings.append(c_msg)
        return text[:N_LEN_EXCEL_CELL_STR_MAX]

    def _check_merge_overlap(self, region: SpecMergedRegion) -> None:
        for _region in self._merged_regions_active:
            if region.overlaps(_region):
                raise LayoutViolation(
                    f"Merged region {region} overlaps merged region {_region} "
                    f"in sheet {self.sheet_name!r}."
                )

    def _register_merge(
        self, region: SpecMergedRegion, fmt_cell: xlsxwriter.format.Format
    ) -> None:
        # No format here: xlsxwriter would pad every row of the region at once,
        # which constant_memory mode cannot do for rows below the current one.
        self._ws.merge_range(
            region.row_start,
            region.col_start,
            region.row_end,
            region.col_end,
            "",
            None,
        )
        self._merged_regions.append(region)
        self._merged_regions_active.append(region)

        for _col_idx in range(region.col_start + 1, region.col_end + 1):
            self._ws.write_blank(region.row_start, _col_idx, None, fmt_cell)
        for _row_idx in range(region.row_start + 1, region.row_end + 1):
            self._pending_padding.setdefault(_row_idx, []).append(
                (region.col_start, region.col_end, fmt_cell)
            )

    def _write_padding(self, row_idx: int) -> None:
        for _col_start, _col_end, _fmt in self._pending_padding.pop(row_idx, ()):
            for _col_idx in range(_col_start, _col_end + 1):
                self._ws.write_blank(row_idx, _col_idx, None, _fmt)

    def _resolve_cell_format(
        self, kind: CellKind, value: Any, style: Mapping[str, Any] | None
    ) -> xlsxwriter.format.Format:
        if kind == "datetime":
            return self._style_cache.resolve(
                style,
                num_format_fallback=select_temporal_format(
                    value, value_policy=self._options.value_policy
                ),
            )
        if kind == "rich":
            l_fragments = _select_rich_fragments(value)
            if len(l_fragments) == 1 and l_fragments[0][1]:
                # Written as a plain string: the fragment font goes on the cell.
                return self._style_cache.resolve(
                    deep_merge(style, {"font": l_fragments[0][1]})
                )
        return self._style_cache.resolve(style)

    def _write_rich_text(
        self,
        row_idx: int,
        col_idx: int,
        value: RichText,
        fmt_cell: xlsxwriter.format.Format,
    ) -> None:
        l_fragments = _select_rich_fragments(value)
        # xlsxwriter ignores rich strings with fewer than two fragments or no
        # fragment format.
        if len(l_fragments) < 2 or not any(_style for _, _style in l_fragments):
            c_text = "".join(_text for _text, _ in l_fragments)
            self._ws.write_string(row_idx, col_idx, c_text, fmt_cell)
            return

        l_parts: list[Any] = []
        for _text, _style in l_fragments:
            if _style:
                l_parts.append(self._style_cache.resolve({"font": _style}))
            l_parts.append(_text)
        self._ws.write_rich_string(row_idx, col_idx, *l_parts, fmt_cell)

    def _track_col_width(
        self,
        row_idx: int,
        col_idx: int,
        kind: CellKind,
        value: Any,
        fmt_cell: xlsxwriter.format.Format,
    ) -> None:
        policy = self._options.autosize_policy
        if col_idx >= policy.n_cols or row_idx >= policy.n_rows_max:
            return
        if kind == "datetime":
            n_len = len(str(fmt_cell.num_format))
        elif kind == "boolean":
            n_len = len("FALSE")
        else:
            n_len = estimate_width_len(value)
        if n_len > self._col_widths.get(col_idx, 0):
            self._col_widths[col_idx] = n_len

    # #endregion
    ############################################################################


def _select_rich_fragments(
    value: RichText,
) -> list[tuple[str, Mapping[str, Any] | None]]:
    # xlsxwriter rejects empty fragments.
    return [(_text, _style) for _text, _style in value.fragments if _text]
