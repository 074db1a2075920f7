# "Facts/Results/Plans" describing cells, sheets and documents written to XLSX.

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .conf import (
    C_FMT_DATE_DEFAULT,
    C_FMT_DATETIME_DEFAULT,
    C_FMT_TIME_DEFAULT,
    DEFAULT_STYLE,
    N_COLS_AUTOSIZE,
    N_ROWS_AUTOSIZE_MAX,
    N_ROWS_BUFFERED_WARN,
)
from .errors import LayoutViolation

################################################################################
# #region CellSpecification


def validate_span(name: str, n_span: Any) -> None:
    if isinstance(n_span, bool) or not isinstance(n_span, int) or n_span < 1:
        raise LayoutViolation(f"Cell {name} must be an integer >= 1, got {n_span!r}.")


@dataclass(frozen=True, slots=True)
class SpecCell:
    """A cell value wrapped together with its style and merge dimensions.

    ``width`` and ``height`` count cells; ``1 x 1`` means no merge. A width of 2
    merges the cell with its right neighbour, a height of 2 with the cell below.
    """

    value: Any
    style: Mapping[str, Any] = field(default_factory=dict)
    width: int = 1
    height: int = 1

    def __post_init__(self) -> None:
        validate_span("width", self.width)
        validate_span("height", self.height)


@dataclass(frozen=True, slots=True)
class RichText:
    """Pre-formatted text made of ``(text, font_style)`` fragments.

    Fragment styles use the ``font`` sub-mapping of a style specification,
    e.g. ``{"bold": True, "color": "red"}``.
    """

    fragments: tuple[tuple[str, Mapping[str, Any] | None], ...]

    @classmethod
    def of(cls, *parts: "str | tuple[str, Mapping[str, Any] | None]") -> "RichText":
        l_fragments: list[tuple[str, Mapping[str, Any] | None]] = []
        for _part in parts:
            if isinstance(_part, str):
                l_fragments.append((_part, None))
            else:
                c_text, style = _part
                l_fragments.append((str(c_text), style))
        return cls(fragments=tuple(l_fragments))

    @property
    def text(self) -> str:
        return "".join(_text for _text, _ in self.fragments)

    def __str__(self) -> str:
        return self.text


# #endregion
################################################################################
# #region SheetState


@dataclass(slots=True)
class SpecSheetCursor:
    # -1 means "nothing written yet" for both cursors.
    row_idx: int = -1
    col_idx: int = -1
    is_row_started: bool = False


@dataclass(frozen=True, slots=True)
class SpecMergedRegion:
    row_start: int
    row_end: int  # inclusive
    col_start: int
    col_end: int  # inclusive

    def overlaps(self, other: "SpecMergedRegion") -> bool:
        return not (
            self.row_end < other.row_start
            or other.row_end < self.row_start
            or self.col_end < other.col_start
            or other.col_end < self.col_start
        )


# #endregion
################################################################################
# #region WriteOptions


@dataclass(frozen=True, slots=True)
class SpecValuePolicy:
    nan_str: str = "NaN"
    posinf_str: str = "Inf"
    neginf_str: str = "-Inf"
    date_format: str = C_FMT_DATE_DEFAULT
    datetime_format: str = C_FMT_DATETIME_DEFAULT
    time_format: str = C_FMT_TIME_DEFAULT


@dataclass(frozen=True, slots=True)
class SpecAutosizePolicy:
    n_rows_max: int = N_ROWS_AUTOSIZE_MAX
    n_cols: int = N_COLS_AUTOSIZE
    width_min: int = 8
    width_max: int = 60
    width_padding: int = 2


@dataclass(frozen=True, slots=True)
class SpecXlsxWriteOptions:
    # True: xlsxwriter constant_memory mode, one resident row per sheet.
    if_streaming: bool = True
    # mappingproxy has no __hash__ before 3.12, so dataclasses reject it as a default.
    default_style: Mapping[str, Any] = field(default_factory=lambda: DEFAULT_STYLE)
    value_policy: SpecValuePolicy = field(default_factory=SpecValuePolicy)
    autosize_policy: SpecAutosizePolicy = field(default_factory=SpecAutosizePolicy)
    n_rows_buffered_warn: int | None = N_ROWS_BUFFERED_WARN
    if_fit_to_page: bool = True
    # Directory for xlsxwriter's temporary files (None: system default).
    dir_tmp: str | None = None


# #endregion
################################################################################
# #region ReportSpecification


@dataclass(frozen=True, slots=True)
class SpecSheetReport:
    sheet_name: str
    n_rows: int
    n_cols_max: int
    n_merges: int
    n_values_stringified: int
    n_values_truncated: int
    is_autosized: bool


@dataclass(slots=True)
class SpecXlsxReport:
    sheets: list[SpecSheetReport] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    n_styles: int = 0

    def warn(self, msg: str) -> None:
        self.warnings.append(str(msg))


# #endregion
################################################################################
