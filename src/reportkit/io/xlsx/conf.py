# Constants and default presentation settings for XLSX generation.

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

N_NROWS_EXCEL_MAX = 1_048_576
N_NCOLS_EXCEL_MAX = 16_384
N_LEN_EXCEL_SHEET_NAME_MAX = 31
N_LEN_EXCEL_CELL_STR_MAX = 32_767
TUP_EXCEL_ILLEGAL = ("*", ":", "?", "/", "\\", "[", "]")

C_XLSX_EXTENSION = ".xlsx"

# Style applied under every cell style (deep-merged, cell style wins).
DEFAULT_STYLE: Mapping[str, Any] = MappingProxyType(
    {"font": MappingProxyType({"name": "Arial", "size": 10})}
)

# Header row style used by table flattening.
DEFAULT_HEADER_STYLE: Mapping[str, Any] = MappingProxyType(
    {"border-bottom": "thin", "font": MappingProxyType({"bold": True})}
)

# Number formats used for temporal values when the cell style has none.
C_FMT_DATE_DEFAULT = "yyyy-mm-dd"
C_FMT_DATETIME_DEFAULT = "yyyy-mm-dd hh:mm:ss"
C_FMT_TIME_DEFAULT = "hh:mm:ss"

# Grid driver thresholds: autosizing inspects every cell, so it is only done
# for small sheets and for the leading columns.
N_ROWS_AUTOSIZE_MAX = 2_000
N_COLS_AUTOSIZE = 10

# Buffered mode keeps every row in memory.
N_ROWS_BUFFERED_WARN = 50_000
