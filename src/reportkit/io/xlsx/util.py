import os
import tempfile
from pathlib import Path
from typing import Any

from .conf import C_XLSX_EXTENSION, N_LEN_EXCEL_SHEET_NAME_MAX, TUP_EXCEL_ILLEGAL

################################################################################
# #region PathUtils


def force_extension(
    path: os.PathLike[str] | str, ext: str = C_XLSX_EXTENSION
) -> Path:
    """
    Return the absolute, canonical form of ``path`` ending with ``ext``.

    The extension is appended (never substituted) when missing; the check is
    case-insensitive, so ``report.XLSX`` is kept as-is.

    Examples:
        >>> force_extension("/tmp/report").name
        'report.xlsx'
        >>> force_extension("/tmp/report.xlsx").name
        'report.xlsx'
    """
    c_ext = ext if ext.startswith(".") else f".{ext}"
    path_out = Path(path).expanduser().resolve()
    if path_out.name.lower().endswith(c_ext.lower()):
        return path_out
    return path_out.with_name(f"{path_out.name}{c_ext}")


def create_temp_path(suffix: str = C_XLSX_EXTENSION) -> Path:
    """Create an empty temp file and return its path. The caller removes it."""
    n_fd, c_path = tempfile.mkstemp(prefix="generated-sheet", suffix=suffix)
    os.close(n_fd)
    return Path(c_path).resolve()


# #endregion
################################################################################
# #region SheetNormalization


def sanitize_sheet_name(name: str, *, replace_to: str = "_") -> str:
    for ch in TUP_EXCEL_ILLEGAL:
        name = name.replace(ch, replace_to)
    # Cut first: the cut may expose an apostrophe, which Excel rejects at either end.
    name = name[:N_LEN_EXCEL_SHEET_NAME_MAX].strip().strip("'")
    return name or "Sheet"


# #endregion
################################################################################
# #region ColumnWidth


def estimate_width_len(value: Any) -> int:
    """Estimate the rendered width (in characters) of a cell value.

    Notes
    -----
    - Excel column width is not strictly character count; this is a pragmatic
      heuristic good enough for most reports.
    - Non-ASCII characters (CJK in particular) render about 1.6x wider.
    - Only the longest line of multi-line text counts.
    """
    if value is None:
        return 0
    if isinstance(value, float) and value.is_integer():
        s = str(int(value))
    else:
        s = str(value)
    if not s:
        return 0
    n_len_max = 0
    for _line in s.splitlines():
        n_ascii = sum(1 for _chr in _line if ord(_chr) < 128)
        n_non_ascii = len(_line) - n_ascii
        n_len_max = max(n_len_max, n_ascii + int(1.6 * n_non_ascii))
    return n_len_max


# #endregion
################################################################################
