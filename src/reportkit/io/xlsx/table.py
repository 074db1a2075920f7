from collections import defaultdict
from collections.abc import Generator, Mapping, Sequence
from typing import Any

import polars as pl

from .conf import DEFAULT_HEADER_STYLE
from .grid import cell
from .spec import SpecCell


def convert_to_polars(data: Any) -> pl.DataFrame:
    return data if isinstance(data, pl.DataFrame) else pl.DataFrame(data)


def validate_unique_columns(columns: Sequence[str]) -> None:
    # fast path: no duplicates
    if len(columns) == len(set(columns)):
        return

    # slow path: collect details only when duplicates exist
    dict_pos: dict[str, list[int]] = defaultdict(list)
    for _idx, _val in enumerate(columns):
        dict_pos[_val].append(_idx)

    c_msg = "; ".join(
        f"{c_name!r} x{len(l_pos)} at indices {l_pos}"
        for c_name, l_pos in dict_pos.items()
        if len(l_pos) > 1
    )
    raise ValueError(f"Duplicate column names detected: {c_msg}")


def select_columns(df: pl.DataFrame, columns: Sequence[str] | None) -> pl.DataFrame:
    if columns is None:
        return df
    validate_unique_columns(list(columns))
    for _col in columns:
        if _col not in df.columns:
            raise KeyError(f"Column not found: {_col!r}")
    return df.select(list(columns))


def generate_table_rows(
    data: Any,
    *,
    columns: Sequence[str] | None = None,
    header_style: Mapping[str, Any] | None = DEFAULT_HEADER_STYLE,
    data_style: Mapping[str, Any] | None = None,
) -> Generator[list[Any], Any, None]:
    """
    Yield a header row followed by one row per record of ``data``.

    Args:
        data: A ``polars.DataFrame`` or anything ``polars.DataFrame`` accepts
            (list of dicts, dict of lists, ...).
        columns: Columns to keep, in output order. Default: all columns.
        header_style: Style of the header cells.
        data_style: Style applied to every data cell; ``None`` writes plain
            values.
    """
    df = select_columns(convert_to_polars(data), columns)

    yield [cell(_name, header_style) for _name in df.columns]
    for _row in df.iter_rows():
        if data_style:
            yield [cell(_val, data_style) for _val in _row]
        else:
            yield list(_row)


def table_grid(
    data: Any,
    *,
    columns: Sequence[str] | None = None,
    header_style: Mapping[str, Any] | None = DEFAULT_HEADER_STYLE,
    data_style: Mapping[str, Any] | None = None,
) -> list[list[Any | SpecCell]]:
    """Flatten tabular ``data`` into a grid; see :func:`generate_table_rows`."""
    return list(
        generate_table_rows(
            data, columns=columns, header_style=header_style, data_style=data_style
        )
    )
