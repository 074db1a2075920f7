import datetime
import math
import numbers
from typing import Any, Literal, TypeAlias

from .spec import RichText, SpecValuePolicy

CellKind: TypeAlias = Literal["boolean", "datetime", "string", "number", "rich"]

# Ordered: bool before any numeric check (bool is an int), datetime before date.
TUP_NATIVE_KINDS: tuple[tuple[type | tuple[type, ...], CellKind], ...] = (
    (bool, "boolean"),
    (
        (datetime.datetime, datetime.date, datetime.time, datetime.timedelta),
        "datetime",
    ),
    (str, "string"),
    (float, "number"),
    (RichText, "rich"),
)


def convert_nan_inf_to_str(*, x: float, value_policy: SpecValuePolicy) -> str:
    if math.isnan(x):
        return value_policy.nan_str
    if math.isinf(x):
        return value_policy.posinf_str if x > 0 else value_policy.neginf_str
    raise ValueError("Input is neither NaN nor Inf.")


def convert_cell_value(
    value: Any, *, value_policy: SpecValuePolicy
) -> tuple[CellKind, Any, bool]:
    """
    Coerce ``value`` into something the XLSX format stores natively.

    Returns ``(kind, value, is_stringified)``. Native kinds pass through,
    other numbers become floats, anything else becomes its ``str()``
    (``""`` for ``None``). ``is_stringified`` flags that fallback; it is never
    an error.
    """
    for _types, _kind in TUP_NATIVE_KINDS:
        if isinstance(value, _types):
            if _kind == "number":
                return _convert_float(value, value_policy=value_policy)
            return _kind, value, False

    if isinstance(value, numbers.Number):
        try:
            n_value = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError, OverflowError):
            # complex, or an int too large for a double
            return "string", str(value), True
        return _convert_float(n_value, value_policy=value_policy)

    if value is None:
        return "string", "", False
    return "string", str(value), True


def _convert_float(
    value: float, *, value_policy: SpecValuePolicy
) -> tuple[CellKind, Any, bool]:
    if not math.isfinite(value):
        return "string", convert_nan_inf_to_str(x=value, value_policy=value_policy), False
    return "number", float(value), False


def select_temporal_format(value: Any, *, value_policy: SpecValuePolicy) -> str:
    if isinstance(value, datetime.datetime):
        return value_policy.datetime_format
    if isinstance(value, datetime.date):
        return value_policy.date_format
    if isinstance(value, datetime.timedelta):
        return "[h]:mm:ss"
    return value_policy.time_format
