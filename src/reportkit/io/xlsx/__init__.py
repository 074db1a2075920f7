from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

from reportkit._optional_deps import import_optional_attr

__all__ = [
    "XlsxWriter",
    "SheetWriter",
    "StyleCache",
    "SpecCell",
    "RichText",
    "SpecValuePolicy",
    "SpecAutosizePolicy",
    "SpecXlsxWriteOptions",
    "SpecSheetReport",
    "SpecXlsxReport",
    "XlsxWriteError",
    "LayoutViolation",
    "SheetNameError",
    "StyleSpecError",
    "FinalizationError",
    "ResourceExhaustion",
    "cell",
    "wrap_cell",
    "cell_value",
    "cell_style",
    "cell_dims",
    "with_style",
    "with_dims",
    "write_rows",
    "write_sheets",
    "write_workbook",
    "write_workbook_bytes",
    "TreeNode",
    "tree_grid",
    "table_grid",
    "force_extension",
]

if TYPE_CHECKING:
    from .errors import (
        FinalizationError,
        LayoutViolation,
        ResourceExhaustion,
        SheetNameError,
        StyleSpecError,
        XlsxWriteError,
    )
    from .grid import (
        cell,
        cell_dims,
        cell_style,
        cell_value,
        with_dims,
        with_style,
        wrap_cell,
        write_rows,
        write_sheets,
        write_workbook,
        write_workbook_bytes,
    )
    from .sheet import SheetWriter
    from .spec import (
        RichText,
        SpecAutosizePolicy,
        SpecCell,
        SpecSheetReport,
        SpecValuePolicy,
        SpecXlsxReport,
        SpecXlsxWriteOptions,
    )
    from .style import StyleCache
    from .table import table_grid
    from .tree import TreeNode, tree_grid
    from .util import force_extension
    from .writer import XlsxWriter

_ATTR_MODULES: dict[str, str] = {
    "XlsxWriter": ".writer",
    "SheetWriter": ".sheet",
    "StyleCache": ".style",
    "SpecCell": ".spec",
    "RichText": ".spec",
    "SpecValuePolicy": ".spec",
    "SpecAutosizePolicy": ".spec",
    "SpecXlsxWriteOptions": ".spec",
    "SpecSheetReport": ".spec",
    "SpecXlsxReport": ".spec",
    "XlsxWriteError": ".errors",
    "LayoutViolation": ".errors",
    "SheetNameError": ".errors",
    "StyleSpecError": ".errors",
    "FinalizationError": ".errors",
    "ResourceExhaustion": ".errors",
    "cell": ".grid",
    "wrap_cell": ".grid",
    "cell_value": ".grid",
    "cell_style": ".grid",
    "cell_dims": ".grid",
    "with_style": ".grid",
    "with_dims": ".grid",
    "write_rows": ".grid",
    "write_sheets": ".grid",
    "write_workbook": ".grid",
    "write_workbook_bytes": ".grid",
    "TreeNode": ".tree",
    "tree_grid": ".tree",
    "force_extension": ".util",
}


def __getattr__(name: str) -> Any:
    if name == "table_grid":
        return import_optional_attr(
            module_name=".table",
            attr_name=name,
            package=__name__,
            feature="reportkit.io.xlsx.table_grid",
            extras=("table",),
            required_modules=("polars",),
        )
    module_name = _ATTR_MODULES.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    attr = getattr(import_module(module_name, package=__name__), name)
    globals()[name] = attr
    return attr


def __dir__() -> list[str]:
    return sorted(set(globals()) | set(__all__))
