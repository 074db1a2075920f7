from __future__ import annotations

import re
import sys
from pathlib import Path

import pytest

# Ensure src-layout imports work when running tests from repo checkout.
SRC_DIR = Path(__file__).resolve().parents[1] / "src"
sys.path.insert(0, str(SRC_DIR))

import reportkit  # noqa: E402
import reportkit.io.xlsx as io_xlsx  # noqa: E402
from reportkit._optional_deps import (  # noqa: E402
    import_optional_attr,
    import_optional_module,
)


def test_optional_import_error_contains_install_hint() -> None:
    with pytest.raises(ModuleNotFoundError) as exc_info:
        import_optional_module(
            module_name=".missing_feature_module",
            package="reportkit",
            feature="reportkit.io.xlsx.table_grid",
            extras=("table",),
            required_modules=("reportkit.missing_feature_module",),
        )

    message = str(exc_info.value)
    assert "reportkit.io.xlsx.table_grid is unavailable" in message
    assert "reportkit.missing_feature_module" in message
    assert re.search(r'pip install "reportkit\[table\]"', message)


def test_unrelated_missing_module_is_reraised_unchanged() -> None:
    with pytest.raises(ModuleNotFoundError) as exc_info:
        import_optional_attr(
            module_name=".missing_feature_module",
            attr_name="anything",
            package="reportkit",
            feature="reportkit.io.xlsx.table_grid",
            extras=("table",),
            required_modules=("polars",),
        )

    assert "unavailable" not in str(exc_info.value)


def test_lazy_exports_resolve() -> None:
    assert reportkit.io_xlsx is io_xlsx
    assert io_xlsx.XlsxWriter.__name__ == "XlsxWriter"
    assert "write_workbook" in dir(io_xlsx)
    with pytest.raises(AttributeError):
        io_xlsx.no_such_export  # noqa: B018


def test_table_grid_export_requires_polars() -> None:
    pytest.importorskip("polars")
    assert callable(io_xlsx.table_grid)
