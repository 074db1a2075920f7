from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure src-layout imports work when running tests from repo checkout.
SRC_DIR = Path(__file__).resolve().parents[1] / "src"
sys.path.insert(0, str(SRC_DIR))

from reportkit.io.xlsx.util import (  # noqa: E402
    create_temp_path,
    estimate_width_len,
    force_extension,
    sanitize_sheet_name,
)


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("report", "report.xlsx"),
        ("report.xlsx", "report.xlsx"),
        ("report.XLSX", "report.XLSX"),
        ("report.csv", "report.csv.xlsx"),
        ("archive.2024", "archive.2024.xlsx"),
    ],
)
def test_force_extension_appends_never_replaces(tmp_path: Path, name: str, expected: str) -> None:
    path_out = force_extension(tmp_path / name)

    assert path_out.name == expected
    assert path_out.is_absolute()


def test_force_extension_resolves_relative_paths(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    assert force_extension("sub/../out") == (tmp_path / "out.xlsx").resolve()
    assert force_extension("out", ext="csv").name == "out.csv"


def test_create_temp_path_creates_empty_file() -> None:
    path_tmp = create_temp_path()
    try:
        assert path_tmp.exists()
        assert path_tmp.name.startswith("generated-sheet")
        assert path_tmp.suffix == ".xlsx"
        assert path_tmp.stat().st_size == 0
    finally:
        path_tmp.unlink()


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("Plain", "Plain"),
        ("a/b\\c*d?e:f[g]h", "a_b_c_d_e_f_g_h"),
        ("'quoted'", "quoted"),
        ("   ", "Sheet"),
        ("x" * 40, "x" * 31),
        # the cut exposes an apostrophe, which is then trimmed
        ("x" * 30 + "'y", "x" * 30),
    ],
)
def test_sanitize_sheet_name(name: str, expected: str) -> None:
    assert sanitize_sheet_name(name) == expected


def test_estimate_width_len() -> None:
    assert estimate_width_len(None) == 0
    assert estimate_width_len("") == 0
    assert estimate_width_len("abc") == 3
    assert estimate_width_len(12.0) == 2
    assert estimate_width_len(1.25) == 4
    assert estimate_width_len("short\na longer line") == 13
    # wide characters count extra
    assert estimate_width_len("数据") == 3
