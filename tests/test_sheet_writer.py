from __future__ import annotations

import datetime
import sys
import tracemalloc
from pathlib import Path

import pytest

# Ensure src-layout imports work when running tests from repo checkout.
SRC_DIR = Path(__file__).resolve().parents[1] / "src"
sys.path.insert(0, str(SRC_DIR))

from reportkit.io.xlsx import (  # noqa: E402
    LayoutViolation,
    RichText,
    SpecXlsxWriteOptions,
    XlsxWriter,
)
from reportkit.io.xlsx.spec import SpecMergedRegion  # noqa: E402
from xlsx_readback import read_cells, read_merges, read_values  # noqa: E402

L_MODES = [True, False]


class _Opaque:
    def __str__(self) -> str:
        return "opaque"


@pytest.mark.parametrize("if_streaming", L_MODES)
def test_cells_land_left_to_right_and_rows_are_lazy(tmp_path: Path, if_streaming: bool) -> None:
    path_file_out = tmp_path / "cursor.xlsx"

    with XlsxWriter(path_file_out, options=SpecXlsxWriteOptions(if_streaming=if_streaming)) as xw:
        sw = xw.create_sheet("S")
        assert (sw.row_idx, sw.col_idx) == (-1, -1)

        sw.write("a").write("b").write("c")
        assert (sw.row_idx, sw.col_idx) == (0, 2)

        sw.newline()
        # newline alone does not create a row
        assert sw.n_rows_written == 1
        sw.newline()
        sw.write("d")
        assert (sw.row_idx, sw.col_idx) == (1, 0)
        sw.newline()

    assert read_values(path_file_out) == {"A1": "a", "B1": "b", "C1": "c", "A2": "d"}


@pytest.mark.parametrize("if_streaming", L_MODES)
def test_wide_cell_merges_and_advances_cursor(tmp_path: Path, if_streaming: bool) -> None:
    path_file_out = tmp_path / "wide.xlsx"

    with XlsxWriter(path_file_out, options=SpecXlsxWriteOptions(if_streaming=if_streaming)) as xw:
        sw = xw.create_sheet("S")
        sw.write("wide", {"font": {"bold": True}}, width=2).write("next")
        assert sw.col_idx == 2
        assert sw.merged_regions == (
            SpecMergedRegion(row_start=0, row_end=0, col_start=0, col_end=1),
        )

    assert read_merges(path_file_out) == ["A1:B1"]
    dict_cells = read_cells(path_file_out)
    assert dict_cells["A1"].value == "wide"
    assert dict_cells["C1"].value == "next"
    # padding cell carries the anchor format
    assert dict_cells["B1"].is_bold
    assert not dict_cells["C1"].is_bold


@pytest.mark.parametrize("if_streaming", L_MODES)
def test_tall_cell_merges_downwards(tmp_path: Path, if_streaming: bool) -> None:
    path_file_out = tmp_path / "tall.xlsx"

    with XlsxWriter(path_file_out, options=SpecXlsxWriteOptions(if_streaming=if_streaming)) as xw:
        sw = xw.create_sheet("S")
        sw.write("label", {"font": {"bold": True}}, height=3).write(1.0)
        sw.newline()
        # Rows below start at column 0 again; skip the merged column explicitly.
        sw.write(None).write(2.0)
        sw.newline()
        sw.write(None).write(3.0)

    assert read_merges(path_file_out) == ["A1:A3"]
    dict_cells = read_cells(path_file_out)
    assert dict_cells["A1"].value == "label"
    assert [dict_cells[_ref].value for _ref in ("B1", "B2", "B3")] == ["1", "2", "3"]


@pytest.mark.parametrize("if_streaming", L_MODES)
def test_tall_merge_padding_is_flushed_on_close(tmp_path: Path, if_streaming: bool) -> None:
    path_file_out = tmp_path / "tall_tail.xlsx"

    with XlsxWriter(path_file_out, options=SpecXlsxWriteOptions(if_streaming=if_streaming)) as xw:
        sw = xw.create_sheet("S")
        sw.write("block", {"font": {"bold": True}}, width=2, height=3)

    assert read_merges(path_file_out) == ["A1:B3"]
    dict_cells = read_cells(path_file_out)
    for _ref in ("B1", "A2", "B2", "A3", "B3"):
        assert dict_cells[_ref].is_bold, _ref


def test_overlapping_merge_raises_layout_violation(tmp_path: Path) -> None:
    with XlsxWriter(tmp_path / "overlap.xlsx") as xw:
        sw = xw.create_sheet("S")
        sw.write("x").write("tall", height=2)
        sw.newline()
        with pytest.raises(LayoutViolation, match="overlaps"):
            sw.write("wide", width=3)
        # the rejected cell did not move the cursor or start the row
        assert (sw.row_idx, sw.col_idx) == (0, -1)
        sw.write("ok")


def test_single_cell_inside_merge_is_allowed(tmp_path: Path) -> None:
    with XlsxWriter(tmp_path / "hidden.xlsx") as xw:
        sw = xw.create_sheet("S")
        sw.write("tall", height=2)
        sw.newline()
        sw.write("hidden")
        assert (sw.row_idx, sw.col_idx) == (1, 0)


@pytest.mark.parametrize(("width", "height"), [(0, 1), (1, 0), (-1, 1), (1.5, 1), (True, 1)])
def test_invalid_dimensions_raise(tmp_path: Path, width: object, height: object) -> None:
    with XlsxWriter(tmp_path / "dims.xlsx") as xw:
        sw = xw.create_sheet("S")
        with pytest.raises(LayoutViolation):
            sw.write("x", width=width, height=height)  # type: ignore[arg-type]


def test_cell_past_last_column_raises(tmp_path: Path) -> None:
    with XlsxWriter(tmp_path / "bounds.xlsx") as xw:
        sw = xw.create_sheet("S")
        sw.write("a", width=16_384)
        with pytest.raises(LayoutViolation, match="exceeds the Excel grid"):
            sw.write("b")


def test_write_after_close_raises(tmp_path: Path) -> None:
    with XlsxWriter(tmp_path / "closed.xlsx") as xw:
        sw = xw.create_sheet("S")
        sw.write("a")
        sw.close()
        sw.close()
        assert sw.is_closed
        with pytest.raises(LayoutViolation, match="closed"):
            sw.write("b")


@pytest.mark.parametrize("if_streaming", L_MODES)
def test_native_kinds_round_trip(tmp_path: Path, if_streaming: bool) -> None:
    path_file_out = tmp_path / "kinds.xlsx"

    with XlsxWriter(path_file_out, options=SpecXlsxWriteOptions(if_streaming=if_streaming)) as xw:
        sw = xw.create_sheet("S")
        sw.write(True).write(12.5).write(3).write("s")
        sw.write(datetime.date(2024, 3, 1))
        sw.write(datetime.datetime(2024, 3, 1, 8, 30), {"data-format": "dd/mm/yyyy hh:mm"})
        sw.write(float("nan"))
        sw.write(_Opaque())
        report = sw.report()

    dict_cells = read_cells(path_file_out)
    assert (dict_cells["A1"].type, dict_cells["A1"].value) == ("b", "1")
    assert float(dict_cells["B1"].value) == 12.5
    assert float(dict_cells["C1"].value) == 3.0
    assert dict_cells["D1"].value == "s"
    assert dict_cells["E1"].type is None
    assert float(dict_cells["E1"].value) == 45352.0
    assert dict_cells["E1"].num_format == "yyyy-mm-dd"
    assert dict_cells["F1"].num_format == "dd/mm/yyyy hh:mm"
    assert dict_cells["G1"].value == "NaN"
    assert dict_cells["H1"].value == "opaque"
    assert report.n_values_stringified == 1


@pytest.mark.parametrize("if_streaming", L_MODES)
def test_rich_text_is_written_as_runs(tmp_path: Path, if_streaming: bool) -> None:
    path_file_out = tmp_path / "rich.xlsx"

    with XlsxWriter(path_file_out, options=SpecXlsxWriteOptions(if_streaming=if_streaming)) as xw:
        sw = xw.create_sheet("S")
        sw.write(RichText.of("Total: ", ("42", {"bold": True, "color": "red"})))
        sw.write(RichText.of(("only bold", {"bold": True}), ""))

    dict_cells = read_cells(path_file_out)
    assert dict_cells["A1"].value == "Total: 42"
    assert dict_cells["A1"].n_runs == 2
    # a single fragment is a plain string with the fragment font on the cell
    assert dict_cells["B1"].value == "only bold"
    assert dict_cells["B1"].is_bold


def test_autosize_uses_widest_value(tmp_path: Path) -> None:
    with XlsxWriter(tmp_path / "autosize.xlsx") as xw:
        sw = xw.create_sheet("S")
        sw.write("short").write("x")
        sw.newline()
        sw.write("a much longer value than the first")
        sw.autosize(0).autosize(1).autosize(5)

        report = sw.report()

    assert report.is_autosized
    assert report.n_cols_max == 2
    assert report.n_rows == 2


def test_buffered_mode_warns_past_row_threshold(tmp_path: Path) -> None:
    options = SpecXlsxWriteOptions(if_streaming=False, n_rows_buffered_warn=3)
    with XlsxWriter(tmp_path / "warn.xlsx", options=options) as xw:
        sw = xw.create_sheet("S")
        for _idx in range(5):
            sw.write(_idx).newline()
        assert len(sw.warnings) == 1
        assert "buffered mode" in xw.report().warnings[0]


@pytest.mark.parametrize("if_streaming", L_MODES)
def test_overlong_text_is_cut_with_warning(tmp_path: Path, if_streaming: bool) -> None:
    path_file_out = tmp_path / "long.xlsx"

    with XlsxWriter(path_file_out, options=SpecXlsxWriteOptions(if_streaming=if_streaming)) as xw:
        sw = xw.create_sheet("S")
        sw.write("a" * 40_000)
        sw.write(RichText.of("b" * 20_000, ("c" * 20_000, {"bold": True})))
        sw.write("fits")
        report = sw.report()
        assert len(sw.warnings) == 2
        assert "cut to 32767" in sw.warnings[0]

    assert report.n_values_truncated == 2
    dict_values = read_values(path_file_out)
    assert dict_values["A1"] == "a" * 32_767
    assert dict_values["B1"] == "b" * 20_000 + "c" * 12_767
    assert dict_values["C1"] == "fits"


def test_streaming_state_stays_bounded_with_tall_merges(tmp_path: Path) -> None:
    with XlsxWriter(tmp_path / "bounded.xlsx") as xw:
        sw = xw.create_sheet("S")
        for n_row in range(3_000):
            if n_row % 3 == 0:
                sw.write(f"group {n_row // 3}", height=3)
            else:
                sw.write(None)
            sw.write(n_row).write("detail", width=2)
            sw.newline()
            assert len(sw._merged_regions_active) <= 2
            assert len(sw._pending_padding) <= 2
        report = sw.report()

    assert report.n_rows == 3_000


def _measure_write_growth(path_file_out: Path, *, n_rows: int, if_streaming: bool) -> int:
    options = SpecXlsxWriteOptions(if_streaming=if_streaming, n_rows_buffered_warn=None)
    xw = XlsxWriter(path_file_out, options=options)
    try:
        sw = xw.create_sheet("S")
        tracemalloc.start()
        try:
            n_base, _ = tracemalloc.get_traced_memory()
            for n_row in range(n_rows):
                sw.write(f"row {n_row}").write(n_row).write(n_row * 0.5).write(True)
                sw.newline()
            _, n_peak = tracemalloc.get_traced_memory()
        finally:
            tracemalloc.stop()
    finally:
        xw.discard()
    return n_peak - n_base


def test_streaming_memory_does_not_grow_with_rows(tmp_path: Path) -> None:
    n_small = _measure_write_growth(tmp_path / "small.xlsx", n_rows=2_000, if_streaming=True)
    n_large = _measure_write_growth(tmp_path / "large.xlsx", n_rows=20_000, if_streaming=True)
    n_buffered = _measure_write_growth(
        tmp_path / "buffered.xlsx", n_rows=20_000, if_streaming=False
    )

    # ten times the rows, roughly the same peak
    assert n_large < 2 * n_small + 512 * 1024
    # buffered mode keeps every row, so the measurement does tell them apart
    assert n_buffered > 4 * n_large
