from __future__ import annotations

import argparse
import json
import platform
import re
import statistics
import sys
import tempfile
import zipfile
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from importlib import metadata
from pathlib import Path
from time import perf_counter

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from reportkit.io.xlsx import SpecXlsxWriteOptions, XlsxWriter  # noqa: E402

HEADER_STYLE = {"border-bottom": "thin", "font": {"bold": True}}
L_HEADERS = ["Date", "Milliseconds", "Days Since Start of 2018"]


@dataclass(frozen=True)
class GridBenchmarkScenario:
    name: str
    n_rows: int
    if_streaming: bool


@dataclass(frozen=True)
class GridBenchmarkStats:
    scenario: GridBenchmarkScenario
    repeats: int
    warmup_runs: int
    times_seconds: list[float]
    header_seconds_mean: float
    mean_seconds: float
    median_seconds: float
    min_seconds: float
    max_seconds: float
    stdev_seconds: float
    output_size_bytes_mean: int


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run streaming vs buffered write benchmarks for reportkit.io.xlsx.",
    )
    parser.add_argument(
        "--rows",
        type=int,
        default=200_000,
        help="Number of data rows written per run.",
    )
    parser.add_argument(
        "--mode",
        choices=("both", "streaming", "buffered"),
        default="both",
        help="Which document writer modes to benchmark.",
    )
    parser.add_argument(
        "--repeat",
        type=int,
        default=3,
        help="Number of measured runs for each scenario.",
    )
    parser.add_argument(
        "--warmup",
        type=int,
        default=0,
        help="Number of warmup runs for each scenario.",
    )
    parser.add_argument(
        "--out-dir",
        type=Path,
        default=PROJECT_ROOT / "benchmarks" / "grid_writer" / "results",
        help="Directory where benchmark result files are written.",
    )
    return parser.parse_args()


def build_scenarios(*, n_rows: int, mode: str) -> list[GridBenchmarkScenario]:
    l_scenarios: list[GridBenchmarkScenario] = []
    if mode in ("both", "streaming"):
        l_scenarios.append(
            GridBenchmarkScenario(name=f"streaming_{n_rows}", n_rows=n_rows, if_streaming=True)
        )
    if mode in ("both", "buffered"):
        l_scenarios.append(
            GridBenchmarkScenario(name=f"buffered_{n_rows}", n_rows=n_rows, if_streaming=False)
        )
    return l_scenarios


def detect_reportkit_version() -> str:
    try:
        return metadata.version("reportkit")
    except metadata.PackageNotFoundError:
        return "local-src"


def validate_xlsx_output(*, path_xlsx_out: Path, expected_rows_total: int) -> None:
    with zipfile.ZipFile(path_xlsx_out) as zf:
        v_xml_sheet = zf.read("xl/worksheets/sheet1.xml")

    m_dimension = re.search(rb'<dimension[^>]*\sref="([^"]+)"', v_xml_sheet)
    if not m_dimension:
        raise ValueError("Missing worksheet dimension in `sheet1.xml`.")
    c_dimension_ref = m_dimension.group(1).decode("ascii")
    c_expected_dimension = f"A1:C{expected_rows_total}"
    if c_dimension_ref != c_expected_dimension:
        raise ValueError(
            f"Dimension mismatch: expected={c_expected_dimension}, got={c_dimension_ref}."
        )

    n_rows_from_tags = v_xml_sheet.count(b"<row ")
    if n_rows_from_tags != expected_rows_total:
        raise ValueError(
            f"<row> tag count mismatch: expected={expected_rows_total}, got={n_rows_from_tags}."
        )


def run_one_write(
    *, scenario: GridBenchmarkScenario, path_xlsx_out: Path
) -> tuple[float, float]:
    """Return ``(seconds_to_headers, seconds_total)``."""
    n_t_start = perf_counter()
    dt_start = datetime(2018, 1, 1)
    options = SpecXlsxWriteOptions(if_streaming=scenario.if_streaming, n_rows_buffered_warn=None)

    with XlsxWriter(path_xlsx_out, options=options) as xw:
        sw = xw.create_sheet("Test")
        for _header in L_HEADERS:
            sw.write(_header, HEADER_STYLE)
        n_t_headers = perf_counter() - n_t_start

        for n_idx in range(scenario.n_rows):
            dt_row = dt_start + timedelta(days=n_idx)
            sw.newline()
            sw.write(dt_row)
            sw.write(dt_row.replace(tzinfo=timezone.utc).timestamp() * 1000)
            sw.write(n_idx)

    return n_t_headers, perf_counter() - n_t_start


def benchmark_scenario(
    *,
    scenario: GridBenchmarkScenario,
    repeat: int,
    warmup: int,
    path_dir_tmp: Path,
) -> GridBenchmarkStats:
    for n_idx in range(warmup):
        path_file_out = path_dir_tmp / f"{scenario.name}_warmup_{n_idx}.xlsx"
        run_one_write(scenario=scenario, path_xlsx_out=path_file_out)
        path_file_out.unlink(missing_ok=True)

    l_times_seconds: list[float] = []
    l_header_seconds: list[float] = []
    l_output_size_bytes: list[int] = []

    for n_idx in range(repeat):
        path_file_out = path_dir_tmp / f"{scenario.name}_{n_idx}.xlsx"
        n_headers, n_elapsed = run_one_write(scenario=scenario, path_xlsx_out=path_file_out)
        validate_xlsx_output(
            path_xlsx_out=path_file_out,
            expected_rows_total=scenario.n_rows + 1,
        )
        l_times_seconds.append(n_elapsed)
        l_header_seconds.append(n_headers)
        l_output_size_bytes.append(path_file_out.stat().st_size)
        path_file_out.unlink(missing_ok=True)

    return GridBenchmarkStats(
        scenario=scenario,
        repeats=repeat,
        warmup_runs=warmup,
        times_seconds=l_times_seconds,
        header_seconds_mean=statistics.mean(l_header_seconds),
        mean_seconds=statistics.mean(l_times_seconds),
        median_seconds=statistics.median(l_times_seconds),
        min_seconds=min(l_times_seconds),
        max_seconds=max(l_times_seconds),
        stdev_seconds=(
            statistics.stdev(l_times_seconds) if len(l_times_seconds) > 1 else 0.0
        ),
        output_size_bytes_mean=round(statistics.mean(l_output_size_bytes)),
    )


def render_markdown_summary(payload: dict[str, object]) -> str:
    l_scenarios = payload["scenarios"]
    assert isinstance(l_scenarios, list)

    l_lines = [
        "# Grid Writer Benchmark Record",
        "",
        f"- Timestamp (UTC): `{payload['timestamp_utc']}`",
        f"- Command: `{payload['command']}`",
        f"- Platform: `{payload['platform']}`",
        f"- Python: `{payload['python_version']}`",
        f"- `reportkit`: `{payload['reportkit_version']}`",
        "",
        "| scenario | rows | streaming | repeat | median_s | mean_s | min_s | max_s | stdev_s | mean_size_mb |",
        "| --- | ---: | --- | ---: | ---: | ---: | ---: | ---: | ---: | ---: |",
    ]
    for item in l_scenarios:
        assert isinstance(item, dict)
        cfg = item["scenario"]
        n_size_mb = float(item["output_size_bytes_mean"]) / (1024 * 1024)
        l_lines.append(
            f"| {cfg['name']} | {cfg['n_rows']} | {cfg['if_streaming']} | "
            f"{item['repeats']} | {item['median_seconds']:.3f} | "
            f"{item['mean_seconds']:.3f} | {item['min_seconds']:.3f} | "
            f"{item['max_seconds']:.3f} | {item['stdev_seconds']:.3f} | {n_size_mb:.2f} |"
        )
    return "\n".join(l_lines) + "\n"


def main() -> int:
    args = parse_args()
    if args.rows < 1:
        raise ValueError("--rows must be >= 1")
    if args.repeat < 1:
        raise ValueError("--repeat must be >= 1")
    if args.warmup < 0:
        raise ValueError("--warmup must be >= 0")

    args.out_dir.mkdir(parents=True, exist_ok=True)
    ts = datetime.now(timezone.utc)
    c_timestamp_compact = ts.strftime("%Y%m%dT%H%M%SZ")

    with tempfile.TemporaryDirectory(prefix="reportkit_grid_bench_") as c_dir_tmp:
        l_stats = [
            benchmark_scenario(
                scenario=cfg_scenario,
                repeat=args.repeat,
                warmup=args.warmup,
                path_dir_tmp=Path(c_dir_tmp),
            )
            for cfg_scenario in build_scenarios(n_rows=args.rows, mode=args.mode)
        ]

    payload = {
        "timestamp_utc": ts.isoformat(),
        "command": " ".join(sys.argv),
        "platform": platform.platform(),
        "python_version": sys.version.split()[0],
        "reportkit_version": detect_reportkit_version(),
        "repeat": args.repeat,
        "warmup": args.warmup,
        "scenarios": [asdict(item) for item in l_stats],
    }

    path_file_json = args.out_dir / f"grid_writer_{c_timestamp_compact}.json"
    path_file_md = args.out_dir / f"grid_writer_{c_timestamp_compact}.md"
    path_file_json.write_text(
        json.dumps(payload, ensure_ascii=False, indent=2) + "\n", encoding="utf-8"
    )
    path_file_md.write_text(render_markdown_summary(payload), encoding="utf-8")

    print(path_file_json)
    print(path_file_md)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
