import threading

import pytest

from alphaconsensus.reporting.reporting import ProgressReporter
from alphaconsensus.utils import map_matches, product
from alphaconsensus.workflow.result import StageResult
from alphaconsensus.workflow.timing import TimingManager


@pytest.mark.parametrize(
    "values, expected",
    [
        ([], 1.0),
        ([0.5], 0.5),
        ([0.5, 0.5, 0.2], 0.05),
        ((v for v in [0.1, 0.0]), 0.0),
    ],
)
def test_product(values, expected):
    assert product(values) == pytest.approx(expected)


@pytest.mark.parametrize("thread_count", [1, 4])
def test_map_matches_keeps_order(thread_count):
    counts = []
    progress_reporter = ProgressReporter(show_progress_bar=False)
    progress_reporter.increment_progress = lambda n=1: counts.append(n)

    results = list(
        map_matches(lambda x: x * 2, range(50), thread_count, progress_reporter)
    )

    assert results == [x * 2 for x in range(50)]
    assert len(counts) == 50


def test_map_matches_single_thread_runs_inline():
    thread_names = set()

    def record_thread(x):
        thread_names.add(threading.current_thread().name)
        return x

    list(map_matches(record_thread, range(10), thread_count=1))

    assert thread_names == {threading.current_thread().name}


def test_stage_result():
    result = StageResult("psm_score")
    assert result.ok

    result.add_fault("spectrum_1 skipped")
    assert not result.ok
    assert result.faults == ["spectrum_1 skipped"]

    assert not StageResult("validate", cancelled=True).ok


def test_timing_manager():
    timing_manager = TimingManager()

    timing_manager.set_start_time("consensus")
    timing_manager.set_end_time("consensus")
    timing_manager.set_start_time("psm_score")

    df = timing_manager.to_frame()
    lines = timing_manager.summary_lines()

    assert list(df.index) == ["consensus", "psm_score"]
    assert timing_manager.timings["consensus"]["duration"] >= 0
    assert len(lines) == 1
    assert lines[0].startswith("consensus: ")
