import json
import logging
import os
import sys

import numpy as np
import pytest
from matplotlib import pyplot as plt

from alphaconsensus.constants.settings import FIGURES_FOLDER_NAME
from alphaconsensus.reporting import reporting
from alphaconsensus.scoring.histogram import ScoreHistogram
from alphaconsensus.scoring.maps import PsmScoreMap
from alphaconsensus.scoring.plotting import log_score_map_figures, plot_score_histogram


@pytest.mark.skipif(sys.platform == "win32", reason="does not run on windows")
def test_logging(tmp_path):
    reporting.__is_initiated__ = False

    reporting.init_logging(tmp_path)

    python_logger = logging.getLogger()
    python_logger.progress("test")
    python_logger.info("test")
    python_logger.warning("test")
    python_logger.error("test")
    python_logger.critical("test")

    assert os.path.exists(os.path.join(tmp_path, "log.txt"))
    with open(os.path.join(tmp_path, "log.txt")) as f:
        assert len(f.readlines()) == 5


def test_backend():
    backend = reporting.Backend()
    backend.log_event("start_scoring", None)
    backend.log_metric("n_validated_psm", 100)
    backend.log_string("test")
    backend.log_figure("scatter", None)


def test_figure_backend(tmp_path):
    figure_backend = reporting.FigureBackend(path=tmp_path)

    fig, ax = plt.subplots(1, 1, figsize=(5, 5))
    ax.scatter(np.random.rand(10), np.random.rand(10))

    figure_backend.log_figure("scatter", fig)
    plt.close(fig)

    assert os.path.exists(os.path.join(tmp_path, FIGURES_FOLDER_NAME, "scatter.png"))


def test_figure_backend_requires_path():
    with pytest.raises(ValueError):
        reporting.FigureBackend()


def test_jsonl_backend(tmp_path):
    with reporting.JSONLBackend(path=tmp_path) as jsonl_backend:
        jsonl_backend.log_event("stage_aborted", "protein_group_resolve")
        jsonl_backend.log_metric("n_validated_psm", 100)
        jsonl_backend.log_string("test")

    with open(os.path.join(tmp_path, "events.jsonl")) as f:
        events = [json.loads(line) for line in f.readlines()]

    assert [event["name"] for event in events] == [
        "start",
        "stage_aborted",
        "n_validated_psm",
        "string",
        "stop",
    ]
    assert events[2]["type"] == "metric"
    assert events[2]["value"] == 100


def test_jsonl_backend_outside_context(tmp_path):
    jsonl_backend = reporting.JSONLBackend(path=tmp_path)

    jsonl_backend.log_metric("n_validated_psm", 100)

    assert not os.path.exists(os.path.join(tmp_path, "events.jsonl"))


def test_jsonl_backend_logs_error(tmp_path):
    with pytest.raises(RuntimeError):
        with reporting.JSONLBackend(path=tmp_path):
            raise RuntimeError("unexpected")

    with open(os.path.join(tmp_path, "events.jsonl")) as f:
        events = [json.loads(line) for line in f.readlines()]

    assert "RuntimeError: unexpected" in events[-1]["value"]["error"]


@pytest.mark.skipif(sys.platform == "win32", reason="does not run on windows")
def test_log_backend(tmp_path):
    reporting.__is_initiated__ = False

    stdout_backend = reporting.LogBackend(path=tmp_path)
    stdout_backend.log_string("test", verbosity="progress")
    stdout_backend.log_string("test", verbosity="info")
    stdout_backend.log_string("test", verbosity="warning")
    stdout_backend.log_string("test", verbosity="error")
    stdout_backend.log_string("test", verbosity="critical")

    with open(os.path.join(tmp_path, "log.txt")) as f:
        assert len(f.readlines()) == 5

    with pytest.raises(ValueError):
        stdout_backend.log_string("test", verbosity="verbose")


@pytest.mark.skipif(sys.platform == "win32", reason="does not run on windows")
def test_backend_pipeline(tmp_path):
    reporting.__is_initiated__ = False

    pipeline = reporting.BackendPipeline(
        backends=[
            reporting.LogBackend(path=tmp_path),
            reporting.JSONLBackend(path=tmp_path),
            reporting.FigureBackend(path=tmp_path),
        ]
    )

    with pipeline:
        pipeline.log_event("start_scoring", None)
        pipeline.log_metric("n_validated_psm", 100)
        pipeline.log_string("test")

        fig, ax = plt.subplots(1, 1, figsize=(5, 5))
        ax.scatter(np.random.rand(10), np.random.rand(10))
        pipeline.log_figure("scatter", fig)
        plt.close(fig)

    assert os.path.exists(os.path.join(tmp_path, "log.txt"))
    assert os.path.exists(os.path.join(tmp_path, "events.jsonl"))
    assert os.path.exists(os.path.join(tmp_path, FIGURES_FOLDER_NAME, "scatter.png"))


def test_progress_reporter():
    progress_reporter = reporting.ProgressReporter()
    progress_reporter.report_text("scoring PSMs")

    progress_reporter.set_max_progress(3, "psm_score")
    progress_reporter.increment_progress()
    progress_reporter.increment_progress(2)
    progress_reporter.close_progress()

    assert progress_reporter.lines == ["scoring PSMs"]
    assert not progress_reporter.is_cancelled()

    progress_reporter.cancel()
    assert progress_reporter.is_cancelled()


def test_progress_reporter_without_bar():
    progress_reporter = reporting.ProgressReporter(show_progress_bar=False)

    progress_reporter.set_max_progress(3)
    progress_reporter.increment_progress()
    progress_reporter.close_progress()

    assert progress_reporter._progress_bar is None


def test_plot_score_histogram():
    histogram = ScoreHistogram()
    for i in range(20):
        histogram.add_point(i * 0.01, i % 4 == 0)
    histogram.estimate_statistics()

    fig = plot_score_histogram(histogram.to_frame(), title="psm 2")

    assert fig.axes[0].get_xlabel() == "score"
    assert fig._suptitle.get_text() == "psm 2"


def test_log_score_map_figures():
    score_map = PsmScoreMap()
    for i in range(20):
        score_map.add_point("2", i * 0.01, i % 4 == 0)
    score_map.add_point("3", 0.1, False)
    score_map.histograms["2"].estimate_statistics()

    figures = []

    class CollectingBackend(reporting.Backend):
        def log_figure(self, name, figure, *args, **kwargs):
            figures.append(name)

    log_score_map_figures(score_map, "psm", CollectingBackend())

    # uncalibrated contexts are skipped
    assert figures == ["psm_2"]
