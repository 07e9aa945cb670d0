# native imports
import json
import logging
import os
import threading
import time
import traceback
import typing
import warnings
from datetime import datetime, timedelta

# third party imports
import matplotlib
import numpy as np
from matplotlib.figure import Figure
from tqdm import tqdm

from alphaconsensus.constants.settings import FIGURES_FOLDER_NAME

# global variable which tracks if any logger has been initiated
# As soon as its instantiated the default logger will be configured with a path to save the log file
__is_initiated__ = False

# Add a new logging level to the default logger, level 21 is just above INFO (20)
# This has to happen at load time to make the .progress() method available even if no logger is instantiated
PROGRESS_LEVELV_NUM = 21
logging.PROGRESS = PROGRESS_LEVELV_NUM
logging.addLevelName(PROGRESS_LEVELV_NUM, "PROGRESS")


def progress(self, message, *args, **kws):
    if self.isEnabledFor(PROGRESS_LEVELV_NUM):
        # Yes, logger takes its '*args' as 'args'.
        self._log(PROGRESS_LEVELV_NUM, message, args, **kws)


logging.Logger.progress = progress


class DefaultFormatter(logging.Formatter):
    template = "%(levelname)s: %(message)s"

    grey = "\x1b[38;20m"
    yellow = "\x1b[33;20m"
    red = "\x1b[31;20m"
    bold_red = "\x1b[31;1m"
    green = "\x1b[32;20m"
    reset = "\x1b[0m"

    def __init__(self, use_ansi: bool = True):
        """
        Default formatter adding elapsed time and optional ANSI colors.

        Parameters
        ----------

        use_ansi : bool, default True
            Whether to use ANSI escape codes to color the output.

        """
        self.start_time = time.time()

        colors = {
            logging.DEBUG: "",
            logging.INFO: "",
            logging.PROGRESS: self.green,
            logging.WARNING: self.yellow,
            logging.ERROR: self.red,
            logging.CRITICAL: self.bold_red,
        }

        self.formatter = {
            level: logging.Formatter(
                color + self.template + self.reset
                if use_ansi and color
                else self.template
            )
            for level, color in colors.items()
        }

    def format(self, record: logging.LogRecord):
        """Format the log record.

        Parameters
        ----------

        record : logging.LogRecord
            Log record to format.

        Returns
        -------
        str
            Formatted log record.
        """

        elapsed = timedelta(seconds=record.created - self.start_time)
        formatter = self.formatter.get(record.levelno, self.formatter[logging.INFO])

        return f"{elapsed} {formatter.format(record)}"


def init_logging(
    log_folder: str = None, log_level: int = logging.INFO, overwrite: bool = True
):
    """Initialize the default logger.
    Sets the formatter and the console and file handlers.

    Parameters
    ----------

    log_folder : str, default None
        Path to the folder where the log file will be saved. If None, the log file will not be saved.

    log_level : int, default logging.INFO
        Log level to use. Can be logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR or logging.CRITICAL.

    overwrite : bool, default True
        Whether to overwrite the log file if it already exists.
    """

    global __is_initiated__

    logger = logging.getLogger()
    logger.handlers = []
    logger.setLevel(log_level)

    ch = logging.StreamHandler()
    ch.setLevel(log_level)
    ch.setFormatter(DefaultFormatter(use_ansi=True))
    logger.addHandler(ch)

    if log_folder is not None:
        os.makedirs(log_folder, exist_ok=True)
        log_name = os.path.join(log_folder, "log.txt")
        if os.path.exists(log_name) and overwrite:
            os.remove(log_name)
        fh = logging.FileHandler(log_name, encoding="utf-8")
        fh.setLevel(log_level)
        fh.setFormatter(DefaultFormatter(use_ansi=False))
        logger.addHandler(fh)

    __is_initiated__ = True


class Backend:
    """Generic backend for logging metrics, plots and strings.

    Implementations of the backend can implement the `log_figure`, `log_metric`, `log_string` and `log_event` methods.

    If the backend requires a context, it can implement the `__enter__` and `__exit__` methods.
    The parent `BackendPipeline` calls these methods when entering and exiting the context of a pipeline run.
    """

    REQUIRES_CONTEXT = False

    def log_figure(self, name: str, figure: typing.Any, *args, **kwargs):
        pass

    def log_metric(self, name: str, value: float, *args, **kwargs):
        pass

    def log_string(self, value: str, *args, **kwargs):
        pass

    def log_event(self, name: str, value: typing.Any, *args, **kwargs):
        pass


class FigureBackend(Backend):
    def __init__(self, path=None, default_savefig_kwargs=None) -> None:
        """Backend which saves figures to the `figures` subfolder of `path`.

        Parameters
        ----------

        path : str, default None
            Path to the parent folder where the figures will be saved. If None, an error will be raised.

        default_savefig_kwargs : dict, default {"dpi":300}
            Default arguments to pass to matplotlib.figure.Figure.savefig

        """
        if default_savefig_kwargs is None:
            default_savefig_kwargs = {"dpi": 300}
        self.path = path

        if self.path is None:
            raise ValueError(
                "FigureBackend requires an output folder to be set with the path parameter."
            )

        self.figures_path = os.path.join(self.path, FIGURES_FOLDER_NAME)
        os.makedirs(self.figures_path, exist_ok=True)

        self.default_savefig_kwargs = default_savefig_kwargs

    def log_figure(
        self,
        name: str,
        figure: Figure | np.ndarray,
        extension: str = "png",
    ):
        """Save a figure to the figures folder.

        Parameters
        ----------

        name : str
            Name of the figure. Will be used as the filename.

        figure : Figure | np.ndarray
            Figure to log. Can be a matplotlib figure or a numpy array.

        extension : str, default 'png'
            Extension to use for the figure.

        """

        filename = os.path.join(self.figures_path, f"{name}.{extension}")

        if isinstance(figure, matplotlib.figure.Figure):
            figure.savefig(filename, **self.default_savefig_kwargs)
        elif isinstance(figure, np.ndarray):
            matplotlib.image.imsave(filename, figure)
        else:
            warnings.warn(f"FigureBackend does not support type {type(figure)}")


class JSONLBackend(Backend):
    EVENTS_PATH = "events.jsonl"
    REQUIRES_CONTEXT = True

    def __init__(self, path=None) -> None:
        """Backend which writes metrics, strings and events to a JSONL file.

        Important: This backend requires a context to be used. Outside of a context all calls are no-ops.

        Parameters
        ----------

        path : str, default None
            Path to the parent folder where the output will be saved as `events.jsonl`. If None, an error will be raised.

        """
        self.path = path

        if self.path is None:
            raise ValueError(
                "JSONLBackend requires an output folder to be set with the path parameter."
            )

        self.events_path = os.path.join(self.path, self.EVENTS_PATH)
        self.entered_context = False
        self.start_time = 0

    def __enter__(self):
        self.entered_context = True
        self.start_time = datetime.now().timestamp()

        # empty the file if it exists
        with open(self.events_path, "w"):
            pass

        self.log_event("start", {})
        return self

    def __exit__(
        self, exc_type: typing.Any, exc_value: typing.Any, exc_traceback: typing.Any
    ):
        if exc_type is not None:
            exc_str = "".join(
                traceback.format_exception(exc_type, exc_value, exc_traceback)
            )
            self.log_event("stop", {"error": exc_str})
        else:
            self.log_event("stop", {})

        self.entered_context = False
        self.start_time = 0

    def _write(self, type_: str, name: str, value: typing.Any, verbosity=0):
        if not self.entered_context:
            return

        with open(self.events_path, "a") as f:
            message = {
                "absolute_time": datetime.now().isoformat(),
                "relative_time": datetime.now().timestamp() - self.start_time,
                "type": type_,
                "name": name,
                "value": value,
                "verbosity": verbosity,
            }
            f.write(json.dumps(message) + "\n")

    def log_event(self, name: str, value: typing.Any):
        self._write("event", name, value)

    def log_metric(self, name: str, value: float):
        self._write("metric", name, value)

    def log_string(self, value: str, verbosity: str = "info"):
        self._write("string", "string", value, verbosity)


class LogBackend(Backend):
    def __init__(self, path: str = None) -> None:
        if not __is_initiated__ or path is not None:
            init_logging(path)

        self.logger = logging.getLogger()
        super().__init__()

    def log_string(self, value: str, verbosity: str = "info"):
        if verbosity == "progress":
            self.logger.progress(value)
        elif verbosity == "info":
            self.logger.info(value)
        elif verbosity == "debug":
            self.logger.debug(value)
        elif verbosity == "warning":
            self.logger.warning(value)
        elif verbosity == "error":
            self.logger.error(value)
        elif verbosity == "critical":
            self.logger.critical(value)
        else:
            raise ValueError(f"Unknown verbosity level {verbosity}")


class BackendPipeline:
    def __init__(
        self,
        backends: list[Backend] = None,
    ):
        """Fan-out logger which forwards metrics, figures and strings to multiple backends.

        Parameters
        ----------

        backends : list[Backend], default []
            Instantiated backends to forward to.
        """
        if backends is None:
            backends = []
        self.backends = backends

    def __enter__(self):
        for backend in self.backends:
            if backend.REQUIRES_CONTEXT:
                backend.__enter__()
        return self

    def __exit__(self, exc_type, exc_value, exc_traceback):
        for backend in self.backends:
            if backend.REQUIRES_CONTEXT:
                backend.__exit__(exc_type, exc_value, exc_traceback)

    def log_figure(self, name: str, figure: typing.Any, *args, **kwargs):
        for backend in self.backends:
            backend.log_figure(name, figure, *args, **kwargs)

    def log_metric(self, name: str, value: float, *args, **kwargs):
        for backend in self.backends:
            backend.log_metric(name, value, *args, **kwargs)

    def log_string(self, value: str, *args, verbosity="info", **kwargs):
        for backend in self.backends:
            backend.log_string(value, *args, verbosity=verbosity, **kwargs)

    def log_event(self, name: str, value: typing.Any, *args, **kwargs):
        for backend in self.backends:
            backend.log_event(name, value, *args, **kwargs)


class ProgressReporter:
    def __init__(self, show_progress_bar: bool = True) -> None:
        """Cancellation and progress handle shared between the caller and the pipeline.

        Text reported through `report_text` is logged and kept so that it can be assembled into the final report.
        `cancel` may be called from any thread; the pipeline checks `is_cancelled` between matches and stages.

        Parameters
        ----------

        show_progress_bar : bool, default True
            Whether to display a tqdm progress bar while a stage iterates over matches.
        """
        self.show_progress_bar = show_progress_bar
        self.lines: list[str] = []
        self._cancelled = threading.Event()
        self._progress_bar = None

    def report_text(self, text: str) -> None:
        self.lines.append(text)
        logging.getLogger().progress(text)

    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def set_max_progress(self, total: int, description: str = "") -> None:
        """Start a new progress bar for `total` items, closing any previous one."""
        self.close_progress()
        if self.show_progress_bar:
            self._progress_bar = tqdm(total=total, desc=description, leave=False)

    def increment_progress(self, n: int = 1) -> None:
        if self._progress_bar is not None:
            self._progress_bar.update(n)

    def close_progress(self) -> None:
        if self._progress_bar is not None:
            self._progress_bar.close()
            self._progress_bar = None
