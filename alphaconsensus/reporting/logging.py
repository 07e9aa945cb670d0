import logging
import os
import platform
import socket
from datetime import datetime
from importlib import metadata

import matplotlib
import numba
import numpy as np
import pandas as pd

import alphaconsensus
from alphaconsensus.utils import USE_NUMBA_CACHING

logger = logging.getLogger()


def print_logo() -> None:
    """Print the alphaconsensus logo and version."""
    logger.progress("        _      _                                                 ")
    logger.progress("   __ _| |_ __| |_  __ _ __ ___ _ _  ___ ___ _ _  ____  _ ___")
    logger.progress("  / _` | | '_ \\ ' \\/ _` / _/ _ \\ ' \\(_-</ -_) ' \\(_-< || (_-<")
    logger.progress("  \\__,_|_| .__/_||_\\__,_\\__\\___/_||_/__/\\___|_||_/__/\\_,_/__/")
    logger.progress("         |_|                                                 ")
    logger.progress("")
    logger.progress(f"version: {alphaconsensus.__version__}")


def print_environment() -> None:
    """Log information about the python environment."""

    logger.info(f"hostname: {socket.gethostname()}")
    logger.progress(
        f"os: {platform.system()} {platform.release()} ({platform.machine()})"
    )
    logger.progress(
        f"python: {platform.python_version()} ({platform.python_implementation()})"
    )
    if slurm_job_id := os.environ.get("SLURM_JOB_ID"):
        logger.info(f"slurm_job_id: {slurm_job_id}")

    now = datetime.today().strftime("%Y-%m-%d %H:%M:%S")
    logger.info(f"date: {now}")

    logger.info("================ Scientific stack =================")
    logger.info(f"{'numpy':<15} : {np.__version__}")
    logger.info(f"{'pandas':<15} : {pd.__version__}")
    logger.info(f"{'numba':<15} : {numba.__version__}")
    logger.info(f"{'matplotlib':<15} : {matplotlib.__version__}")
    logger.info("===================================================")

    logger.info("================= Pip Environment =================")
    pip_env = [
        f"{dist.metadata['Name']}=={dist.version}" for dist in metadata.distributions()
    ]
    logger.info(" ".join(pip_env))
    logger.info("===================================================")

    if USE_NUMBA_CACHING:
        logger.info("Numba caching is activated.")
