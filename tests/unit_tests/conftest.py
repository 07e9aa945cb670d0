import os
import tempfile

import matplotlib
import numpy as np
import pandas as pd
import pytest

matplotlib.use("Agg")
from matplotlib import pyplot as plt

from alphaconsensus.identification.loader import load_assumptions
from alphaconsensus.identification.proteins import ProteinDatabase

AMINO_ACIDS = "ACDEFGHIKLMNPQRSTVWY"


def _sequence(i: int) -> str:
    """Unique tryptic looking sequence for every index below 8000."""
    return (
        "".join(AMINO_ACIDS[(i // 20**k) % 20] for k in range(3)) + "PEPTIDEK"
    )


def mock_assumption_df(
    n_spectra: int = 200,
    advocates: tuple[str, ...] = ("engine_a", "engine_b"),
    n_proteins: int = 50,
    seed: int = 42,
) -> pd.DataFrame:
    """Create a normalized assumption table with every fifth spectrum matching a decoy.

    Target first hits score between 0 and 0.5, decoy first hits between 0.3 and 1.

    Every advocate proposes the same first hit for a spectrum and a worse scoring second hit.
    Charges alternate between 2 and 3, every third peptide carries an oxidation.

    Parameters
    ----------

    n_spectra : int
        Number of spectra.

    advocates : tuple[str, ...]
        Names of the advocates, every advocate scores every spectrum.

    n_proteins : int
        Number of target and decoy accessions the peptides are distributed over.

    seed : int
        Seed of the score generator.

    Returns
    -------

    assumption_df : pd.DataFrame
        Assumption table with one row per assumption.

    """
    rng = np.random.default_rng(seed)

    rows = []
    for i in range(n_spectra):
        is_decoy = i % 5 == 0
        protein = f"P{i % n_proteins:05d}"
        if is_decoy:
            protein = "REV_" + protein

        for advocate in advocates:
            score = rng.uniform(0.3, 1) if is_decoy else rng.uniform(0, 0.5)
            rows.append(
                {
                    "spectrum_key": f"spectrum_{i}",
                    "advocate": advocate,
                    "sequence": _sequence(i),
                    "charge": 2 + i % 2,
                    "score": score,
                    "proteins": protein,
                    "modifications": "Oxidation@3" if i % 3 == 0 else "",
                    "rank": 1,
                }
            )
            rows.append(
                {
                    "spectrum_key": f"spectrum_{i}",
                    "advocate": advocate,
                    "sequence": _sequence(i + n_spectra),
                    "charge": 2 + i % 2,
                    "score": score + 1,
                    "proteins": f"P{(i + 1) % n_proteins:05d}",
                    "modifications": "",
                    "rank": 2,
                }
            )

    return pd.DataFrame(rows)


@pytest.fixture
def assumption_df():
    return mock_assumption_df()


@pytest.fixture
def identification(assumption_df):
    return load_assumptions(assumption_df, ProteinDatabase())


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")


def random_tempfolder():
    """Create a randomly named temp folder in the system temp folder

    Returns
    -------
    path : str
        Path to the created temp folder

    """
    tempdir = tempfile.gettempdir()
    # 6 alphanumeric characters
    random_foldername = "alphaconsensus_" + "".join(
        np.random.choice(list("abcdefghijklmnopqrstuvwxyz0123456789"), 6)
    )
    path = os.path.join(tempdir, random_foldername)
    os.makedirs(path, exist_ok=True)
    print(f"Created temp folder: {path}")
    return path
