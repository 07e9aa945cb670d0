"""Diagnostic figures for target/decoy score histograms."""

import logging

import matplotlib as mpl
import matplotlib.pyplot as plt
from matplotlib.figure import Figure

from alphaconsensus.scoring.maps import ContextualScoreMap

logger = logging.getLogger()


def plot_score_histogram(df, title: str = "") -> Figure:
    """Plot target and decoy counts per score together with the PEP and q-value curves.

    Parameters
    ----------
    df : pd.DataFrame
        Output of `ScoreHistogram.to_frame`.

    title : str
        Title of the figure.

    Returns
    -------
    Figure
        The matplotlib figure. The caller is responsible for closing it.

    """
    fig, ax = plt.subplots(1, 2, figsize=(10, 4))

    ax[0].vlines(df["score"], 0, df["n_target"], color="tab:blue", label="target")
    ax[0].vlines(df["score"], 0, df["n_decoy"], color="tab:red", label="decoy")
    ax[0].set_xlabel("score")
    ax[0].set_ylabel("observations")
    ax[0].legend()

    ax[1].plot(df["score"], df["pep"], label="PEP")
    ax[1].plot(df["score"], df["qval"].clip(upper=1), label="q-value")
    ax[1].set_ylim(-0.01, 1.01)
    ax[1].set_xlabel("score")
    ax[1].set_ylabel("probability")
    ax[1].legend()

    for axs in ax:
        # remove top and right spines
        axs.spines["top"].set_visible(False)
        axs.spines["right"].set_visible(False)

    ax[0].get_yaxis().set_major_formatter(
        mpl.ticker.FuncFormatter(lambda x, _p: format(int(x), ","))
    )

    fig.suptitle(title)
    fig.tight_layout()
    return fig


def log_score_map_figures(score_map: ContextualScoreMap, name: str, reporter) -> None:
    """Forward one figure per calibrated context of a score map to a reporting backend."""
    for key, histogram in score_map.histograms.items():
        if not histogram.is_calibrated or len(histogram) == 0:
            continue
        fig = plot_score_histogram(histogram.to_frame(), title=f"{name} {key}")
        reporter.log_figure(f"{name}_{key}", fig)
        plt.close(fig)
