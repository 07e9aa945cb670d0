"""Target/decoy score histogram with posterior error probability and FDR estimation."""

# native imports
import logging

# third party imports
import numba as nb
import numpy as np
import pandas as pd

# alphaconsensus imports
from alphaconsensus.exceptions import NoDecoyObservationsError, NotCalibratedError
from alphaconsensus.utils import USE_NUMBA_CACHING

logger = logging.getLogger()


@nb.njit(cache=USE_NUMBA_CACHING)
def _get_n_max(n_target: np.ndarray, n_decoy: np.ndarray) -> int:
    """Largest number of target observations found between two consecutive decoy-bearing scores.

    Parameters
    ----------

    n_target : np.ndarray
        Target counts per distinct score, ascending score order.

    n_decoy : np.ndarray
        Decoy counts per distinct score, ascending score order.

    Returns
    -------
    int
        Largest target gap. Targets before the first and after the last decoy are not counted.
    """
    n_max = 0
    running = 0
    seen_decoy = False
    for i in range(len(n_target)):
        if n_decoy[i] > 0:
            if seen_decoy and running > n_max:
                n_max = running
            seen_decoy = True
            running = 0
        else:
            running += n_target[i]
    return n_max


@nb.njit(cache=USE_NUMBA_CACHING)
def _window_pep(
    n_target: np.ndarray, n_decoy: np.ndarray, half_window: int
) -> np.ndarray:
    """Decoy fraction of the observations in a sliding window centred on every distinct score.

    The window grows to both sides of a score until at least `half_window` observations are collected
    on each side or the end of the histogram is reached.

    Parameters
    ----------

    n_target : np.ndarray
        Target counts per distinct score, ascending score order.

    n_decoy : np.ndarray
        Decoy counts per distinct score, ascending score order.

    half_window : int
        Number of observations to collect on each side.

    Returns
    -------
    np.ndarray
        Posterior error probability per distinct score, decoys divided by all observations of the window.
    """
    n = len(n_target)
    pep = np.ones(n, dtype=np.float64)

    for i in range(n):
        targets = n_target[i]
        decoys = n_decoy[i]

        collected = 0
        j = i - 1
        while j >= 0 and collected < half_window:
            targets += n_target[j]
            decoys += n_decoy[j]
            collected += n_target[j] + n_decoy[j]
            j -= 1

        collected = 0
        j = i + 1
        while j < n and collected < half_window:
            targets += n_target[j]
            decoys += n_decoy[j]
            collected += n_target[j] + n_decoy[j]
            j += 1

        if targets + decoys > 0:
            pep[i] = decoys / (targets + decoys)

    return pep


def _reverse_running_minimum(values: np.ndarray) -> np.ndarray:
    """Make an array non-decreasing by taking the minimum of every element and all elements after it."""
    return np.flip(np.minimum.accumulate(np.flip(values)))


class ScoreHistogram:
    def __init__(self):
        """Target and decoy observations of a score, lower scores being better.

        Observations are kept as target and decoy counts per distinct score. The distinct scores are
        put in ascending order once, when they are first needed after a change. After all observations
        were added, `estimate_statistics` derives a monotonic posterior error probability (PEP) curve
        and q-values which can then be looked up.
        """
        # score -> [n_target, n_decoy]
        self._counts: dict[float, list[int]] = {}
        self._sorted_scores: list[float] | None = []
        self._n_target_total = 0
        self._n_decoy_total = 0

        self._calibrated = False
        self.n_max = 0
        self.window_size = 0

        self._score_array = np.empty(0, dtype=np.float64)
        self._pep = np.empty(0, dtype=np.float64)
        self._fdr = np.empty(0, dtype=np.float64)
        self._q_values = np.empty(0, dtype=np.float64)

    def __len__(self):
        return len(self._counts)

    def __repr__(self):
        return f"<ScoreHistogram n_target={self.n_target}, n_decoy={self.n_decoy}, distinct_scores={len(self)}>"

    @property
    def n_target(self) -> int:
        return self._n_target_total

    @property
    def n_decoy(self) -> int:
        return self._n_decoy_total

    @property
    def n_observations(self) -> int:
        return self._n_target_total + self._n_decoy_total

    @property
    def is_calibrated(self) -> bool:
        return self._calibrated

    @property
    def scores(self) -> np.ndarray:
        return np.array(self._ordered_scores(), dtype=np.float64)

    def _ordered_scores(self) -> list[float]:
        if self._sorted_scores is None:
            self._sorted_scores = sorted(self._counts)
        return self._sorted_scores

    def _ordered_counts(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Distinct scores with their target and decoy counts, ascending score order."""
        scores = self._ordered_scores()
        n_target = np.fromiter(
            (self._counts[score][0] for score in scores), dtype=np.int64, count=len(scores)
        )
        n_decoy = np.fromiter(
            (self._counts[score][1] for score in scores), dtype=np.int64, count=len(scores)
        )
        return np.array(scores, dtype=np.float64), n_target, n_decoy

    def _add(self, score: float, n_target: int, n_decoy: int) -> None:
        counts = self._counts.get(score)
        if counts is None:
            self._counts[score] = [n_target, n_decoy]
            self._sorted_scores = None
        else:
            counts[0] += n_target
            counts[1] += n_decoy
        self._n_target_total += n_target
        self._n_decoy_total += n_decoy
        self._calibrated = False

    def add_point(self, score: float, is_decoy: bool) -> None:
        """Record one observation. Invalidates previously estimated statistics."""
        score = float(score)
        if np.isnan(score):
            raise ValueError("Cannot add a NaN score to a score histogram")
        if is_decoy:
            self._add(score, 0, 1)
        else:
            self._add(score, 1, 0)

    def remove_point(self, score: float, is_decoy: bool) -> None:
        """Remove one observation. The distinct score is dropped when it holds no observation anymore.

        Raises
        ------
        ValueError
            If no matching observation was recorded.
        """
        score = float(score)
        counts = self._counts.get(score)
        if counts is None:
            raise ValueError(f"Score {score} is not part of the histogram")

        i = 1 if is_decoy else 0
        if counts[i] == 0:
            kind = "decoy" if is_decoy else "target"
            raise ValueError(f"No {kind} observation recorded at score {score}")
        counts[i] -= 1
        if is_decoy:
            self._n_decoy_total -= 1
        else:
            self._n_target_total -= 1

        if counts[0] == 0 and counts[1] == 0:
            del self._counts[score]
            self._sorted_scores = None

        self._calibrated = False

    def merge(self, other: "ScoreHistogram") -> None:
        """Add all observations of another histogram to this one."""
        for score, (n_target, n_decoy) in other._counts.items():
            self._add(score, n_target, n_decoy)

    def estimate_statistics(self, min_window_size: int = 20) -> None:
        """Estimate the PEP curve and the q-values.

        Parameters
        ----------

        min_window_size : int, default 20
            Lower bound for the number of observations in the sliding PEP window.
            The window spans `max(2 * n_max, min_window_size)` observations where `n_max` is the largest
            number of targets found between two consecutive decoy-bearing scores.

        """
        self._score_array, n_target, n_decoy = self._ordered_counts()

        self.n_max = int(_get_n_max(n_target, n_decoy)) if len(n_target) > 0 else 0
        self.window_size = max(2 * self.n_max, min_window_size)

        if len(n_target) > 0:
            pep = _window_pep(n_target, n_decoy, self.window_size // 2)
            self._pep = _reverse_running_minimum(pep)
        else:
            self._pep = np.empty(0, dtype=np.float64)

        cum_target = np.cumsum(n_target)
        cum_decoy = np.cumsum(n_decoy)
        self._fdr = np.divide(
            cum_decoy,
            cum_target,
            out=np.full(len(cum_target), np.inf),
            where=cum_target > 0,
        )
        self._q_values = _reverse_running_minimum(self._fdr)

        self._calibrated = True

    def _check_lookup(self) -> None:
        if not self._calibrated:
            raise NotCalibratedError()
        if self._n_decoy_total == 0:
            raise NoDecoyObservationsError()

    def probability(self, score: float) -> float:
        """Posterior error probability at a score, linearly interpolated and clamped at both ends."""
        self._check_lookup()
        return float(np.interp(score, self._score_array, self._pep))

    def fdr_for_score(self, score: float) -> float:
        """q-value of the threshold `score`, 0 below the best score."""
        self._check_lookup()
        i = int(np.searchsorted(self._score_array, score, side="right")) - 1
        if i < 0:
            return 0.0
        return float(self._q_values[i])

    def score_limit_for_fdr(self, target_fdr: float) -> float:
        """Most permissive score threshold whose q-value does not exceed `target_fdr`.

        Returns
        -------
        float
            The largest distinct score passing, `-inf` if no score passes.
        """
        self._check_lookup()
        passing = np.nonzero(self._q_values <= target_fdr)[0]
        if len(passing) == 0:
            return -np.inf
        return float(self._score_array[passing[-1]])

    def is_thin(self, min_decoys: int) -> bool:
        return self._n_decoy_total < min_decoys

    def is_irregular(self, max_decoy_fraction: float) -> bool:
        """Whether decoys exceed `max_decoy_fraction` of the observations in the better-scoring half."""
        n_half = (self.n_observations + 1) // 2
        if n_half == 0:
            return False

        collected = 0
        decoys = 0
        for score in self._ordered_scores():
            n_target, n_decoy = self._counts[score]
            collected += n_target + n_decoy
            decoys += n_decoy
            if collected >= n_half:
                break

        return decoys / collected > max_decoy_fraction

    def is_suspicious(self, min_decoys: int, max_decoy_fraction: float) -> bool:
        return self.is_thin(min_decoys) or self.is_irregular(max_decoy_fraction)

    def to_frame(self) -> pd.DataFrame:
        """Distinct scores with their counts and, if calibrated, PEP, FDR and q-value."""
        scores, n_target, n_decoy = self._ordered_counts()
        df = pd.DataFrame({"score": scores, "n_target": n_target, "n_decoy": n_decoy})
        if self._calibrated:
            df["pep"] = self._pep
            df["fdr"] = self._fdr
            df["qval"] = self._q_values
        else:
            df["pep"] = np.nan
            df["fdr"] = np.nan
            df["qval"] = np.nan
        return df
