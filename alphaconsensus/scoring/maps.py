"""Score histograms organised by context, e.g. one histogram per charge state."""

# native imports
import logging

# alphaconsensus imports
from alphaconsensus.constants.keys import ConfigKeys
from alphaconsensus.exceptions import MatchScoringError
from alphaconsensus.scoring.histogram import ScoreHistogram

logger = logging.getLogger()

# contexts which are too thin to be calibrated on their own are merged into this one
DUMMY_KEY = "grouped"


class ContextualScoreMap:
    # human readable name of the contexts, used in reports
    CONTEXT_NAME = "context"

    def __init__(
        self,
        min_decoys: int = 10,
        min_window_size: int = 20,
        max_decoy_fraction: float = 0.5,
    ):
        """Collection of score histograms indexed by a context key.

        Contexts with fewer than `min_decoys` decoy observations are merged into the coarser context
        `DUMMY_KEY` by `cure`. Lookups of a merged context are transparently redirected.

        Parameters
        ----------

        min_decoys : int, default 10
            Minimum number of decoy observations for a context to be calibrated on its own.

        min_window_size : int, default 20
            Lower bound of the sliding window used for PEP estimation, see `ScoreHistogram.estimate_statistics`.

        max_decoy_fraction : float, default 0.5
            Contexts with a larger decoy fraction in their better-scoring half are flagged as suspicious.

        """
        self.min_decoys = min_decoys
        self.min_window_size = min_window_size
        self.max_decoy_fraction = max_decoy_fraction

        self.histograms: dict[str, ScoreHistogram] = {}
        self._corrected_keys: dict[str, str] = {}

    @classmethod
    def from_config(cls, config):
        statistics = config[ConfigKeys.STATISTICS]
        return cls(
            min_decoys=statistics[ConfigKeys.MIN_DECOYS],
            min_window_size=statistics[ConfigKeys.MIN_WINDOW_SIZE],
            max_decoy_fraction=statistics[ConfigKeys.MAX_DECOY_FRACTION],
        )

    def __len__(self):
        return len(self.histograms)

    def __repr__(self):
        return f"<{self.__class__.__name__} contexts={sorted(self.histograms)}>"

    def key_for(self, match) -> str:
        """Context key of a match."""
        raise NotImplementedError(
            f"key_for() not implemented for {self.__class__.__name__}"
        )

    def keys(self) -> list[str]:
        return list(self.histograms.keys())

    def corrected_key(self, key: str) -> str:
        """Context that holds the observations of `key` after curing."""
        return self._corrected_keys.get(key, key)

    def get_histogram(self, key: str) -> ScoreHistogram:
        corrected_key = self.corrected_key(key)
        if corrected_key not in self.histograms:
            raise KeyError(
                f"Context '{key}' is not part of the {self.__class__.__name__}"
            )
        return self.histograms[corrected_key]

    def add_point(self, key: str, score: float, is_decoy: bool) -> None:
        corrected_key = self.corrected_key(key)
        if corrected_key not in self.histograms:
            self.histograms[corrected_key] = ScoreHistogram()
        self.histograms[corrected_key].add_point(score, is_decoy)

    def remove_point(self, key: str, score: float, is_decoy: bool) -> None:
        self.get_histogram(key).remove_point(score, is_decoy)

    def cure(self) -> None:
        """Merge every thin context into `DUMMY_KEY`.

        Maps with a single context are left untouched.
        """
        if len(self.histograms) <= 1:
            return

        thin_keys = [
            key
            for key, histogram in self.histograms.items()
            if key != DUMMY_KEY and histogram.is_thin(self.min_decoys)
        ]
        if len(thin_keys) == 0:
            return

        grouped = self.histograms.get(DUMMY_KEY, ScoreHistogram())
        for key in thin_keys:
            logger.info(
                f"{self.CONTEXT_NAME} '{key}' has fewer than {self.min_decoys} decoys, merging into '{DUMMY_KEY}'"
            )
            grouped.merge(self.histograms.pop(key))
            self._corrected_keys[key] = DUMMY_KEY

        self.histograms[DUMMY_KEY] = grouped

    def estimate_statistics(self) -> None:
        for histogram in self.histograms.values():
            histogram.estimate_statistics(self.min_window_size)

    @property
    def is_calibrated(self) -> bool:
        return len(self.histograms) > 0 and all(
            histogram.is_calibrated for histogram in self.histograms.values()
        )

    def probability(self, key: str, score: float) -> float:
        return self.get_histogram(key).probability(score)

    def score_limit_for_fdr(self, key: str, target_fdr: float) -> float:
        return self.get_histogram(key).score_limit_for_fdr(target_fdr)

    def suspicious_keys(self) -> list[str]:
        return sorted(
            key
            for key, histogram in self.histograms.items()
            if histogram.is_suspicious(self.min_decoys, self.max_decoy_fraction)
        )

    def keys_without_decoys(self) -> list[str]:
        return sorted(
            key
            for key, histogram in self.histograms.items()
            if histogram.n_decoy == 0
        )

    def empty_like(self) -> "ContextualScoreMap":
        """New empty map of the same type and settings."""
        return self.__class__(
            min_decoys=self.min_decoys,
            min_window_size=self.min_window_size,
            max_decoy_fraction=self.max_decoy_fraction,
        )

    def reset(self) -> None:
        self.histograms = {}
        self._corrected_keys = {}


class AdvocateScoreMap(ContextualScoreMap):
    """Raw scores of the first hits, one context per advocate."""

    CONTEXT_NAME = "advocate"

    def key_for(self, assumption) -> str:
        return str(assumption.advocate)


class PsmScoreMap(ContextualScoreMap):
    """Combined spectrum scores, one context per charge state of the best assumption."""

    CONTEXT_NAME = "PSM charge"

    def key_for(self, spectrum_match) -> str:
        if spectrum_match.best_assumption is None:
            raise MatchScoringError(spectrum_match.key, "no best assumption selected")
        return str(spectrum_match.best_assumption.charge)


class PeptideScoreMap(ContextualScoreMap):
    CONTEXT_NAME = "peptide modification profile"

    def key_for(self, peptide_match) -> str:
        return peptide_match.peptide.modification_profile


class ProteinScoreMap(ContextualScoreMap):
    CONTEXT_NAME = "protein"

    PROTEIN_KEY = "all"

    def key_for(self, protein_match) -> str:
        return self.PROTEIN_KEY
