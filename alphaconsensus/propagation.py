"""Propagation of posterior error probabilities from PSMs to peptides to proteins."""

# native imports
import logging
from collections.abc import Callable

# alphaconsensus imports
from alphaconsensus.constants.keys import MatchLevel, Stage
from alphaconsensus.exceptions import MatchScoringError, NoDecoyObservationsError
from alphaconsensus.identification.matches import MatchRecord
from alphaconsensus.identification.store import Identification
from alphaconsensus.scoring.maps import (
    ContextualScoreMap,
    PeptideScoreMap,
    ProteinScoreMap,
    PsmScoreMap,
)
from alphaconsensus.utils import map_matches, product
from alphaconsensus.workflow.result import StageResult

logger = logging.getLogger()


class ProbabilityPropagator:
    def __init__(
        self,
        identification: Identification,
        psm_map: PsmScoreMap,
        peptide_map: PeptideScoreMap,
        protein_map: ProteinScoreMap,
        progress_reporter=None,
        thread_count: int = 1,
    ):
        """Score, calibrate and attach posterior error probabilities level by level.

        Every level follows the same pattern: score every match (optionally in parallel), accumulate
        the scores into a new score map, cure and calibrate the map, look up the PEP of every
        match and commit all records of the level at once.

        Parameters
        ----------
        identification : Identification
            Store holding the matches and receiving the records.

        psm_map, peptide_map, protein_map : ContextualScoreMap
            Score maps of the three levels.

        progress_reporter : ProgressReporter, optional
            Used to check for cancellation and to report progress.

        thread_count : int, default 1
            Number of threads used to score the matches.

        """
        self.identification = identification
        self.psm_map = psm_map
        self.peptide_map = peptide_map
        self.protein_map = protein_map
        self.progress_reporter = progress_reporter
        self.thread_count = thread_count

    def _is_cancelled(self) -> bool:
        return self.progress_reporter is not None and self.progress_reporter.is_cancelled()

    def _lookup_probabilities(
        self,
        scored: list[tuple[str, str, float]],
        score_map: ContextualScoreMap,
    ) -> dict[str, MatchRecord] | None:
        """Create the records of all scored matches with the PEP of the calibrated map, None if cancelled."""
        records = {}
        for key, context_key, score in scored:
            if self._is_cancelled():
                return None
            try:
                probability = score_map.probability(context_key, score)
            except NoDecoyObservationsError:
                probability = None
            records[key] = MatchRecord(score, context_key, probability)
        return records

    def _score_level(
        self,
        name: str,
        level: str,
        map_name: str,
        score_match: Callable,
        is_decoy: Callable,
    ) -> StageResult:
        """Score all matches of a level into a fresh score map which replaces `map_name` on success."""
        result = StageResult(name)
        score_map = getattr(self, map_name).empty_like()
        matches = list(self.identification.matches(level).values())

        def task(match):
            try:
                return match.key, score_map.key_for(match), score_match(match), None
            except Exception as e:
                return match.key, None, None, e

        if self.progress_reporter is not None:
            self.progress_reporter.set_max_progress(len(matches), name)

        # scores are computed in parallel, accumulation into the map stays single threaded
        scored = []
        outcomes = map_matches(task, matches, self.thread_count, self.progress_reporter)
        for match, (key, context_key, score, error) in zip(
            matches, outcomes, strict=True
        ):
            if self._is_cancelled():
                result.cancelled = True
                break
            if error is not None:
                result.add_fault(f"{level} {key} skipped: {error}")
                continue
            score_map.add_point(context_key, score, is_decoy(match))
            scored.append((key, context_key, score))
        outcomes.close()

        if self.progress_reporter is not None:
            self.progress_reporter.close_progress()

        if result.cancelled:
            return result

        score_map.cure()
        score_map.estimate_statistics()

        for context_key in score_map.keys_without_decoys():
            result.add_fault(
                f"{score_map.CONTEXT_NAME} context '{context_key}' holds no decoy, no PEP can be estimated"
            )

        records = self._lookup_probabilities(scored, score_map)
        if records is None:
            result.cancelled = True
            return result

        self.identification.set_records(level, records)
        setattr(self, map_name, score_map)
        result.value = len(records)
        logger.info(f"{name}: scored {len(records):,} of {len(matches):,} {level} matches")
        return result

    def _check_upstream(
        self, name: str, upstream_map: ContextualScoreMap
    ) -> StageResult | None:
        if not upstream_map.is_calibrated:
            result = StageResult(name)
            result.add_fault(
                f"{upstream_map.__class__.__name__} is not calibrated, {name} cannot run"
            )
            return result
        return None

    def _upstream_probability(self, level: str, key: str, owner_key: str) -> float:
        record = self.identification.get_record(level, key)
        if record is None:
            raise MatchScoringError(owner_key, f"{level} {key} has no score record")
        if record.probability is None:
            raise MatchScoringError(owner_key, f"{level} {key} has no PEP")
        return record.probability

    def _score_spectrum_match(self, spectrum_match) -> float:
        if spectrum_match.combined_score is None:
            raise MatchScoringError(spectrum_match.key, "no combined score")
        return spectrum_match.combined_score

    def _score_peptide_match(self, peptide_match) -> float:
        if len(peptide_match.spectrum_keys) == 0:
            raise MatchScoringError(peptide_match.key, "no supporting spectrum")
        return product(
            self._upstream_probability(MatchLevel.PSM, spectrum_key, peptide_match.key)
            for spectrum_key in peptide_match.spectrum_keys
        )

    def _score_protein_match(self, protein_match) -> float:
        if len(protein_match.peptide_keys) == 0:
            raise MatchScoringError(protein_match.key, "no supporting peptide")
        return product(
            self._upstream_probability(MatchLevel.PEPTIDE, peptide_key, protein_match.key)
            for peptide_key in protein_match.peptide_keys
        )

    def score_psms(self) -> StageResult:
        return self._score_level(
            Stage.PSM_SCORE,
            MatchLevel.PSM,
            "psm_map",
            self._score_spectrum_match,
            self.identification.is_decoy_spectrum,
        )

    def attach_psm_probabilities(self) -> StageResult:
        """Look up the PEP of every PSM record again from the current PSM map."""
        result = self._check_upstream(Stage.PSM_SCORE, self.psm_map)
        if result is not None:
            return result

        result = StageResult(Stage.PSM_SCORE)
        scored = [
            (key, record.context_key, record.score)
            for key, record in self.identification.records(MatchLevel.PSM).items()
        ]
        records = self._lookup_probabilities(scored, self.psm_map)
        if records is None:
            result.cancelled = True
            return result

        self.identification.set_records(MatchLevel.PSM, records)
        result.value = len(records)
        return result

    def score_peptides(self) -> StageResult:
        result = self._check_upstream(Stage.PEPTIDE_SCORE, self.psm_map)
        if result is not None:
            return result
        return self._score_level(
            Stage.PEPTIDE_SCORE,
            MatchLevel.PEPTIDE,
            "peptide_map",
            self._score_peptide_match,
            self.identification.is_decoy_peptide,
        )

    def score_proteins(self, name: str = Stage.PROTEIN_SCORE) -> StageResult:
        result = self._check_upstream(name, self.peptide_map)
        if result is not None:
            return result
        return self._score_level(
            name,
            MatchLevel.PROTEIN,
            "protein_map",
            self._score_protein_match,
            self.identification.is_decoy_protein,
        )
