"""FDR based validation of the score records of every level."""

import logging
from dataclasses import replace

from alphaconsensus.constants.keys import MatchLevel, Stage
from alphaconsensus.exceptions import NoDecoyObservationsError, NotCalibratedError
from alphaconsensus.identification.matches import MatchRecord
from alphaconsensus.identification.store import Identification
from alphaconsensus.scoring.maps import ContextualScoreMap
from alphaconsensus.workflow.result import StageResult

logger = logging.getLogger()


class Validator:
    def __init__(self, identification: Identification, progress_reporter=None):
        self.identification = identification
        self.progress_reporter = progress_reporter

    def _is_cancelled(self) -> bool:
        return self.progress_reporter is not None and self.progress_reporter.is_cancelled()

    def _validated_records(
        self,
        level: str,
        score_map: ContextualScoreMap,
        target_fdr: float,
        result: StageResult,
    ) -> dict[str, MatchRecord] | None:
        limits: dict[str, float | None] = {}
        records = {}

        for key, record in self.identification.records(level).items():
            if self._is_cancelled():
                return None

            corrected_key = score_map.corrected_key(record.context_key)
            if corrected_key not in limits:
                try:
                    limits[corrected_key] = score_map.score_limit_for_fdr(
                        corrected_key, target_fdr
                    )
                except (NotCalibratedError, NoDecoyObservationsError, KeyError) as e:
                    result.add_fault(
                        f"{level} context '{corrected_key}' cannot be validated: {e}"
                    )
                    limits[corrected_key] = None

            limit = limits[corrected_key]
            records[key] = replace(
                record, validated=limit is not None and record.score <= limit
            )

        n_validated = sum(record.validated for record in records.values())
        logger.info(
            f"{n_validated:,} of {len(records):,} {level} matches validated at {target_fdr:.2%} FDR"
        )
        return records

    def validate(
        self,
        level: str,
        score_map: ContextualScoreMap,
        target_fdr: float,
    ) -> StageResult:
        """Flag every record of a level whose score passes the FDR limit of its context.

        A record is validated if its score is lower than or equal to the most permissive score limit of
        its corrected context at `target_fdr`. Limits are looked up once per corrected context. Records
        of contexts which cannot be calibrated stay not validated and the context is reported as fault.

        Parameters
        ----------
        level : str
            One of the `MatchLevel` constants.

        score_map : ContextualScoreMap
            Calibrated score map of the level.

        target_fdr : float
            Target false discovery rate as a fraction.

        Returns
        -------
        StageResult
            Number of validated records as value.

        """
        result = StageResult(Stage.VALIDATE)
        records = self._validated_records(level, score_map, target_fdr, result)
        if records is None:
            result.cancelled = True
            return result

        self.identification.set_records(level, records)
        result.value = sum(record.validated for record in records.values())
        return result

    def validate_all(
        self,
        psm_map: ContextualScoreMap,
        peptide_map: ContextualScoreMap,
        protein_map: ContextualScoreMap,
        fdrs: dict[str, float],
    ) -> StageResult:
        """Validate PSMs, peptides and proteins, each against its own score map and target FDR.

        Validation is not propagated between levels. Records of all levels are committed together.

        Parameters
        ----------
        fdrs : dict[str, float]
            Target FDR per `MatchLevel`.

        """
        result = StageResult(Stage.VALIDATE, value={})

        validated = {}
        for level, score_map in [
            (MatchLevel.PSM, psm_map),
            (MatchLevel.PEPTIDE, peptide_map),
            (MatchLevel.PROTEIN, protein_map),
        ]:
            records = self._validated_records(level, score_map, fdrs[level], result)
            if records is None:
                result.cancelled = True
                return result
            validated[level] = records

        for level, records in validated.items():
            self.identification.set_records(level, records)
            result.value[level] = sum(record.validated for record in records.values())

        return result
