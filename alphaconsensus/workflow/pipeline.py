"""Ordered execution of the scoring, inference and validation stages with re-entry points."""

# native imports
import logging

# alphaconsensus imports
from alphaconsensus.constants.keys import ConfigKeys, MatchLevel, Stage
from alphaconsensus.consensus import ConsensusResolver
from alphaconsensus.grouping import GroupResolutionSummary, ProteinGroupResolver
from alphaconsensus.identification.store import Identification
from alphaconsensus.propagation import ProbabilityPropagator
from alphaconsensus.reporting.reporting import ProgressReporter
from alphaconsensus.scoring.maps import (
    AdvocateScoreMap,
    PeptideScoreMap,
    ProteinScoreMap,
    PsmScoreMap,
)
from alphaconsensus.scoring.plotting import log_score_map_figures
from alphaconsensus.validate import Validator
from alphaconsensus.workflow.config import Config
from alphaconsensus.workflow.result import StageResult
from alphaconsensus.workflow.timing import TimingManager

logger = logging.getLogger()

STAGE_ORDER = [
    Stage.CONSENSUS,
    Stage.PSM_SCORE,
    Stage.PEPTIDE_SCORE,
    Stage.PROTEIN_SCORE,
    Stage.PROTEIN_GROUP_RESOLVE,
    Stage.PROTEIN_RESCORE,
    Stage.VALIDATE,
]


class PipelineOrchestrator:
    def __init__(
        self,
        identification: Identification,
        config: Config | None = None,
        progress_reporter: ProgressReporter | None = None,
        figure_reporter=None,
    ):
        """Run consensus, probability propagation, protein group resolution and validation in order.

        Every stage is contained: an unexpected exception aborts the stage, is added to the report and
        the following stages run on whatever results exist. Cancellation through the progress reporter is
        checked between stages and between matches, a cancelled stage does not commit anything.

        Parameters
        ----------
        identification : Identification
            Store holding the imported spectrum matches.

        config : Config, optional
            Configuration, the default configuration is used if not given.

        progress_reporter : ProgressReporter, optional
            Receives progress text and controls cancellation.

        figure_reporter : Backend or BackendPipeline, optional
            Receives diagnostic figures if `general.save_figures` is set.

        """
        self.identification = identification
        self.config = config if config is not None else Config.from_default()
        self.progress_reporter = (
            progress_reporter
            if progress_reporter is not None
            else ProgressReporter(show_progress_bar=False)
        )
        self.figure_reporter = figure_reporter

        general = self.config[ConfigKeys.GENERAL]
        thread_count = general[ConfigKeys.THREAD_COUNT]
        protein_inference = self.config[ConfigKeys.PROTEIN_INFERENCE]

        self.consensus = ConsensusResolver(
            identification,
            AdvocateScoreMap.from_config(self.config),
            self.progress_reporter,
            thread_count=thread_count,
        )
        self.propagator = ProbabilityPropagator(
            identification,
            PsmScoreMap.from_config(self.config),
            PeptideScoreMap.from_config(self.config),
            ProteinScoreMap.from_config(self.config),
            self.progress_reporter,
            thread_count=thread_count,
        )
        self.group_resolver = ProteinGroupResolver(
            identification,
            self.progress_reporter,
            similarity_threshold=protein_inference[ConfigKeys.SIMILARITY_THRESHOLD],
            min_token_length=protein_inference[ConfigKeys.MIN_TOKEN_LENGTH],
        )
        self.validator = Validator(identification, self.progress_reporter)

        self.timing_manager = TimingManager()
        self.results: dict[str, StageResult] = {}
        self.completed_stages: list[str] = []
        self.aborted_stages: list[str] = []
        self.cancelled_stage: str | None = None

        self._stages = {
            Stage.CONSENSUS: self._run_consensus,
            Stage.PSM_SCORE: self.propagator.score_psms,
            Stage.PEPTIDE_SCORE: self.propagator.score_peptides,
            Stage.PROTEIN_SCORE: self.propagator.score_proteins,
            Stage.PROTEIN_GROUP_RESOLVE: self._run_group_resolution,
            Stage.PROTEIN_RESCORE: self._run_protein_rescore,
            Stage.VALIDATE: self._run_validation,
        }

    @property
    def advocate_map(self) -> AdvocateScoreMap:
        return self.consensus.advocate_map

    @property
    def psm_map(self) -> PsmScoreMap:
        return self.propagator.psm_map

    @property
    def peptide_map(self) -> PeptideScoreMap:
        return self.propagator.peptide_map

    @property
    def protein_map(self) -> ProteinScoreMap:
        return self.propagator.protein_map

    def _run_consensus(self) -> StageResult:
        result = self.consensus.resolve()
        if not result.cancelled:
            self.identification.build_peptides_and_proteins()
        return result

    def _run_group_resolution(self) -> StageResult:
        if not self.config[ConfigKeys.PROTEIN_INFERENCE][ConfigKeys.RESOLVE_GROUPS]:
            logger.info("Protein group resolution is disabled")
            return StageResult(Stage.PROTEIN_GROUP_RESOLVE)
        return self.group_resolver.resolve(self.protein_map)

    def _run_protein_rescore(self) -> StageResult:
        return self.propagator.score_proteins(Stage.PROTEIN_RESCORE)

    def _run_validation(self) -> StageResult:
        return self.validator.validate_all(
            self.psm_map, self.peptide_map, self.protein_map, self.config.target_fdrs
        )

    def _run_stage(self, stage: str) -> StageResult:
        self.progress_reporter.report_text(f"Running {stage}")
        self.timing_manager.set_start_time(stage)

        try:
            result = self._stages[stage]()
        except Exception as e:
            logger.exception(f"Stage {stage} aborted: {e}")
            result = StageResult(stage)
            result.add_fault(f"aborted: {e.__class__.__name__}: {e}")
            self.aborted_stages.append(stage)

        self.timing_manager.set_end_time(stage)
        self.results[stage] = result
        return result

    def run_from(self, first_stage: str) -> str:
        """Run `first_stage` and all stages after it.

        Returns
        -------
        str
            The diagnostic report.
        """
        self.cancelled_stage = None
        stages = STAGE_ORDER[STAGE_ORDER.index(first_stage) :]

        for stage in stages:
            # results of downstream stages are invalid from here on
            if stage in self.completed_stages:
                self.completed_stages.remove(stage)
            if stage in self.aborted_stages:
                self.aborted_stages.remove(stage)
            self.results.pop(stage, None)

        for stage in stages:
            if self.progress_reporter.is_cancelled():
                self.cancelled_stage = stage
                break

            result = self._run_stage(stage)
            if result.cancelled:
                self.cancelled_stage = stage
                break
            if stage not in self.aborted_stages:
                self.completed_stages.append(stage)

        self.progress_reporter.close_progress()

        if (
            self.cancelled_stage is None
            and self.config[ConfigKeys.GENERAL][ConfigKeys.SAVE_FIGURES]
            and self.figure_reporter is not None
        ):
            self.log_figures()

        return self.build_report()

    def run(self) -> str:
        """Run all stages, returns the diagnostic report."""
        return self.run_from(Stage.CONSENSUS)

    def psm_map_changed(self) -> str:
        """Re-attach the PSM PEPs from the current PSM map and rerun all stages from peptide scoring."""
        self.timing_manager.set_start_time(Stage.PSM_SCORE)
        result = self.propagator.attach_psm_probabilities()
        self.timing_manager.set_end_time(Stage.PSM_SCORE)
        self.results[Stage.PSM_SCORE] = result
        if result.cancelled:
            self.cancelled_stage = Stage.PSM_SCORE
            return self.build_report()
        return self.run_from(Stage.PEPTIDE_SCORE)

    def peptide_map_changed(self) -> str:
        """Rerun all stages from protein scoring."""
        return self.run_from(Stage.PROTEIN_SCORE)

    def protein_map_changed(self) -> str:
        """Rerun the validation only."""
        return self.run_from(Stage.VALIDATE)

    def log_figures(self) -> None:
        for name, score_map in [
            ("advocate", self.advocate_map),
            (MatchLevel.PSM, self.psm_map),
            (MatchLevel.PEPTIDE, self.peptide_map),
            (MatchLevel.PROTEIN, self.protein_map),
        ]:
            log_score_map_figures(score_map, name, self.figure_reporter)

    def build_report(self) -> str:
        """Free text summary of the last run."""
        detailed = self.config[ConfigKeys.GENERAL][ConfigKeys.DETAILED_REPORT]
        lines = []

        lines.append(f"Completed stages: {', '.join(self.completed_stages) or 'none'}")
        if self.cancelled_stage is not None:
            lines.append(
                f"Processing cancelled at stage {self.cancelled_stage}. "
                f"Results of the completed stages are kept."
            )
        for stage in self.aborted_stages:
            lines.append(f"Stage {stage} aborted, downstream results may be inconsistent.")

        for stage in STAGE_ORDER:
            result = self.results.get(stage)
            if result is None or len(result.faults) == 0:
                continue
            lines.append(f"{stage}: {len(result.faults)} issue(s)")
            if detailed:
                lines.extend(f"    {fault}" for fault in result.faults)

        for score_map in [self.advocate_map, self.psm_map, self.peptide_map, self.protein_map]:
            suspicious = score_map.suspicious_keys()
            if len(suspicious) > 0:
                lines.append(
                    f"{len(suspicious)} suspicious {score_map.CONTEXT_NAME} context(s): {', '.join(suspicious)}"
                )
            without_decoys = score_map.keys_without_decoys()
            if len(without_decoys) > 0:
                lines.append(
                    f"{len(without_decoys)} {score_map.CONTEXT_NAME} context(s) without decoys: {', '.join(without_decoys)}"
                )

        group_result = self.results.get(Stage.PROTEIN_GROUP_RESOLVE)
        if group_result is not None and isinstance(
            group_result.value, GroupResolutionSummary
        ):
            lines.append(group_result.value.message)

        validation_result = self.results.get(Stage.VALIDATE)
        if validation_result is not None and isinstance(validation_result.value, dict):
            for level, n_validated in validation_result.value.items():
                n_total = len(self.identification.records(level))
                lines.append(f"{level}: {n_validated:,} of {n_total:,} validated")

        lines.extend(self.timing_manager.summary_lines())

        report = "\n".join(lines)
        logger.info(f"Report:\n{report}")
        return report
