"""End to end processing of a normalized assumption table."""

# native imports
import logging
import os

# alphaconsensus imports
from alphaconsensus.constants.keys import ConfigKeys, MatchLevel
from alphaconsensus.constants.settings import REPORT_FILE_NAME
from alphaconsensus.exceptions import GenericUserError
from alphaconsensus.identification.loader import (
    load_assumptions,
    load_protein_descriptions,
    write_results,
)
from alphaconsensus.identification.proteins import ProteinDatabase
from alphaconsensus.reporting.logging import print_environment, print_logo
from alphaconsensus.reporting.reporting import (
    BackendPipeline,
    FigureBackend,
    JSONLBackend,
    ProgressReporter,
    init_logging,
)
from alphaconsensus.workflow.config import (
    USER_DEFINED,
    USER_DEFINED_CLI_PARAM,
    Config,
)
from alphaconsensus.workflow.pipeline import PipelineOrchestrator

logger = logging.getLogger()

FROZEN_CONFIG_FILE_NAME = "frozen_config.yaml"


class ProcessingPlan:
    def __init__(
        self,
        output_folder: str,
        config: dict | None = None,
        cli_config: dict | None = None,
    ) -> None:
        """Load the inputs, run the pipeline and write the results to `output_folder`.

        Parameters
        ----------

        output_folder : str
            output folder to save the results

        config : dict, optional
            values to update the default config. Overrides values in `default.yaml`.

        cli_config : dict, optional
            additional config values (parameters from the command line). Overrides values in `config`.

        """
        self.output_folder = output_folder
        os.makedirs(output_folder, exist_ok=True)
        init_logging(self.output_folder)

        self.config = self._init_config(config, cli_config, output_folder)
        self.config.to_yaml(os.path.join(output_folder, FROZEN_CONFIG_FILE_NAME))

        self.progress_reporter = ProgressReporter()

    @staticmethod
    def _init_config(
        user_config: dict | None, cli_config: dict | None, output_folder: str
    ) -> Config:
        """Initialize the config with default values and update with user defined values."""
        config = Config.from_default()

        config_updates = []
        if user_config:
            config_updates.append(Config(user_config, name=USER_DEFINED))
        if cli_config:
            config_updates.append(Config(cli_config, name=USER_DEFINED_CLI_PARAM))

        if config_updates:
            config.update(config_updates, do_print=True)

        if (
            current_output_folder := config.get(ConfigKeys.OUTPUT_DIRECTORY)
        ) is not None and current_output_folder != output_folder:
            logger.warning(
                f"Using output directory '{output_folder}' provided via CLI, the value specified in config ('{current_output_folder}') will be ignored."
            )
        config[ConfigKeys.OUTPUT_DIRECTORY] = output_folder

        return config

    def _load_identification(self):
        assumptions_path = self.config[ConfigKeys.ASSUMPTIONS_PATH]
        if assumptions_path is None:
            raise GenericUserError(
                "No assumption table given.",
                "Provide the table with --assumptions or assumptions_path in the config.",
            )

        decoy_tags = self.config[ConfigKeys.DECOY][ConfigKeys.DECOY_TAGS]
        proteins_path = self.config[ConfigKeys.PROTEINS_PATH]
        if proteins_path is not None:
            protein_database = load_protein_descriptions(proteins_path, decoy_tags)
        else:
            protein_database = ProteinDatabase.from_config(self.config)

        return load_assumptions(assumptions_path, protein_database)

    def run(self) -> str:
        """Run the pipeline and write the results, returns the report."""
        print_logo()
        print_environment()

        identification = self._load_identification()

        backends = [JSONLBackend(self.output_folder)]
        if self.config[ConfigKeys.GENERAL][ConfigKeys.SAVE_FIGURES]:
            backends.append(FigureBackend(self.output_folder))

        with BackendPipeline(backends) as reporter:
            orchestrator = PipelineOrchestrator(
                identification,
                self.config,
                self.progress_reporter,
                figure_reporter=reporter,
            )
            report = orchestrator.run()

            for level in MatchLevel.get_values():
                records = identification.records(level)
                reporter.log_metric(
                    f"n_validated_{level}",
                    sum(record.validated for record in records.values()),
                )
            for stage in orchestrator.aborted_stages:
                reporter.log_event("stage_aborted", stage)

        write_results(identification, self.output_folder)
        with open(os.path.join(self.output_folder, REPORT_FILE_NAME), "w") as f:
            f.write(report + "\n")

        return report
