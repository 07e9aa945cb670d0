#!python
"""CLI for alphaconsensus.

The CLI only collects parameters, the processing itself is done by `ProcessingPlan` so that it behaves the same from the CLI or a jupyter notebook.
"""
# ruff: noqa: E402 # Module level import not at top of file

import argparse
import json
import logging
import os
from pathlib import Path

import yaml

from alphaconsensus import __version__  # noqa: E402
from alphaconsensus.constants.keys import ConfigKeys

logging.getLogger("matplotlib.font_manager").setLevel(logging.ERROR)

import matplotlib  # noqa: E402

logger = logging.getLogger()

EXIT_CODE_USER_ERROR = 1
EXIT_CODE_WRONG_CLI_PARAM = 126
EXIT_CODE_UNKNOWN_ERROR = 127

epilog = "Parameters passed via CLI will overwrite parameters from config file."

parser = argparse.ArgumentParser(
    description="Score, combine and validate peptide identifications of multiple search engines with alphaconsensus",
    epilog=epilog,
)
parser.add_argument(
    "--version",
    "-v",
    action="store_true",
    help="Print version and exit",
)
parser.add_argument(
    "--output",
    "--output-directory",
    "-o",
    type=str,
    help="Output directory.",
    nargs="?",
    default=None,
)
parser.add_argument(
    "--assumptions",
    "--assumptions-path",
    "-a",
    type=str,
    help="Path to the normalized assumption table (tab separated, comma separated for .csv).",
    nargs="?",
    default=None,
)
parser.add_argument(
    "--proteins",
    "--proteins-path",
    "-p",
    type=str,
    help="Path to a table with protein accessions and descriptions.",
    nargs="?",
    default=None,
)
parser.add_argument(
    "--config",
    "-c",
    type=str,
    help="Path to config yaml file which will be used to update the default config.",
    nargs="?",
    default=None,
)
parser.add_argument(
    "--config-dict",
    type=str,
    help="Python dictionary which will be used to update the default config. Keys and string values need to be surrounded by "
    'escaped double quotes, e.g. "{\\"key1\\": \\"value1\\"}".',
    nargs="?",
    default="{}",
)


def _recursive_update(full_dict: dict, update_dict: dict):
    """recursively update a dict with a second dict. The dict is updated inplace.

    Parameters
    ----------
    full_dict : dict
        dict to be updated, is updated inplace.

    update_dict : dict
        dict with new values

    """
    for key, value in update_dict.items():
        if key in full_dict and isinstance(value, dict):
            _recursive_update(full_dict[key], value)
        else:
            full_dict[key] = value


def _get_config_from_args(
    args: argparse.Namespace,
) -> tuple[dict, str | None, str | None]:
    """Parse config file from `args.config` if given and update with optional JSON string `args.config_dict`."""

    config = {}
    if args.config is not None:
        with open(args.config) as f:
            config = yaml.safe_load(f) or {}

    if args.config_dict:
        try:
            _recursive_update(config, json.loads(args.config_dict))
        except json.JSONDecodeError as e:
            print(f"Could not parse config update: {e}")

    return config, args.config, args.config_dict


def _get_from_args_or_config(
    args: argparse.Namespace, config: dict, *, args_key: str, config_key: str
) -> str:
    """Get a value from command line arguments (key: `args_key`) or config file (key: `config_key`), the former taking precedence."""
    value_from_args = args.__dict__.get(args_key)
    return value_from_args if value_from_args is not None else config.get(config_key)


def run(*args, **kwargs):
    args, unknown = parser.parse_known_args()

    if unknown:
        print(f"Unknown arguments: {unknown}")
        parser.print_help()
        return EXIT_CODE_WRONG_CLI_PARAM

    if args.version:
        print(f"{__version__}")
        return

    # load modules only here to speed up -v and -h commands
    from alphaconsensus.exceptions import CustomError
    from alphaconsensus.processing_plan import ProcessingPlan

    user_config, config_file_path, extra_config_dict = _get_config_from_args(args)

    output_directory = _get_from_args_or_config(
        args, user_config, args_key="output", config_key=ConfigKeys.OUTPUT_DIRECTORY
    )

    if output_directory is None:
        parser.print_help()

        print("No output directory specified. Please do so via CL-argument or config.")
        return

    cli_params_config = {
        **(
            {ConfigKeys.ASSUMPTIONS_PATH: args.assumptions}
            if args.assumptions is not None
            else {}
        ),
        **(
            {ConfigKeys.PROTEINS_PATH: args.proteins}
            if args.proteins is not None
            else {}
        ),
    }

    # important to suppress matplotlib output
    matplotlib.use("Agg")

    try:
        plan = ProcessingPlan(output_directory, user_config, cli_params_config)

        logger.info(
            f"Output directory: {Path(output_directory).absolute()}, cwd: {os.getcwd()}."
        )
        if config_file_path:
            logger.info(f"User provided config file: {config_file_path}.")
        if extra_config_dict and extra_config_dict != "{}":
            logger.info(f"User provided config dict: {extra_config_dict}.")

        plan.run()

    except Exception as e:
        if isinstance(e, CustomError):
            exit_code = EXIT_CODE_USER_ERROR
        else:
            import traceback

            logger.info(traceback.format_exc())
            exit_code = EXIT_CODE_UNKNOWN_ERROR

        logger.error(e)
        return exit_code


if __name__ == "__main__" and os.getenv("RUN_MAIN") == "1":
    run()
