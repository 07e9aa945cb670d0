"""This module is responsible for creating and storing the configuration.

The default configuration is read from `constants/default.yaml` and can be updated with one or more
other configuration objects, e.g. a user supplied yaml file and parameters given on the command line.
Configurations later in the sequence overwrite previous values, lists are always overwritten completely.

On demand, the current config can be visualized in a tree-like structure.
"""

import json
import logging
from collections import UserDict, defaultdict
from copy import deepcopy

import yaml

from alphaconsensus.constants.keys import ConfigKeys, MatchLevel
from alphaconsensus.constants.settings import DEFAULT_CONFIG_PATH
from alphaconsensus.exceptions import KeyAddedConfigError, TypeMismatchConfigError

logger = logging.getLogger()

DEFAULT = "default"
USER_DEFINED = "user defined"
USER_DEFINED_CLI_PARAM = "user defined (cli)"


class Config(UserDict):
    """Dict-like config class that can read from and write to yaml and json files and allows updating with other config objects."""

    def __init__(self, data: dict = None, name: str = DEFAULT) -> None:
        # super class deliberately not called as this calls "update" (which we overwrite)
        self.data = (
            {**data} if data is not None else {}
        )  # this needs to be called 'data' as we inherit from UserDict
        self.name = name

    @classmethod
    def from_default(cls) -> "Config":
        config = cls(name=DEFAULT)
        config.from_yaml(DEFAULT_CONFIG_PATH)
        return config

    def from_yaml(self, path: str) -> None:
        with open(path) as f:
            self.data = yaml.safe_load(f)

    def from_json(self, path: str) -> None:
        with open(path) as f:
            self.data = json.load(f)

    def to_yaml(self, path: str) -> None:
        with open(path, "w") as f:
            yaml.dump(self.data, f, sort_keys=False)

    def to_json(self, path: str) -> None:
        with open(path, "w") as f:
            json.dump(self.data, f)

    def __setitem__(self, key, item):
        if key != ConfigKeys.OUTPUT_DIRECTORY:
            raise NotImplementedError("Use update() to update the config.")
        return super().__setitem__(key, item)

    def __delitem__(self, key):
        raise NotImplementedError("Use update() to update the config.")

    def copy(self):
        raise NotImplementedError("Use deepcopy() to copy the config.")

    @property
    def target_fdrs(self) -> dict[str, float]:
        """Target FDR per match level."""
        return {
            level: self.data[ConfigKeys.FDR][level] for level in MatchLevel.get_values()
        }

    def update(self, configs: list["Config"], do_print: bool = False):
        """
        Updates the config with one or more other config objects.

        The order of configs holds significance, with configurations later in the sequence
        taking precedence in terms of their impact on changes.

        All changes to the default config are tracked and stored in a separate dictionary to enable
        convenient visualization of the changes.

        Parameters
        ----------
        configs : list of configs
            List of config objects to update the current config with. The order of the configs is important (last one wins).

        do_print : bool, optional
            Whether to print the modified config. Default is False.
        """
        # we assume that self.data holds the default config
        default_config = deepcopy(self.data)

        def _recursive_defaultdict():
            """Allow initialization of an infinitely nested dictionary to be able to map arbitrary structures."""
            return defaultdict(_recursive_defaultdict)

        tracking_dict = defaultdict(_recursive_defaultdict)

        current_config = deepcopy(self.data)
        for config in configs:
            logger.info(f"Updating config with '{config.name}'")

            _update(
                current_config,
                config.data,
                tracking_dict,
                config.name,
            )

        self.data = current_config

        if do_print:
            try:
                _pretty_print(
                    current_config,
                    default_config=default_config,
                    tracking_dict=tracking_dict,
                )
            except Exception as e:
                logger.warning(f"Could not print config: {e}")
                logger.info(f"{(yaml.dump(current_config))}")


def _update(
    target_config: dict,
    update_config: dict,
    tracking_dict: dict,
    config_name: str,
    parent_keys: str = "",
) -> None:
    """
    Recursively update target_dict in-place with values from update_dict.

    For each value that gets updated, the corresponding value in tracking_dict is updated with config_name.

    Parameters
    ----------
    target_config:
        The config dictionary to be modified
    update_config:
        The config dictionary containing update values
    tracking_dict:
        A dictionary of nested dictionaries.
        If a value target_config gets overwritten, the same value in tracking_dict will be overwritten with `config_name`.
    config_name:
        The name of the current config object
    parent_keys:
        Names of the parent keys, separated by dots. Used only for exception messages.

    Notes
    -----
    - Nested dictionaries are recursively updated
    - Only updates existing keys (adding new keys not allowed)
    - lists are always overwritten

    Raises
    ------
    - KeyAddedConfigError: a key is not found in the target_config
    - TypeMismatchConfigError: the type of the update value does not match the type of the target value
    """
    for key, update_value in update_config.items():
        full_key = f"{parent_keys}.{key}" if parent_keys else key

        if key not in target_config:
            raise KeyAddedConfigError(full_key, update_value, config_name)

        target_value = target_config[key]

        # values given with --config-dict arrive as strings
        if isinstance(update_value, str):
            if update_value.lower() == "true":
                update_value = True
            elif update_value.lower() == "false":
                update_value = False

        if (
            target_value is not None
            and type(target_value) != type(update_value)
            and not (
                isinstance(target_value, int | float)
                and isinstance(update_value, int | float)
            )
        ):
            raise TypeMismatchConfigError(
                full_key,
                update_value,
                config_name,
                f"{type(update_value)} != {type(target_value)}",
            )

        if isinstance(target_value, dict):
            _update(
                target_value,
                update_value,
                tracking_dict[key],
                config_name,
                parent_keys=full_key,
            )
        else:
            # lists are overwritten completely
            target_config[key] = update_value
            tracking_dict[key] = config_name


def _pretty_print(
    config: dict,
    *,
    default_config: dict | None,
    tracking_dict: dict | str,
    prefix: str = "",
):
    """Log a configuration dictionary as a tree, highlighting values which differ from the default."""
    items = list(config.items())
    for i, (key, value) in enumerate(items):
        is_last_item = i == len(items) - 1
        branch = "└──" if is_last_item else "├──"
        next_prefix = prefix + ("    " if is_last_item else "│   ")

        default_value = (
            default_config.get(key) if isinstance(default_config, dict) else None
        )
        # leaf nodes of the tracking dict hold the name of the config which set the value
        source = tracking_dict if isinstance(tracking_dict, str) else tracking_dict[key]

        if isinstance(value, dict):
            logger.info(f"{prefix}{branch}{key}")
            _pretty_print(
                value,
                default_config=default_value,
                tracking_dict=source,
                prefix=next_prefix,
            )
        elif isinstance(value, list):
            color_on, color_off = _get_color_tokens(value, default_value)
            logger.info(f"{prefix}{color_on}{branch}{key}:{color_off}")
            for item in value:
                logger.info(f"{next_prefix}{color_on}- {item}{color_off}")
            if value != default_value:
                logger.info(
                    f"{next_prefix}{color_on}[{source}, default: {default_value}]{color_off}"
                )
        else:
            color_on, color_off = _get_color_tokens(value, default_value)
            logger.info(
                f"{prefix}{color_on}{branch}{key}: {_expand(value, default_value, source)}{color_off}"
            )


def _get_color_tokens(actual_value, default_value) -> tuple[str, str]:
    """Get color on/off tokens if values differ, else empty strings."""
    if default_value != actual_value:
        return "\x1b[32;20m", "\x1b[0m"
    return "", ""


def _expand(actual_value, default_value, tracking_value: str) -> str:
    """String representation of a value, extended by its source and the default if it differs from the default."""
    if default_value != actual_value:
        return f"{actual_value} [{tracking_value}, default: {default_value}]"
    return str(actual_value)
