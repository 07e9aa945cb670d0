"""Module containing custom exceptions."""


class CustomError(Exception):
    """Custom alphaconsensus error class."""

    _error_code = ""
    _msg = ""
    _detail_msg = ""
    _user_msg = ""

    @property
    def error_code(self):
        return self._error_code

    @property
    def msg(self):
        return self._msg

    @property
    def detail_msg(self):
        return self._detail_msg

    def __init__(self, msg: str = ""):
        self._user_msg = msg

        super().__init__(self._msg)

    def __str__(self):
        return (
            f"{self._error_code}: {self._msg}\n'{self._user_msg}'\n{self._detail_msg}"
        )


class BusinessError(CustomError):
    """Custom error class for 'business' errors.

    A 'business' error is an error that is caused during processing the input (data, configuration, ...) and not by a
    malfunction in alphaconsensus.
    """


class UserError(CustomError):
    """Custom error class for 'user' errors.

    A 'user' error is an error that is caused by the incompatible user input (data, configuration, ...) and not by a
    malfunction in alphaconsensus.
    """


class GenericUserError(UserError):
    """Raise when something is wrong with the user."""

    _error_code = "USER_ERROR"

    def __init__(self, msg: str, detail_msg: str = ""):
        self._msg = msg
        self._detail_msg = detail_msg


class NoSpectrumMatchError(BusinessError):
    """Raise when the identification holds no spectrum match."""

    _error_code = "NO_SPECTRUM_MATCH"

    _msg = "No spectrum matches found in the identification, can't continue."


class NotCalibratedError(CustomError):
    """Raise when a score histogram is queried before its statistics were estimated."""

    _error_code = "NOT_CALIBRATED"

    _msg = "Score statistics have not been estimated."

    _detail_msg = """All points must be added and `estimate_statistics()` must be called before probabilities or
    score limits can be looked up. Adding or removing points invalidates previously estimated statistics."""


class NoDecoyObservationsError(BusinessError):
    """Raise when a context holds no decoy observation and therefore cannot be calibrated."""

    _error_code = "NO_DECOY_OBSERVATIONS"

    _msg = "No decoy observations available to estimate error rates."

    _detail_msg = """Target-decoy statistics require decoy hits. Make sure the search was performed against a
    concatenated target-decoy database and that the decoy tags in the configuration match the decoy accessions."""

    def __init__(self, context_key: str = ""):
        self._context_key = context_key
        super().__init__(f"context '{context_key}'")

    @property
    def context_key(self):
        return self._context_key


class MatchScoringError(BusinessError):
    """Raise when a single match cannot be scored."""

    _error_code = "MATCH_SCORING_FAILED"

    _msg = "Match could not be scored."

    def __init__(self, match_key: str = "", reason: str = ""):
        self._match_key = match_key
        self._detail_msg = reason
        super().__init__(match_key)

    @property
    def match_key(self):
        return self._match_key


class InvalidTableError(UserError):
    """Raise when an input table does not follow the expected schema."""

    _error_code = "INVALID_TABLE"

    _msg = "Input table does not follow the expected schema."

    def __init__(self, msg: str = "", detail_msg: str = ""):
        self._detail_msg = detail_msg
        super().__init__(msg)


class ConfigError(BusinessError):
    """Raise when something is wrong with the provided configuration."""

    _error_code = "CONFIG_ERROR"

    _msg = "Malformed or invalid configuration."
    _key = ""
    _config_name = ""
    _detail_msg = ""

    def __init__(
        self,
        key: str = "",
        value: str = "",
        config_name: str = "",
        detail_msg: str = "",
    ):
        self._key = key
        self._value = value
        self._config_name = config_name
        self._detail_msg = detail_msg


class KeyAddedConfigError(ConfigError):
    """Raise when a key should be added to a config."""

    def __init__(self, key: str, value: str, config_name: str):
        super().__init__(key, value, config_name)
        self._detail_msg = (
            f"Defining new keys is not allowed when updating a config: "
            f"key='{self._key}', value='{self._value}', config_name='{self._config_name}'"
        )


class TypeMismatchConfigError(ConfigError):
    """Raise when the type of a value does not match the default type."""

    def __init__(self, key: str, value: str, config_name: str, extra_msg: str):
        super().__init__(key, value, config_name)
        self._detail_msg = (
            f"Types of values must match default config: "
            f"key='{self._key}', value='{self._value}', config_name='{self._config_name}', types='{extra_msg}'"
        )
