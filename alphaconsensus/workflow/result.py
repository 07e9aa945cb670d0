import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger()


@dataclass
class StageResult:
    """Outcome of a pipeline stage.

    Recoverable problems, e.g. a single match that could not be scored, are collected as `faults`
    instead of being raised. A cancelled stage did not commit anything.
    """

    name: str
    value: Any = None
    faults: list[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return not self.cancelled and len(self.faults) == 0

    def add_fault(self, message: str) -> None:
        logger.warning(f"{self.name}: {message}")
        self.faults.append(message)
