import logging

import pandas as pd

logger = logging.getLogger()


class TimingManager:
    def __init__(self):
        """Start, end and duration of the stages of a pipeline run."""
        self.timings: dict[str, dict] = {}

    def set_start_time(self, stage: str):
        """Store the start time of a stage, discarding earlier timings of the same stage.

        Parameters
        ----------
        stage : str
            The name under which the timing will be stored in the timings dict
        """
        self.timings[stage] = {"start": pd.Timestamp.now()}

    def set_end_time(self, stage: str):
        """Store the end time of a stage and its duration in minutes.

        Parameters
        ----------
        stage : str
            The name under which the timing will be stored in the timings dict

        """
        self.timings[stage]["end"] = pd.Timestamp.now()
        self.timings[stage]["duration"] = (
            self.timings[stage]["end"] - self.timings[stage]["start"]
        ).total_seconds() / 60

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame.from_dict(self.timings, orient="index")

    def summary_lines(self) -> list[str]:
        return [
            f"{stage}: {timing['duration'] * 60:.2f} s"
            for stage, timing in self.timings.items()
            if "duration" in timing
        ]
