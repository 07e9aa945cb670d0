"""Column schemas of the tabular inputs."""

import logging

import numpy as np
import pandas as pd

from alphaconsensus.constants.keys import AssumptionCols, ProteinCols
from alphaconsensus.exceptions import InvalidTableError

logger = logging.getLogger()


class Property:
    """Column property base class"""

    def __init__(self, name, type):
        """Base class for all properties

        Parameters
        ----------
        name: str
            Name of the column

        type: type
            Type the column is cast to

        """
        self.name = name
        self.type = type

    def _cast(self, df: pd.DataFrame) -> None:
        if df[self.name].dtype != self.type:
            try:
                df[self.name] = df[self.name].astype(self.type)
            except (TypeError, ValueError) as e:
                raise InvalidTableError(
                    f"Column {self.name} cannot be cast to {self.type.__name__}", str(e)
                ) from e


class Optional(Property):
    """Optional column, cast if present"""

    def __call__(self, df: pd.DataFrame) -> bool:
        if self.name in df.columns:
            self._cast(df)
        return True


class Required(Property):
    """Required column, cast if present, validation fails otherwise"""

    def __call__(self, df: pd.DataFrame) -> bool:
        if self.name in df.columns:
            self._cast(df)
            return True
        return False


class Schema:
    def __init__(self, name, properties):
        """Schema for validating dataframes

        Parameters
        ----------
        name: str
            Name of the schema

        properties: list
            List of Property objects

        """
        self.name = name
        self.schema = properties
        for property in self.schema:
            if not isinstance(property, Property):
                raise ValueError("Schema must contain only Property objects")

    def validate(self, df: pd.DataFrame, warn_on_critical_values: bool = False) -> None:
        """Validates the dataframe in place, casting columns to their types.

        Parameters
        ----------
        df: pd.DataFrame
            Dataframe to validate

        warn_on_critical_values: bool
            If True, warn on NaN and Inf values in floating point columns. Defaults to False.

        Raises
        ------
        InvalidTableError
            If a required column is missing or a column cannot be cast.

        """
        if warn_on_critical_values:
            self._warn_on_critical_values(df)

        for property in self.schema:
            if not property(df):
                raise InvalidTableError(
                    f"Validation of {self.name} failed: Column {property.name} is not present in the dataframe",
                    f"Present columns: {', '.join(map(str, df.columns))}",
                )

    def _warn_on_critical_values(self, df: pd.DataFrame) -> None:
        for col in df.columns:
            if np.issubdtype(df[col].dtype, np.floating):
                nan_count = df[col].isna().sum()
                inf_count = np.isinf(df[col]).sum()
                if nan_count > 0:
                    logger.warning(f"{col} has {nan_count} NaNs out of {len(df)}")
                if inf_count > 0:
                    logger.warning(f"{col} has {inf_count} Infs out of {len(df)}")


assumptions_schema = Schema(
    "assumptions",
    [
        Required(AssumptionCols.SPECTRUM_KEY, str),
        Required(AssumptionCols.ADVOCATE, str),
        Required(AssumptionCols.SEQUENCE, str),
        Required(AssumptionCols.CHARGE, np.int64),
        Required(AssumptionCols.SCORE, np.float64),
        Required(AssumptionCols.PROTEINS, str),
        Optional(AssumptionCols.MODIFICATIONS, str),
        Optional(AssumptionCols.RANK, np.int64),
    ],
)

protein_descriptions_schema = Schema(
    "protein_descriptions",
    [
        Required(ProteinCols.ACCESSION, str),
        Required(ProteinCols.DESCRIPTION, str),
    ],
)
