import logging

import pandas as pd

from alphaconsensus.constants.keys import ConfigKeys, ProteinCols

logger = logging.getLogger()

DEFAULT_DECOY_TAGS = ("REV_", "_REVERSED", "DECOY_", "rev_")


class ProteinDatabase:
    def __init__(self, descriptions: dict[str, str] | None = None, decoy_tags=None):
        """Protein descriptions and decoy status of accessions.

        Parameters
        ----------
        descriptions : dict[str, str], optional
            Free text description per accession.

        decoy_tags : Iterable[str], optional
            An accession containing any of these tags is a decoy.

        """
        self.descriptions = dict(descriptions or {})
        self.decoy_tags = tuple(
            DEFAULT_DECOY_TAGS if decoy_tags is None else decoy_tags
        )

    @classmethod
    def from_config(cls, config, descriptions: dict[str, str] | None = None):
        return cls(descriptions, decoy_tags=config[ConfigKeys.DECOY][ConfigKeys.DECOY_TAGS])

    @classmethod
    def from_frame(cls, df: pd.DataFrame, decoy_tags=None):
        descriptions = dict(
            zip(
                df[ProteinCols.ACCESSION].astype(str),
                df[ProteinCols.DESCRIPTION].fillna("").astype(str),
                strict=True,
            )
        )
        return cls(descriptions, decoy_tags=decoy_tags)

    def __len__(self):
        return len(self.descriptions)

    def description(self, accession: str) -> str:
        return self.descriptions.get(accession, "")

    def is_decoy_accession(self, accession: str) -> bool:
        return any(tag in accession for tag in self.decoy_tags)

    def is_decoy_accessions(self, accessions) -> bool:
        """A set of accessions is decoy if any of them is a decoy."""
        return any(self.is_decoy_accession(accession) for accession in accessions)
