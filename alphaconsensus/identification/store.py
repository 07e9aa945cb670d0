"""In-memory identification store holding all matches and their score records."""

# native imports
import logging

# third party imports
import numpy as np
import pandas as pd

# alphaconsensus imports
from alphaconsensus.constants.keys import MatchLevel, OutputCols, ProteinCols
from alphaconsensus.identification.matches import (
    MatchRecord,
    PeptideAssumption,
    PeptideMatch,
    ProteinMatch,
    SpectrumMatch,
    get_protein_key,
)
from alphaconsensus.identification.proteins import ProteinDatabase

logger = logging.getLogger()


class Identification:
    def __init__(self, protein_database: ProteinDatabase | None = None):
        """Spectrum, peptide and protein matches keyed by stable identifiers.

        Every match can carry one `MatchRecord` per level. Records are only ever replaced as a whole
        through `set_records`, which is the commit point of every scoring stage.

        Parameters
        ----------
        protein_database : ProteinDatabase, optional
            Descriptions and decoy tags of the protein accessions.

        """
        self.protein_database = (
            protein_database if protein_database is not None else ProteinDatabase()
        )

        self.spectrum_matches: dict[str, SpectrumMatch] = {}
        self.peptide_matches: dict[str, PeptideMatch] = {}
        self.protein_matches: dict[str, ProteinMatch] = {}

        self._records: dict[str, dict[str, MatchRecord]] = {
            level: {} for level in MatchLevel.get_values()
        }

    def __repr__(self):
        return (
            f"<Identification spectra={len(self.spectrum_matches)} "
            f"peptides={len(self.peptide_matches)} proteins={len(self.protein_matches)}>"
        )

    def add_spectrum_match(self, spectrum_match: SpectrumMatch) -> None:
        if spectrum_match.key in self.spectrum_matches:
            raise ValueError(f"Spectrum match {spectrum_match.key} already exists")
        self.spectrum_matches[spectrum_match.key] = spectrum_match

    def add_assumption(self, spectrum_key: str, assumption: PeptideAssumption) -> None:
        if spectrum_key not in self.spectrum_matches:
            self.spectrum_matches[spectrum_key] = SpectrumMatch(spectrum_key)
        self.spectrum_matches[spectrum_key].add_assumption(assumption)

    @property
    def advocates(self) -> list[str]:
        advocates = {}
        for spectrum_match in self.spectrum_matches.values():
            for advocate in spectrum_match.advocates:
                advocates[advocate] = None
        return list(advocates)

    @property
    def has_multiple_advocates(self) -> bool:
        return len(self.advocates) > 1

    def build_peptides_and_proteins(self) -> None:
        """Group spectra into peptide matches by their best assumption and peptides into protein groups.

        Previous peptide and protein matches are discarded together with their records.
        """
        peptide_matches: dict[str, PeptideMatch] = {}
        n_skipped = 0
        for spectrum_match in self.spectrum_matches.values():
            best = spectrum_match.best_assumption
            if best is None:
                n_skipped += 1
                continue
            if best.peptide_key not in peptide_matches:
                peptide_matches[best.peptide_key] = PeptideMatch(
                    best.peptide_key, best.peptide
                )
            peptide_matches[best.peptide_key].add_spectrum_match(spectrum_match.key)

        if n_skipped > 0:
            logger.warning(
                f"{n_skipped} spectra without best assumption were not assigned to a peptide"
            )

        protein_matches: dict[str, ProteinMatch] = {}
        for peptide_match in peptide_matches.values():
            accessions = peptide_match.peptide.parent_proteins
            if len(accessions) == 0:
                logger.warning(
                    f"Peptide {peptide_match.key} has no parent protein and is not assigned to a protein group"
                )
                continue
            protein_key = get_protein_key(accessions)
            if protein_key not in protein_matches:
                protein_matches[protein_key] = ProteinMatch(accessions)
            protein_matches[protein_key].add_peptide_match(peptide_match.key)

        self.peptide_matches = peptide_matches
        self.protein_matches = protein_matches
        self._records[MatchLevel.PEPTIDE] = {}
        self._records[MatchLevel.PROTEIN] = {}

        logger.info(
            f"Built {len(peptide_matches):,} peptide matches and {len(protein_matches):,} protein groups"
        )

    def matches(self, level: str) -> dict:
        if level == MatchLevel.PSM:
            return self.spectrum_matches
        elif level == MatchLevel.PEPTIDE:
            return self.peptide_matches
        elif level == MatchLevel.PROTEIN:
            return self.protein_matches
        raise ValueError(f"Unknown match level {level}")

    def records(self, level: str) -> dict[str, MatchRecord]:
        return self._records[level]

    def get_record(self, level: str, key: str) -> MatchRecord | None:
        return self._records[level].get(key)

    def set_records(self, level: str, records: dict[str, MatchRecord]) -> None:
        """Replace all records of a level at once."""
        if level not in self._records:
            raise ValueError(f"Unknown match level {level}")
        self._records[level] = dict(records)

    def remove_protein_match(self, key: str) -> None:
        del self.protein_matches[key]
        self._records[MatchLevel.PROTEIN].pop(key, None)

    def is_decoy_assumption(self, assumption: PeptideAssumption) -> bool:
        return self.protein_database.is_decoy_accessions(
            assumption.peptide.parent_proteins
        )

    def is_decoy_spectrum(self, spectrum_match: SpectrumMatch) -> bool:
        if spectrum_match.best_assumption is None:
            return False
        return self.is_decoy_assumption(spectrum_match.best_assumption)

    def is_decoy_peptide(self, peptide_match: PeptideMatch) -> bool:
        return self.protein_database.is_decoy_accessions(
            peptide_match.peptide.parent_proteins
        )

    def is_decoy_protein(self, protein_match: ProteinMatch) -> bool:
        return self.protein_database.is_decoy_accessions(protein_match.accessions)

    def _record_columns(self, level: str, keys) -> dict[str, list]:
        columns = {
            OutputCols.SCORE: [],
            OutputCols.CONTEXT: [],
            OutputCols.PEP: [],
            OutputCols.VALIDATED: [],
        }
        for key in keys:
            record = self.get_record(level, key)
            columns[OutputCols.SCORE].append(np.nan if record is None else record.score)
            columns[OutputCols.CONTEXT].append(
                None if record is None else record.context_key
            )
            columns[OutputCols.PEP].append(
                np.nan
                if record is None or record.probability is None
                else record.probability
            )
            columns[OutputCols.VALIDATED].append(
                False if record is None else record.validated
            )
        return columns

    def psm_df(self) -> pd.DataFrame:
        spectrum_matches = [
            sm for sm in self.spectrum_matches.values() if sm.best_assumption is not None
        ]
        df = pd.DataFrame(
            {
                OutputCols.PSM_KEY: [sm.key for sm in spectrum_matches],
                OutputCols.PEPTIDE_KEY: [
                    sm.best_assumption.peptide_key for sm in spectrum_matches
                ],
                OutputCols.SEQUENCE: [
                    sm.best_assumption.sequence for sm in spectrum_matches
                ],
                OutputCols.CHARGE: [sm.best_assumption.charge for sm in spectrum_matches],
                OutputCols.DECOY: [
                    self.is_decoy_spectrum(sm) for sm in spectrum_matches
                ],
                **self._record_columns(
                    MatchLevel.PSM, [sm.key for sm in spectrum_matches]
                ),
            }
        )
        return df

    def peptide_df(self) -> pd.DataFrame:
        peptide_matches = list(self.peptide_matches.values())
        df = pd.DataFrame(
            {
                OutputCols.PEPTIDE_KEY: [pm.key for pm in peptide_matches],
                OutputCols.SEQUENCE: [pm.peptide.sequence for pm in peptide_matches],
                OutputCols.MODIFICATION_PROFILE: [
                    pm.peptide.modification_profile for pm in peptide_matches
                ],
                OutputCols.N_SPECTRA: [len(pm.spectrum_keys) for pm in peptide_matches],
                OutputCols.DECOY: [self.is_decoy_peptide(pm) for pm in peptide_matches],
                **self._record_columns(
                    MatchLevel.PEPTIDE, [pm.key for pm in peptide_matches]
                ),
            }
        )
        return df

    def protein_df(self) -> pd.DataFrame:
        protein_matches = list(self.protein_matches.values())
        df = pd.DataFrame(
            {
                ProteinCols.PROTEIN_KEY: [pm.key for pm in protein_matches],
                ProteinCols.MAIN_ACCESSION: [pm.main_accession for pm in protein_matches],
                ProteinCols.ACCESSIONS: [";".join(pm.accessions) for pm in protein_matches],
                ProteinCols.GROUP_CLASS: [pm.group_class for pm in protein_matches],
                ProteinCols.N_PEPTIDES: [len(pm.peptide_keys) for pm in protein_matches],
                OutputCols.DECOY: [self.is_decoy_protein(pm) for pm in protein_matches],
                **self._record_columns(
                    MatchLevel.PROTEIN, [pm.key for pm in protein_matches]
                ),
            }
        )
        return df
