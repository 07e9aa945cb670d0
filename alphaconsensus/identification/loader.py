"""Reading of normalized assumption tables and writing of the match level results."""

# native imports
import logging
import os

# third party imports
import pandas as pd

# alphaconsensus imports
from alphaconsensus.constants.keys import AssumptionCols, ProteinCols
from alphaconsensus.constants.settings import (
    PEPTIDE_FILE_NAME,
    PROTEIN_FILE_NAME,
    PSM_FILE_NAME,
)
from alphaconsensus.exceptions import InvalidTableError
from alphaconsensus.identification.matches import (
    ModificationMatch,
    Peptide,
    PeptideAssumption,
)
from alphaconsensus.identification.proteins import ProteinDatabase
from alphaconsensus.identification.schema import (
    assumptions_schema,
    protein_descriptions_schema,
)
from alphaconsensus.identification.store import Identification

logger = logging.getLogger()

PROTEIN_SEPARATOR = ";"
MODIFICATION_SEPARATOR = ";"
SITE_SEPARATOR = "@"


def read_table(df_or_path: pd.DataFrame | str) -> pd.DataFrame:
    """Return a copy of a dataframe or read a tab or comma separated file."""
    if isinstance(df_or_path, pd.DataFrame):
        return df_or_path.copy()

    if not os.path.exists(df_or_path):
        raise InvalidTableError(f"File {df_or_path} does not exist")

    sep = "," if str(df_or_path).endswith(".csv") else "\t"
    logger.info(f"Reading {df_or_path}")
    return pd.read_csv(df_or_path, sep=sep)


def parse_modifications(value: str) -> tuple[ModificationMatch, ...]:
    """Parse `Name@site;Name@site` into modification matches, an empty string holds no modification."""
    modifications = []
    for token in value.split(MODIFICATION_SEPARATOR):
        token = token.strip()
        if not token:
            continue
        name, _, site = token.rpartition(SITE_SEPARATOR)
        if not name or not site.lstrip("-").isdigit():
            raise InvalidTableError(
                f"Malformed modification '{token}'",
                f"Modifications must be given as Name{SITE_SEPARATOR}site separated by '{MODIFICATION_SEPARATOR}'",
            )
        modifications.append(ModificationMatch(name, int(site)))
    return tuple(modifications)


def parse_proteins(value: str) -> tuple[str, ...]:
    return tuple(
        accession.strip()
        for accession in value.split(PROTEIN_SEPARATOR)
        if accession.strip()
    )


def load_protein_descriptions(
    df_or_path: pd.DataFrame | str, decoy_tags=None
) -> ProteinDatabase:
    """Read a table with `accession` and `description` columns."""
    df = read_table(df_or_path)
    if ProteinCols.DESCRIPTION in df.columns:
        df[ProteinCols.DESCRIPTION] = df[ProteinCols.DESCRIPTION].fillna("")
    protein_descriptions_schema.validate(df)
    logger.info(f"Loaded descriptions of {len(df):,} proteins")
    return ProteinDatabase.from_frame(df, decoy_tags=decoy_tags)


def load_assumptions(
    df_or_path: pd.DataFrame | str,
    protein_database: ProteinDatabase | None = None,
) -> Identification:
    """Build an identification from a long table with one peptide assumption per row.

    Parameters
    ----------
    df_or_path : pd.DataFrame | str
        Table or path to a tab (or comma, for `.csv`) separated file with the columns
        `spectrum_key`, `advocate`, `sequence`, `charge`, `score` and `proteins` (accessions separated by `;`).
        Optional columns are `modifications` (`Name@site` separated by `;`) and `rank`.

    protein_database : ProteinDatabase, optional
        Descriptions and decoy tags of the accessions.

    Returns
    -------
    Identification
        Identification holding one spectrum match per spectrum key.

    """
    df = read_table(df_or_path)
    for col in [AssumptionCols.MODIFICATIONS, AssumptionCols.PROTEINS]:
        if col in df.columns:
            df[col] = df[col].fillna("")
    assumptions_schema.validate(df, warn_on_critical_values=True)

    if df[AssumptionCols.SCORE].isna().any():
        raise InvalidTableError("Column score must not contain missing values")

    has_modifications = AssumptionCols.MODIFICATIONS in df.columns
    has_rank = AssumptionCols.RANK in df.columns

    identification = Identification(protein_database)
    peptides: dict[tuple, Peptide] = {}

    for row in df.itertuples(index=False):
        modifications = (
            getattr(row, AssumptionCols.MODIFICATIONS) if has_modifications else ""
        )
        proteins = getattr(row, AssumptionCols.PROTEINS)
        sequence = getattr(row, AssumptionCols.SEQUENCE)

        # identical peptides share one object
        peptide_id = (sequence, modifications, proteins)
        if peptide_id not in peptides:
            peptides[peptide_id] = Peptide(
                sequence,
                parse_modifications(modifications),
                parse_proteins(proteins),
            )

        identification.add_assumption(
            getattr(row, AssumptionCols.SPECTRUM_KEY),
            PeptideAssumption(
                peptides[peptide_id],
                getattr(row, AssumptionCols.ADVOCATE),
                float(getattr(row, AssumptionCols.SCORE)),
                int(getattr(row, AssumptionCols.CHARGE)),
                rank=int(getattr(row, AssumptionCols.RANK)) if has_rank else 1,
            ),
        )

    logger.info(
        f"Loaded {len(df):,} assumptions for {len(identification.spectrum_matches):,} spectra "
        f"from {len(identification.advocates)} advocate(s)"
    )
    return identification


def write_results(identification: Identification, output_folder: str) -> None:
    """Write the PSM, peptide and protein tables as tab separated files."""
    os.makedirs(output_folder, exist_ok=True)
    for df, file_name in [
        (identification.psm_df(), PSM_FILE_NAME),
        (identification.peptide_df(), PEPTIDE_FILE_NAME),
        (identification.protein_df(), PROTEIN_FILE_NAME),
    ]:
        path = os.path.join(output_folder, file_name)
        logger.info(f"Writing {len(df):,} rows to {path}")
        df.to_csv(path, sep="\t", index=False)
