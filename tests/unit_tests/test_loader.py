import os

import pandas as pd
import pytest
from conftest import mock_assumption_df

from alphaconsensus.constants.settings import (
    PEPTIDE_FILE_NAME,
    PROTEIN_FILE_NAME,
    PSM_FILE_NAME,
)
from alphaconsensus.exceptions import InvalidTableError
from alphaconsensus.identification.loader import (
    load_assumptions,
    load_protein_descriptions,
    parse_modifications,
    parse_proteins,
    read_table,
    write_results,
)
from alphaconsensus.identification.matches import ModificationMatch


def test_parse_modifications():
    assert parse_modifications("") == ()
    assert parse_modifications("Oxidation@4; Phospho@7") == (
        ModificationMatch("Oxidation", 4),
        ModificationMatch("Phospho", 7),
    )
    # names may contain the site separator
    assert parse_modifications("Label:13C@K@5") == (ModificationMatch("Label:13C@K", 5),)


@pytest.mark.parametrize("value", ["Oxidation", "Oxidation@", "@4", "Oxidation@M"])
def test_parse_modifications_malformed(value):
    with pytest.raises(InvalidTableError):
        parse_modifications(value)


def test_parse_proteins():
    assert parse_proteins("P1;P2; ;P3") == ("P1", "P2", "P3")
    assert parse_proteins("") == ()


def test_load_assumptions():
    df = mock_assumption_df(n_spectra=10, advocates=("engine_a", "engine_b"))

    # when
    identification = load_assumptions(df)

    assert len(identification.spectrum_matches) == 10
    assert identification.advocates == ["engine_a", "engine_b"]

    spectrum_match = identification.spectrum_matches["spectrum_3"]
    first_a = spectrum_match.first_hit("engine_a")
    first_b = spectrum_match.first_hit("engine_b")
    assert len(spectrum_match.assumptions("engine_a")) == 2
    assert first_a.rank == 1
    assert first_a.charge == 3
    assert first_a.peptide.modifications == (ModificationMatch("Oxidation", 3),)
    # identical peptides of different advocates share one object
    assert first_a.peptide is first_b.peptide


def test_load_assumptions_missing_optional_columns():
    df = pd.DataFrame(
        {
            "spectrum_key": ["s1", "s2"],
            "advocate": ["engine_a", "engine_a"],
            "sequence": ["PEPTIDEK", "PEPTIDER"],
            "charge": [2, 3],
            "score": [0.01, 0.02],
            "proteins": ["P1;P2", None],
        }
    )

    identification = load_assumptions(df)

    first_hit = identification.spectrum_matches["s1"].first_hit("engine_a")
    assert first_hit.peptide.parent_proteins == ("P1", "P2")
    assert first_hit.peptide.modifications == ()
    assert first_hit.rank == 1
    assert (
        identification.spectrum_matches["s2"].first_hit("engine_a").peptide.parent_proteins
        == ()
    )


def test_load_assumptions_missing_column_raises():
    df = mock_assumption_df(n_spectra=3).drop(columns=["score"])

    with pytest.raises(InvalidTableError):
        load_assumptions(df)


def test_load_assumptions_bad_type_raises():
    df = mock_assumption_df(n_spectra=3)
    df["charge"] = "two"

    with pytest.raises(InvalidTableError):
        load_assumptions(df)


def test_load_assumptions_missing_score_raises():
    df = mock_assumption_df(n_spectra=3)
    df.loc[0, "score"] = None

    with pytest.raises(InvalidTableError):
        load_assumptions(df)


def test_load_assumptions_does_not_modify_input():
    df = mock_assumption_df(n_spectra=3)
    df.loc[0, "modifications"] = None

    load_assumptions(df)

    assert df["modifications"].isna().sum() == 1


@pytest.mark.parametrize("file_name, sep", [("assumptions.tsv", "\t"), ("assumptions.csv", ",")])
def test_read_table_from_file(tmp_path, file_name, sep):
    df = mock_assumption_df(n_spectra=5)
    path = os.path.join(tmp_path, file_name)
    df.to_csv(path, sep=sep, index=False)

    # when
    identification = load_assumptions(path)

    assert len(identification.spectrum_matches) == 5


def test_read_table_missing_file(tmp_path):
    with pytest.raises(InvalidTableError):
        read_table(os.path.join(tmp_path, "missing.tsv"))


def test_load_protein_descriptions():
    df = pd.DataFrame(
        {
            "accession": ["P1", "P2"],
            "description": ["Hemoglobin subunit alpha", None],
        }
    )

    database = load_protein_descriptions(df, decoy_tags=["REV_"])

    assert len(database) == 2
    assert database.description("P1") == "Hemoglobin subunit alpha"
    assert database.description("P2") == ""
    assert database.decoy_tags == ("REV_",)


def test_write_results(tmp_path, identification):
    identification.build_peptides_and_proteins()

    write_results(identification, tmp_path)

    for file_name in [PSM_FILE_NAME, PEPTIDE_FILE_NAME, PROTEIN_FILE_NAME]:
        assert os.path.exists(os.path.join(tmp_path, file_name))
