import pytest

from alphaconsensus.constants.keys import MatchLevel, OutputCols, ProteinCols
from alphaconsensus.identification.matches import (
    MatchRecord,
    ModificationMatch,
    Peptide,
    PeptideAssumption,
    ProteinMatch,
    SpectrumMatch,
    contains,
    get_accessions,
    get_protein_key,
    n_proteins,
)
from alphaconsensus.identification.proteins import ProteinDatabase
from alphaconsensus.identification.store import Identification


def test_peptide_key_ignores_sites():
    peptide_1 = Peptide("PEPTMIDEK", (ModificationMatch("Oxidation", 4),))
    peptide_2 = Peptide("PEPTMIDEK", (ModificationMatch("Oxidation", 1),))

    assert peptide_1.key == peptide_2.key == "PEPTMIDEK_Oxidation"


def test_peptide_modification_profile():
    unmodified = Peptide(
        "PEPTIDEK", (ModificationMatch("Carbamidomethyl", 2, variable=False),)
    )
    modified = Peptide(
        "PEPTMMDEK",
        (
            ModificationMatch("Oxidation", 5),
            ModificationMatch("Oxidation", 6),
            ModificationMatch("Acetyl", 0),
        ),
    )

    assert not unmodified.is_modified
    assert unmodified.modification_profile == "unmodified"
    assert unmodified.key == "PEPTIDEK"
    assert modified.is_modified
    assert modified.modification_profile == "Acetyl_Oxidation"
    assert modified.key == "PEPTMMDEK_Acetyl_Oxidation_Oxidation"


def test_spectrum_match_orders_assumptions():
    peptide = Peptide("PEPTIDEK")
    spectrum_match = SpectrumMatch("spectrum_1")

    worse = PeptideAssumption(peptide, "engine_a", 0.5, 2)
    best = PeptideAssumption(peptide, "engine_a", 0.1, 2)
    tied = PeptideAssumption(peptide, "engine_a", 0.1, 2)
    other = PeptideAssumption(peptide, "engine_b", 0.3, 2)

    for assumption in [worse, best, tied, other]:
        spectrum_match.add_assumption(assumption)

    assert spectrum_match.advocates == ["engine_a", "engine_b"]
    assert spectrum_match.assumptions("engine_a") == [best, tied, worse]
    assert spectrum_match.top_assumptions("engine_a") == [best, tied]
    assert spectrum_match.first_hit("engine_a") is best
    assert spectrum_match.first_hits() == {"engine_a": best, "engine_b": other}
    assert spectrum_match.first_hit("engine_c") is None
    assert len(spectrum_match.all_assumptions()) == 4


def test_set_first_hit():
    peptide = Peptide("PEPTIDEK")
    spectrum_match = SpectrumMatch("spectrum_1")
    first = PeptideAssumption(peptide, "engine_a", 0.1, 2)
    second = PeptideAssumption(peptide, "engine_a", 0.1, 2)
    spectrum_match.add_assumption(first)
    spectrum_match.add_assumption(second)

    # when
    spectrum_match.set_first_hit("engine_a", second)

    assert spectrum_match.first_hit("engine_a") is second

    foreign = PeptideAssumption(peptide, "engine_a", 0.1, 2)
    with pytest.raises(ValueError):
        spectrum_match.set_first_hit("engine_a", foreign)


def test_protein_keys():
    assert get_protein_key(["B", "A", "B"]) == "A B"
    assert get_accessions("A B") == ["A", "B"]
    assert n_proteins("A B C") == 3


@pytest.mark.parametrize(
    "shared_key, unique_key, expected",
    [
        ("A B", "A", True),
        ("A B C", "A C", True),
        ("A B", "A B", False),
        ("A", "A B", False),
        ("A B", "C", False),
        ("A B", "", False),
    ],
)
def test_contains(shared_key, unique_key, expected):
    assert contains(shared_key, unique_key) == expected


def test_protein_match():
    protein_match = ProteinMatch(["P2", "P1"], ["PEPTIDEK", "PEPTIDEK"])

    assert protein_match.key == "P1 P2"
    assert protein_match.main_accession == "P1"
    assert protein_match.is_group
    assert protein_match.peptide_keys == ["PEPTIDEK"]

    with pytest.raises(ValueError):
        ProteinMatch([])


@pytest.mark.parametrize(
    "accessions, expected",
    [
        (["P1"], False),
        (["REV_P1"], True),
        (["P1", "P2_REVERSED"], True),
        (["P1", "P2"], False),
    ],
)
def test_decoy_accessions(accessions, expected):
    assert ProteinDatabase().is_decoy_accessions(accessions) == expected


def test_protein_database_custom_tags():
    database = ProteinDatabase({"P1": "Albumin"}, decoy_tags=["XXX_"])

    assert database.is_decoy_accession("XXX_P1")
    assert not database.is_decoy_accession("REV_P1")
    assert database.description("P1") == "Albumin"
    assert database.description("P2") == ""


def _identification():
    identification = Identification()
    shared = Peptide("SHAREDK", (), ("P1", "P2"))
    unique = Peptide("UNIQUEK", (), ("P1",))
    decoy = Peptide("KEDIUQNU", (), ("REV_P3",))

    for i, peptide in enumerate([shared, shared, unique, decoy]):
        identification.add_assumption(
            f"spectrum_{i}", PeptideAssumption(peptide, "engine_a", 0.1 * i, 2)
        )
    for spectrum_match in identification.spectrum_matches.values():
        spectrum_match.best_assumption = spectrum_match.first_hit("engine_a")
        spectrum_match.combined_score = spectrum_match.best_assumption.score
    return identification


def test_add_spectrum_match_duplicate_raises():
    identification = Identification()
    identification.add_spectrum_match(SpectrumMatch("spectrum_1"))

    with pytest.raises(ValueError):
        identification.add_spectrum_match(SpectrumMatch("spectrum_1"))


def test_build_peptides_and_proteins():
    identification = _identification()
    identification.set_records(
        MatchLevel.PEPTIDE, {"SHAREDK": MatchRecord(0.1, "unmodified")}
    )

    # when
    identification.build_peptides_and_proteins()

    assert sorted(identification.peptide_matches) == ["KEDIUQNU", "SHAREDK", "UNIQUEK"]
    assert identification.peptide_matches["SHAREDK"].spectrum_keys == [
        "spectrum_0",
        "spectrum_1",
    ]
    assert sorted(identification.protein_matches) == ["P1", "P1 P2", "REV_P3"]
    assert identification.protein_matches["P1 P2"].peptide_keys == ["SHAREDK"]
    assert identification.records(MatchLevel.PEPTIDE) == {}


def test_build_skips_spectra_without_best_assumption():
    identification = _identification()
    identification.spectrum_matches["spectrum_3"].best_assumption = None

    identification.build_peptides_and_proteins()

    assert "KEDIUQNU" not in identification.peptide_matches
    assert "REV_P3" not in identification.protein_matches


def test_decoy_status():
    identification = _identification()
    identification.build_peptides_and_proteins()

    assert identification.is_decoy_spectrum(identification.spectrum_matches["spectrum_3"])
    assert not identification.is_decoy_spectrum(
        identification.spectrum_matches["spectrum_0"]
    )
    assert identification.is_decoy_peptide(identification.peptide_matches["KEDIUQNU"])
    assert identification.is_decoy_protein(identification.protein_matches["REV_P3"])
    assert not identification.is_decoy_protein(identification.protein_matches["P1 P2"])


def test_records():
    identification = _identification()
    records = {"spectrum_0": MatchRecord(0.1, "2", 0.01)}

    # when
    identification.set_records(MatchLevel.PSM, records)
    records["spectrum_1"] = MatchRecord(0.2, "2")

    assert list(identification.records(MatchLevel.PSM)) == ["spectrum_0"]
    assert identification.get_record(MatchLevel.PSM, "spectrum_0").probability == 0.01
    assert identification.get_record(MatchLevel.PSM, "spectrum_1") is None

    with pytest.raises(ValueError):
        identification.set_records("fragment", {})


def test_remove_protein_match():
    identification = _identification()
    identification.build_peptides_and_proteins()
    identification.set_records(MatchLevel.PROTEIN, {"P1 P2": MatchRecord(0.5, "all")})

    # when
    identification.remove_protein_match("P1 P2")

    assert "P1 P2" not in identification.protein_matches
    assert identification.get_record(MatchLevel.PROTEIN, "P1 P2") is None


def test_output_frames():
    identification = _identification()
    identification.build_peptides_and_proteins()
    identification.set_records(
        MatchLevel.PSM, {"spectrum_0": MatchRecord(0.0, "2", 0.01, validated=True)}
    )

    psm_df = identification.psm_df()
    peptide_df = identification.peptide_df()
    protein_df = identification.protein_df()

    assert len(psm_df) == 4
    assert psm_df[OutputCols.VALIDATED].tolist() == [True, False, False, False]
    assert psm_df[OutputCols.DECOY].tolist() == [False, False, False, True]
    assert psm_df[OutputCols.PEP].isna().sum() == 3
    assert len(peptide_df) == 3
    assert peptide_df[OutputCols.N_SPECTRA].tolist() == [2, 1, 1]
    assert protein_df[ProteinCols.ACCESSIONS].tolist() == ["P1;P2", "P1", "REV_P3"]
