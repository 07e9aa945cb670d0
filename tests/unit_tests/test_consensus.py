import pytest

from alphaconsensus.consensus import ConsensusResolver, combine_first_hits
from alphaconsensus.exceptions import NoSpectrumMatchError
from alphaconsensus.identification.matches import Peptide, PeptideAssumption
from alphaconsensus.identification.store import Identification
from alphaconsensus.reporting.reporting import ProgressReporter
from alphaconsensus.scoring.maps import AdvocateScoreMap


def _assumption(sequence, advocate, probability=None, score=0.01, proteins=("P1",)):
    return PeptideAssumption(
        Peptide(sequence, (), proteins),
        advocate,
        score,
        2,
        advocate_probability=probability,
    )


def test_combine_first_hits_agreeing_advocates():
    first_hits = {
        "engine_a": _assumption("PEPTIDE", "engine_a", 0.9),
        "engine_b": _assumption("PEPTIDE", "engine_b", 0.8),
    }

    best, combined_score = combine_first_hits(first_hits)

    assert best.sequence == "PEPTIDE"
    assert best is first_hits["engine_a"]
    assert combined_score == pytest.approx(0.72)


def test_combine_first_hits_disagreeing_advocates():
    first_hits = {
        "engine_a": _assumption("PEPTIDEK", "engine_a", 0.1),
        "engine_b": _assumption("PEPTIDER", "engine_b", 0.2),
        "engine_c": _assumption("PEPTIDER", "engine_c", 0.3),
    }

    best, combined_score = combine_first_hits(first_hits)

    # 0.2 * 0.3 < 0.1
    assert best is first_hits["engine_b"]
    assert combined_score == pytest.approx(0.1 * 0.2 * 0.3)


def test_combine_first_hits_tie_keeps_first_seen():
    first_hits = {
        "engine_a": _assumption("PEPTIDEK", "engine_a", 0.5),
        "engine_b": _assumption("PEPTIDER", "engine_b", 0.5),
    }

    best, _ = combine_first_hits(first_hits)

    assert best is first_hits["engine_a"]


def test_combine_first_hits_without_probabilities():
    first_hits = {
        "engine_a": _assumption("PEPTIDEK", "engine_a"),
        "engine_b": _assumption("PEPTIDER", "engine_b", 0.4),
    }

    assert combine_first_hits(first_hits) == (first_hits["engine_b"], 0.4)
    assert combine_first_hits({"engine_a": first_hits["engine_a"]}) == (None, None)


def test_combine_first_hits_probability_function():
    first_hits = {
        "engine_a": _assumption("PEPTIDEK", "engine_a", 0.1),
        "engine_b": _assumption("PEPTIDER", "engine_b", 0.9),
    }
    override = {"engine_a": 0.9, "engine_b": 0.1}

    best, _ = combine_first_hits(first_hits, lambda a: override[a.advocate])

    assert best is first_hits["engine_b"]


def _tied_identification(n_supporting_spectra):
    identification = Identification()
    identification.add_assumption(
        "spectrum_0", _assumption("AAAK", "engine_a", score=0.01, proteins=("P1",))
    )
    identification.add_assumption(
        "spectrum_0", _assumption("CCCK", "engine_a", score=0.01, proteins=("P2",))
    )
    for i in range(n_supporting_spectra):
        identification.add_assumption(
            f"spectrum_{i + 1}",
            _assumption("DDDK", "engine_a", score=0.02, proteins=("P2",)),
        )
    return identification


def test_resolve_conflicts_prefers_supported_protein():
    identification = _tied_identification(n_supporting_spectra=2)
    resolver = ConsensusResolver(identification, AdvocateScoreMap())

    first_hits = resolver.resolve_conflicts()

    assert first_hits[("spectrum_0", "engine_a")].sequence == "CCCK"
    assert first_hits[("spectrum_1", "engine_a")].sequence == "DDDK"


def test_resolve_conflicts_equal_support_keeps_first_hit():
    identification = _tied_identification(n_supporting_spectra=0)
    resolver = ConsensusResolver(identification, AdvocateScoreMap())

    first_hits = resolver.resolve_conflicts()

    assert first_hits[("spectrum_0", "engine_a")].sequence == "AAAK"


def test_resolve_conflicts_threaded():
    identification = _tied_identification(n_supporting_spectra=5)
    resolver = ConsensusResolver(identification, AdvocateScoreMap(), thread_count=3)

    first_hits = resolver.resolve_conflicts()

    assert first_hits[("spectrum_0", "engine_a")].sequence == "CCCK"


def test_resolve_multiple_advocates(identification):
    resolver = ConsensusResolver(identification, AdvocateScoreMap())

    # when
    result = resolver.resolve()

    assert result.ok
    assert result.value == 200
    assert sorted(resolver.advocate_map.keys()) == ["engine_a", "engine_b"]
    assert resolver.advocate_map.is_calibrated

    for spectrum_match in identification.spectrum_matches.values():
        best = spectrum_match.best_assumption
        first_hits = spectrum_match.first_hits()
        assert best is first_hits["engine_a"]
        assert spectrum_match.combined_score == pytest.approx(
            first_hits["engine_a"].advocate_probability
            * first_hits["engine_b"].advocate_probability
        )
        for advocate in spectrum_match.advocates:
            probabilities = [
                a.advocate_probability for a in spectrum_match.assumptions(advocate)
            ]
            assert probabilities == sorted(probabilities)


def test_resolve_non_string_advocates():
    identification = Identification()
    for i in range(40):
        proteins = ("REV_P1",) if i % 4 == 0 else ("P1",)
        for advocate in [1, 2]:
            identification.add_assumption(
                f"spectrum_{i}",
                _assumption(f"PEPTIDE{i}K", advocate, score=0.01 * i, proteins=proteins),
            )
    resolver = ConsensusResolver(identification, AdvocateScoreMap())

    # when
    result = resolver.resolve()

    assert result.ok
    assert sorted(resolver.advocate_map.keys()) == ["1", "2"]
    for spectrum_match in identification.spectrum_matches.values():
        assert spectrum_match.combined_score is not None
        for assumption in spectrum_match.all_assumptions():
            assert assumption.advocate_probability is not None


def test_resolve_is_idempotent(identification):
    resolver = ConsensusResolver(identification, AdvocateScoreMap())
    resolver.resolve()
    first_run = {
        key: (sm.best_assumption, sm.combined_score)
        for key, sm in identification.spectrum_matches.items()
    }

    # when
    resolver.resolve()

    for key, spectrum_match in identification.spectrum_matches.items():
        assert spectrum_match.best_assumption is first_run[key][0]
        assert spectrum_match.combined_score == first_run[key][1]


def test_resolve_single_advocate_uses_raw_score():
    identification = Identification()
    for i in range(5):
        identification.add_assumption(
            f"spectrum_{i}", _assumption(f"PEPTIDE{i}K", "engine_a", score=0.1 * i)
        )
    resolver = ConsensusResolver(identification, AdvocateScoreMap())

    # when
    result = resolver.resolve()

    # the advocate context holds no decoy
    assert len(result.faults) == 1
    assert result.value == 5
    for spectrum_match in identification.spectrum_matches.values():
        assert (
            spectrum_match.combined_score
            == spectrum_match.first_hit("engine_a").score
        )
        assert spectrum_match.best_assumption.advocate_probability is None


def test_resolve_without_spectra_raises():
    resolver = ConsensusResolver(Identification(), AdvocateScoreMap())

    with pytest.raises(NoSpectrumMatchError):
        resolver.resolve()


def test_resolve_cancelled_leaves_identification_untouched(identification):
    progress_reporter = ProgressReporter(show_progress_bar=False)
    progress_reporter.cancel()
    advocate_map = AdvocateScoreMap()
    resolver = ConsensusResolver(identification, advocate_map, progress_reporter)

    # when
    result = resolver.resolve()

    assert result.cancelled
    assert resolver.advocate_map is advocate_map
    assert len(advocate_map) == 0
    for spectrum_match in identification.spectrum_matches.values():
        assert spectrum_match.best_assumption is None
        assert all(
            a.advocate_probability is None for a in spectrum_match.all_assumptions()
        )
