"""Selection of one best peptide assumption per spectrum across advocates."""

# native imports
import logging
from collections import Counter
from collections.abc import Callable

# alphaconsensus imports
from alphaconsensus.constants.keys import Stage
from alphaconsensus.exceptions import NoDecoyObservationsError, NoSpectrumMatchError
from alphaconsensus.identification.matches import PeptideAssumption, SpectrumMatch
from alphaconsensus.identification.store import Identification
from alphaconsensus.scoring.maps import AdvocateScoreMap
from alphaconsensus.utils import map_matches, product
from alphaconsensus.workflow.result import StageResult

logger = logging.getLogger()


def combine_first_hits(
    first_hits: dict[str, PeptideAssumption],
    probability_of: Callable[[PeptideAssumption], float | None] = None,
) -> tuple[PeptideAssumption | None, float | None]:
    """Select the consensus assumption among the first hits of several advocates.

    The probabilities of first hits sharing a peptide key are multiplied, the peptide with the smallest
    product wins. Ties are resolved in favour of the peptide seen first.

    Parameters
    ----------
    first_hits : dict[str, PeptideAssumption]
        First hit per advocate, in advocate order.

    probability_of : Callable, optional
        Returns the advocate probability of an assumption. Defaults to `assumption.advocate_probability`.
        First hits without probability are ignored.

    Returns
    -------
    tuple[PeptideAssumption | None, float | None]
        The first seen assumption of the winning peptide and the product of the probabilities of all
        first hits. `(None, None)` if no first hit carries a probability.

    """
    if probability_of is None:

        def probability_of(assumption):
            return assumption.advocate_probability

    peptide_probabilities: dict[str, float] = {}
    representatives: dict[str, PeptideAssumption] = {}
    probabilities = []

    for assumption in first_hits.values():
        probability = probability_of(assumption)
        if probability is None:
            continue
        probabilities.append(probability)
        key = assumption.peptide_key
        if key not in peptide_probabilities:
            peptide_probabilities[key] = 1.0
            representatives[key] = assumption
        peptide_probabilities[key] *= probability

    if len(peptide_probabilities) == 0:
        return None, None

    best_key = None
    for key, probability in peptide_probabilities.items():
        if best_key is None or probability < peptide_probabilities[best_key]:
            best_key = key

    return representatives[best_key], product(probabilities)


def _tally_spectrum(spectrum_match: SpectrumMatch) -> tuple[set[str], bool]:
    """Parent accessions of all top scoring assumptions of a spectrum and whether advocates are ambiguous."""
    accessions = set()
    conflicting = False
    for advocate in spectrum_match.advocates:
        top_assumptions = spectrum_match.top_assumptions(advocate)
        sequences = {assumption.sequence for assumption in top_assumptions}
        if len(sequences) > 1:
            conflicting = True
        for assumption in top_assumptions:
            accessions.update(assumption.peptide.parent_proteins)
    return accessions, conflicting


class ConsensusResolver:
    def __init__(
        self,
        identification: Identification,
        advocate_map: AdvocateScoreMap,
        progress_reporter=None,
        thread_count: int = 1,
    ):
        """Pick the first hit of every advocate and the best assumption of every spectrum.

        Parameters
        ----------
        identification : Identification
            Store holding the spectrum matches. Modified in place by `resolve`.

        advocate_map : AdvocateScoreMap
            Score map receiving the raw scores of the first hits, one context per advocate.

        progress_reporter : ProgressReporter, optional
            Used to check for cancellation and to report progress.

        thread_count : int, default 1
            Number of threads used to tally the accessions of the spectra.

        """
        self.identification = identification
        self.advocate_map = advocate_map
        self.progress_reporter = progress_reporter
        self.thread_count = thread_count

    def _is_cancelled(self) -> bool:
        return self.progress_reporter is not None and self.progress_reporter.is_cancelled()

    def estimate_advocate_probabilities(
        self, advocate_map: AdvocateScoreMap, result: StageResult
    ) -> dict[int, float] | None:
        """Calibrate an empty advocate map on the top hits and derive a probability for every assumption.

        Within a spectrum and advocate, probabilities are made non-decreasing in raw score order.

        Returns
        -------
        dict[int, float] | None
            Probability by `id` of the assumption, None if cancelled.
        """
        for spectrum_match in self.identification.spectrum_matches.values():
            for advocate in spectrum_match.advocates:
                top_hit = spectrum_match.assumptions(advocate)[0]
                advocate_map.add_point(
                    advocate_map.key_for(top_hit),
                    top_hit.score,
                    self.identification.is_decoy_assumption(top_hit),
                )

        advocate_map.cure()
        advocate_map.estimate_statistics()

        for key in advocate_map.keys_without_decoys():
            result.add_fault(
                f"advocate context '{key}' holds no decoy hit, advocate probabilities cannot be estimated"
            )

        failed_advocates = set()
        probabilities: dict[int, float] = {}
        for spectrum_match in self.identification.spectrum_matches.values():
            if self._is_cancelled():
                return None
            for advocate in spectrum_match.advocates:
                if advocate in failed_advocates:
                    continue
                running = 0.0
                try:
                    for assumption in spectrum_match.assumptions(advocate):
                        probability = advocate_map.probability(
                            advocate_map.key_for(assumption), assumption.score
                        )
                        running = max(running, probability)
                        probabilities[id(assumption)] = running
                except (NoDecoyObservationsError, KeyError) as e:
                    logger.debug(f"No probability for advocate {advocate}: {e}")
                    failed_advocates.add(advocate)

        return probabilities

    def resolve_conflicts(self) -> dict[tuple[str, str], PeptideAssumption] | None:
        """Break ties between differing top scoring sequences of an advocate using dataset wide evidence.

        In a first pass, every accession is tallied with the number of spectra in which it is a parent
        protein of a top scoring assumption. In a second pass, for every ambiguous spectrum and advocate,
        the first hit is replaced by a tied assumption whose best supported parent protein has a strictly
        larger tally. Equal tallies keep the original first hit.

        Returns
        -------
        dict[tuple[str, str], PeptideAssumption] | None
            First hit per spectrum key and advocate, None if cancelled.
        """
        spectrum_matches = list(self.identification.spectrum_matches.values())

        tally = Counter()
        conflicting_spectra = []
        for spectrum_match, (accessions, conflicting) in zip(
            spectrum_matches,
            map_matches(_tally_spectrum, spectrum_matches, self.thread_count),
            strict=True,
        ):
            if self._is_cancelled():
                return None
            tally.update(accessions)
            if conflicting:
                conflicting_spectra.append(spectrum_match)

        def support(assumption):
            return max(
                (tally[accession] for accession in assumption.peptide.parent_proteins),
                default=0,
            )

        first_hits = {}
        n_changed = 0
        for spectrum_match in spectrum_matches:
            for advocate in spectrum_match.advocates:
                first_hits[(spectrum_match.key, advocate)] = spectrum_match.assumptions(
                    advocate
                )[0]

        for spectrum_match in conflicting_spectra:
            for advocate in spectrum_match.advocates:
                top_assumptions = spectrum_match.top_assumptions(advocate)
                selected = top_assumptions[0]
                original_sequence = selected.sequence
                selected_support = support(selected)
                for assumption in top_assumptions[1:]:
                    if assumption.sequence == original_sequence:
                        continue
                    assumption_support = support(assumption)
                    if assumption_support > selected_support:
                        selected = assumption
                        selected_support = assumption_support
                if selected is not top_assumptions[0]:
                    n_changed += 1
                first_hits[(spectrum_match.key, advocate)] = selected

        logger.info(
            f"{len(conflicting_spectra):,} spectra with tied first hits, {n_changed:,} first hits changed"
        )
        return first_hits

    def select_best_assumptions(
        self,
        first_hits: dict[tuple[str, str], PeptideAssumption],
        probabilities: dict[int, float],
        result: StageResult,
    ) -> dict[str, tuple[PeptideAssumption, float]] | None:
        """Best assumption and combined score per spectrum key, None if cancelled."""
        multiple_advocates = self.identification.has_multiple_advocates
        selection = {}

        for spectrum_match in self.identification.spectrum_matches.values():
            if self._is_cancelled():
                return None

            spectrum_first_hits = {
                advocate: first_hits[(spectrum_match.key, advocate)]
                for advocate in spectrum_match.advocates
            }

            if multiple_advocates:
                best, combined_score = combine_first_hits(
                    spectrum_first_hits, lambda a: probabilities.get(id(a))
                )
                if best is None:
                    result.add_fault(
                        f"spectrum {spectrum_match.key} has no first hit with advocate probability"
                    )
                    continue
            else:
                best = next(iter(spectrum_first_hits.values()))
                combined_score = best.score

            selection[spectrum_match.key] = (best, combined_score)

        return selection

    def resolve(self) -> StageResult:
        """Run advocate calibration, conflict resolution and best assumption selection.

        Nothing is written to the identification before all decisions were taken, a cancelled run
        leaves the identification untouched.
        """
        result = StageResult(Stage.CONSENSUS)

        if len(self.identification.spectrum_matches) == 0:
            raise NoSpectrumMatchError()

        advocate_map = self.advocate_map.empty_like()
        probabilities = self.estimate_advocate_probabilities(advocate_map, result)
        if probabilities is None:
            result.cancelled = True
            return result

        first_hits = self.resolve_conflicts()
        if first_hits is None:
            result.cancelled = True
            return result

        selection = self.select_best_assumptions(first_hits, probabilities, result)
        if selection is None:
            result.cancelled = True
            return result

        self.advocate_map = advocate_map
        for spectrum_match in self.identification.spectrum_matches.values():
            for advocate in spectrum_match.advocates:
                spectrum_match.set_first_hit(
                    advocate, first_hits[(spectrum_match.key, advocate)]
                )
            for assumption in spectrum_match.all_assumptions():
                assumption.advocate_probability = probabilities.get(id(assumption))

            best, combined_score = selection.get(spectrum_match.key, (None, None))
            spectrum_match.best_assumption = best
            spectrum_match.combined_score = combined_score

        result.value = len(selection)
        logger.info(
            f"Selected best assumptions for {len(selection):,} of {len(self.identification.spectrum_matches):,} spectra"
        )
        return result
