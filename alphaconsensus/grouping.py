"""Resolution of ambiguous protein groups."""

# native imports
import logging
from dataclasses import dataclass

# alphaconsensus imports
from alphaconsensus.constants.keys import GroupClass, MatchLevel, Stage
from alphaconsensus.identification.matches import contains
from alphaconsensus.identification.store import Identification
from alphaconsensus.scoring.maps import ProteinScoreMap
from alphaconsensus.workflow.result import StageResult

logger = logging.getLogger()


def parse_description(description: str, min_token_length: int = 4) -> list[str]:
    """Split a protein description into whitespace separated tokens of at least `min_token_length` characters."""
    return [token for token in description.split() if len(token) >= min_token_length]


def get_similarity(
    tokens_1: list[str], tokens_2: list[str], similarity_threshold: float = 0.5
) -> bool:
    """Whether two tokenized descriptions are similar.

    Descriptions are similar if they have the same, non-zero number of tokens and at least
    `similarity_threshold` of the tokens are identical at the same position.

    Parameters
    ----------
    tokens_1, tokens_2 : list[str]
        Output of `parse_description`.

    similarity_threshold : float, default 0.5
        Minimal fraction of identical tokens.

    Returns
    -------
    bool
        True if similar, symmetric in its two arguments.

    """
    if len(tokens_1) == 0 or len(tokens_1) != len(tokens_2):
        return False
    n_match = sum(a == b for a, b in zip(tokens_1, tokens_2, strict=True))
    return n_match / len(tokens_1) >= similarity_threshold


@dataclass
class GroupResolutionSummary:
    n_removed: int = 0
    n_solved: int = 0
    n_left: int = 0

    @property
    def message(self) -> str:
        return f"{self.n_solved} conflicts resolved. {self.n_left} protein groups remaining."


class ProteinGroupResolver:
    def __init__(
        self,
        identification: Identification,
        progress_reporter=None,
        similarity_threshold: float = 0.5,
        min_token_length: int = 4,
    ):
        """Merge protein groups which are explained by smaller groups and classify the remaining ones.

        Parameters
        ----------
        identification : Identification
            Store holding scored protein matches, modified in place.

        progress_reporter : ProgressReporter, optional
            Used to check for cancellation and to report the summary.

        similarity_threshold : float, default 0.5
            See `get_similarity`.

        min_token_length : int, default 4
            See `parse_description`.

        """
        self.identification = identification
        self.progress_reporter = progress_reporter
        self.similarity_threshold = similarity_threshold
        self.min_token_length = min_token_length

    def _is_cancelled(self) -> bool:
        return self.progress_reporter is not None and self.progress_reporter.is_cancelled()

    def plan_subsumed_groups(self) -> tuple[dict[str, list[str]], list[str]] | None:
        """Peptides to attach to contained groups and shared groups to remove.

        Every shared group is visited once in store order. Its peptides, including the ones planned for it
        by larger groups, are given to every group whose accessions are a strict subset of its own. The
        shared group is removed if one of these groups scores at least as well. Groups with a score of 1
        or without record are left untouched.

        Returns
        -------
        tuple[dict[str, list[str]], list[str]] | None
            Planned peptide keys per protein key and keys of the groups to remove, None if cancelled.
        """
        protein_matches = self.identification.protein_matches
        records = self.identification.records(MatchLevel.PROTEIN)

        planned_peptides: dict[str, list[str]] = {}
        to_remove = []

        for shared_key, shared_match in protein_matches.items():
            if self._is_cancelled():
                return None
            if not shared_match.is_group:
                continue
            shared_record = records.get(shared_key)
            if shared_record is None or shared_record.score >= 1:
                continue

            peptide_keys = shared_match.peptide_keys + planned_peptides.get(
                shared_key, []
            )

            is_outscored = False
            for unique_key, unique_match in protein_matches.items():
                if not contains(shared_key, unique_key):
                    continue
                planned = planned_peptides.setdefault(unique_key, [])
                for peptide_key in peptide_keys:
                    if (
                        peptide_key not in unique_match.peptide_keys
                        and peptide_key not in planned
                    ):
                        planned.append(peptide_key)

                unique_record = records.get(unique_key)
                if (
                    unique_record is not None
                    and unique_record.score <= shared_record.score
                ):
                    is_outscored = True

            if is_outscored:
                to_remove.append(shared_key)

        return planned_peptides, to_remove

    def apply_subsumed_groups(
        self,
        plan: tuple[dict[str, list[str]], list[str]],
        protein_map: ProteinScoreMap,
    ) -> int:
        """Attach the planned peptides and remove the outscored groups from the store and the protein map."""
        planned_peptides, to_remove = plan
        protein_matches = self.identification.protein_matches
        records = self.identification.records(MatchLevel.PROTEIN)

        for unique_key, peptide_keys in planned_peptides.items():
            for peptide_key in peptide_keys:
                protein_matches[unique_key].add_peptide_match(peptide_key)

        for shared_key in to_remove:
            shared_match = protein_matches[shared_key]
            protein_map.remove_point(
                protein_map.key_for(shared_match),
                records[shared_key].score,
                self.identification.is_decoy_protein(shared_match),
            )
            self.identification.remove_protein_match(shared_key)
            logger.debug(f"Removed protein group {shared_key}")

        logger.info(f"Removed {len(to_remove):,} subsumed protein groups")
        return len(to_remove)

    def merge_subsumed_groups(self, protein_map: ProteinScoreMap) -> int | None:
        """Plan and apply the merge of subsumed groups, returns the number of removed groups or None if cancelled."""
        plan = self.plan_subsumed_groups()
        if plan is None:
            return None
        return self.apply_subsumed_groups(plan, protein_map)

    def classify_group(self, accessions: list[str]) -> tuple[str, str]:
        """Main accession and class of a protein group based on the similarity of the descriptions.

        Returns
        -------
        tuple[str, str]
            Main accession and one of the `GroupClass` constants.
        """
        accessions = sorted(accessions)
        database = self.identification.protein_database
        tokens = {
            accession: parse_description(
                database.description(accession), self.min_token_length
            )
            for accession in accessions
        }

        main_accession = None
        for i, accession in enumerate(accessions):
            for other in accessions[i + 1 :]:
                if get_similarity(
                    tokens[accession], tokens[other], self.similarity_threshold
                ):
                    main_accession = accession
                    break
            if main_accession is not None:
                break

        if main_accession is None:
            return accessions[0], GroupClass.UNRELATED

        all_similar = all(
            get_similarity(
                tokens[main_accession], tokens[other], self.similarity_threshold
            )
            for other in accessions
            if other != main_accession
        )
        if all_similar:
            return main_accession, GroupClass.ISOFORMS
        return main_accession, GroupClass.ISOFORMS_UNRELATED

    def plan_classification(self, excluded=()) -> dict[str, tuple[str, str]] | None:
        """Main accession and class of every multi accession group not in `excluded`, None if cancelled."""
        excluded = set(excluded)
        plan = {}
        for key, protein_match in self.identification.protein_matches.items():
            if self._is_cancelled():
                return None
            if not protein_match.is_group or key in excluded:
                continue
            plan[key] = self.classify_group(protein_match.accessions)
        return plan

    def apply_classification(self, plan: dict[str, tuple[str, str]]) -> dict[str, int]:
        """Store the planned classification, fields are only written when they change.

        Returns
        -------
        dict[str, int]
            Number of groups per class.
        """
        counts = dict.fromkeys(GroupClass.get_values(), 0)
        for key, (main_accession, group_class) in plan.items():
            protein_match = self.identification.protein_matches[key]
            if protein_match.main_accession != main_accession:
                protein_match.main_accession = main_accession
            if protein_match.group_class != group_class:
                protein_match.group_class = group_class
            counts[group_class] += 1
        return counts

    def classify_groups(self) -> dict[str, int] | None:
        plan = self.plan_classification()
        if plan is None:
            return None
        return self.apply_classification(plan)

    def resolve(self, protein_map: ProteinScoreMap) -> StageResult:
        """Run the merge of subsumed groups followed by the classification of the remaining groups.

        Both phases are planned before anything is written, a cancelled run leaves the store untouched.
        """
        result = StageResult(Stage.PROTEIN_GROUP_RESOLVE)

        merge_plan = self.plan_subsumed_groups()
        if merge_plan is None:
            result.cancelled = True
            return result

        classification_plan = self.plan_classification(excluded=merge_plan[1])
        if classification_plan is None:
            result.cancelled = True
            return result

        n_removed = self.apply_subsumed_groups(merge_plan, protein_map)
        counts = self.apply_classification(classification_plan)

        summary = GroupResolutionSummary(
            n_removed=n_removed,
            n_solved=n_removed
            + counts[GroupClass.ISOFORMS]
            + counts[GroupClass.ISOFORMS_UNRELATED],
            n_left=counts[GroupClass.UNRELATED],
        )
        result.value = summary

        if self.progress_reporter is not None:
            self.progress_reporter.report_text(summary.message)
        else:
            logger.info(summary.message)

        return result
