"""Data model of spectrum, peptide and protein matches and their score records."""

# native imports
import logging
from dataclasses import dataclass, field

logger = logging.getLogger()

# separator of accessions in a protein group key
ACCESSION_SEPARATOR = " "

UNMODIFIED = "unmodified"


@dataclass(frozen=True)
class ModificationMatch:
    name: str
    site: int
    variable: bool = True


@dataclass(frozen=True)
class Peptide:
    sequence: str
    modifications: tuple[ModificationMatch, ...] = ()
    parent_proteins: tuple[str, ...] = ()

    @property
    def variable_modification_names(self) -> list[str]:
        return sorted(mod.name for mod in self.modifications if mod.variable)

    @property
    def key(self) -> str:
        """Sequence followed by the sorted names of the variable modifications.

        Modification sites are not part of the key, two peptides differing only in the localization of
        their modifications share a key.
        """
        return "_".join([self.sequence, *self.variable_modification_names])

    @property
    def is_modified(self) -> bool:
        return any(mod.variable for mod in self.modifications)

    @property
    def modification_profile(self) -> str:
        names = sorted(set(self.variable_modification_names))
        if len(names) == 0:
            return UNMODIFIED
        return "_".join(names)


@dataclass(eq=False)
class PeptideAssumption:
    """One candidate peptide proposed by an advocate for a spectrum.

    The raw score is an e-value like statistic where lower is better.
    `advocate_probability` is derived from the advocate's target/decoy statistics and is None until
    advocate probabilities were estimated.
    """

    peptide: Peptide
    advocate: str
    score: float
    charge: int
    rank: int = 1
    advocate_probability: float | None = None

    @property
    def sequence(self) -> str:
        return self.peptide.sequence

    @property
    def peptide_key(self) -> str:
        return self.peptide.key


class SpectrumMatch:
    def __init__(self, key: str):
        """All peptide assumptions of all advocates for one spectrum.

        Parameters
        ----------
        key : str
            Stable identifier of the spectrum.

        """
        self.key = key
        self._assumptions: dict[str, list[PeptideAssumption]] = {}
        self._first_hits: dict[str, PeptideAssumption] = {}

        self.best_assumption: PeptideAssumption | None = None
        self.combined_score: float | None = None

    def __repr__(self):
        return f"<SpectrumMatch key={self.key} advocates={self.advocates}>"

    @property
    def advocates(self) -> list[str]:
        return list(self._assumptions.keys())

    def add_assumption(self, assumption: PeptideAssumption) -> None:
        """Add an assumption, keeping the assumptions of every advocate sorted by score.

        Assumptions with equal scores keep their insertion order.
        """
        assumptions = self._assumptions.setdefault(assumption.advocate, [])
        i = len(assumptions)
        while i > 0 and assumptions[i - 1].score > assumption.score:
            i -= 1
        assumptions.insert(i, assumption)

    def assumptions(self, advocate: str) -> list[PeptideAssumption]:
        return self._assumptions.get(advocate, [])

    def all_assumptions(self) -> list[PeptideAssumption]:
        return [
            assumption
            for assumptions in self._assumptions.values()
            for assumption in assumptions
        ]

    def top_assumptions(self, advocate: str) -> list[PeptideAssumption]:
        """All assumptions of an advocate tied at its best score."""
        assumptions = self.assumptions(advocate)
        if len(assumptions) == 0:
            return []
        best_score = assumptions[0].score
        return [a for a in assumptions if a.score == best_score]

    def first_hit(self, advocate: str) -> PeptideAssumption | None:
        if advocate in self._first_hits:
            return self._first_hits[advocate]
        assumptions = self.assumptions(advocate)
        return assumptions[0] if len(assumptions) > 0 else None

    def set_first_hit(self, advocate: str, assumption: PeptideAssumption) -> None:
        if assumption not in self.assumptions(advocate):
            raise ValueError(
                f"Assumption {assumption.peptide_key} was not proposed by {advocate} for spectrum {self.key}"
            )
        self._first_hits[advocate] = assumption

    def first_hits(self) -> dict[str, PeptideAssumption]:
        return {
            advocate: self.first_hit(advocate)
            for advocate in self.advocates
            if self.first_hit(advocate) is not None
        }


@dataclass
class PeptideMatch:
    key: str
    peptide: Peptide
    spectrum_keys: list[str] = field(default_factory=list)

    def add_spectrum_match(self, spectrum_key: str) -> None:
        if spectrum_key not in self.spectrum_keys:
            self.spectrum_keys.append(spectrum_key)


def get_protein_key(accessions) -> str:
    """Canonical key of a protein group, independent of the order of the accessions."""
    return ACCESSION_SEPARATOR.join(sorted(set(accessions)))


def get_accessions(protein_key: str) -> list[str]:
    return [a for a in protein_key.split(ACCESSION_SEPARATOR) if a]


def n_proteins(protein_key: str) -> int:
    return len(get_accessions(protein_key))


def contains(shared_key: str, unique_key: str) -> bool:
    """Whether the accessions of `unique_key` are a strict subset of the accessions of `shared_key`."""
    shared = set(get_accessions(shared_key))
    unique = set(get_accessions(unique_key))
    return len(unique) > 0 and unique < shared


class ProteinMatch:
    def __init__(self, accessions, peptide_keys=None):
        """A protein group: the accessions which cannot be told apart by the peptides matched to them.

        Parameters
        ----------
        accessions : Iterable[str]
            Accessions of the group, order does not matter.

        peptide_keys : Iterable[str], optional
            Keys of the peptide matches supporting the group.

        """
        self.accessions = sorted(set(accessions))
        if len(self.accessions) == 0:
            raise ValueError("A protein match needs at least one accession")

        self.key = get_protein_key(self.accessions)
        self.main_accession = self.accessions[0]
        self.group_class: str | None = None

        self.peptide_keys: list[str] = []
        for peptide_key in peptide_keys or []:
            self.add_peptide_match(peptide_key)

    def __repr__(self):
        return f"<ProteinMatch key={self.key} peptides={len(self.peptide_keys)}>"

    @property
    def is_group(self) -> bool:
        return len(self.accessions) > 1

    def add_peptide_match(self, peptide_key: str) -> None:
        if peptide_key not in self.peptide_keys:
            self.peptide_keys.append(peptide_key)


@dataclass
class MatchRecord:
    """Score and validation record attached to a match at one level."""

    score: float
    context_key: str
    probability: float | None = None
    validated: bool = False
