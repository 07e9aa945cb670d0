class ConstantsClass(type):
    """A metaclass for classes that should only contain string constants."""

    def __setattr__(self, name, value):
        raise TypeError("Constants class cannot be modified")

    def get_values(cls):
        """Get all user-defined string values of the class."""
        return [
            value
            for key, value in cls.__dict__.items()
            if not key.startswith("__") and isinstance(value, str)
        ]


class ConfigKeys(metaclass=ConstantsClass):
    """String constants for accessing the config."""

    OUTPUT_DIRECTORY = "output_directory"
    ASSUMPTIONS_PATH = "assumptions_path"
    PROTEINS_PATH = "proteins_path"

    GENERAL = "general"
    THREAD_COUNT = "thread_count"
    SAVE_FIGURES = "save_figures"
    DETAILED_REPORT = "detailed_report"

    FDR = "fdr"
    PSM = "psm"
    PEPTIDE = "peptide"
    PROTEIN = "protein"

    STATISTICS = "statistics"
    MIN_DECOYS = "min_decoys"
    MIN_WINDOW_SIZE = "min_window_size"
    MAX_DECOY_FRACTION = "max_decoy_fraction"

    DECOY = "decoy"
    DECOY_TAGS = "tags"

    PROTEIN_INFERENCE = "protein_inference"
    RESOLVE_GROUPS = "resolve_groups"
    SIMILARITY_THRESHOLD = "similarity_threshold"
    MIN_TOKEN_LENGTH = "min_token_length"


class MatchLevel(metaclass=ConstantsClass):
    """String constants for the three levels a score/validation record can be attached to."""

    PSM = "psm"
    PEPTIDE = "peptide"
    PROTEIN = "protein"


class GroupClass(metaclass=ConstantsClass):
    """String constants for the classification of multi-accession protein groups."""

    UNRELATED = "unrelated"
    ISOFORMS = "isoforms"
    ISOFORMS_UNRELATED = "isoforms_unrelated"


class Stage(metaclass=ConstantsClass):
    """String constants for the stages of the processing pipeline, in execution order."""

    CONSENSUS = "consensus"
    PSM_SCORE = "psm_score"
    PEPTIDE_SCORE = "peptide_score"
    PROTEIN_SCORE = "protein_score"
    PROTEIN_GROUP_RESOLVE = "protein_group_resolve"
    PROTEIN_RESCORE = "protein_rescore"
    VALIDATE = "validate"


class AssumptionCols(metaclass=ConstantsClass):
    """String constants for reading the normalized assumption table."""

    SPECTRUM_KEY = "spectrum_key"
    ADVOCATE = "advocate"
    SEQUENCE = "sequence"
    CHARGE = "charge"
    SCORE = "score"
    PROTEINS = "proteins"
    MODIFICATIONS = "modifications"
    RANK = "rank"


class ProteinCols(metaclass=ConstantsClass):
    """String constants for reading protein descriptions and writing the protein output."""

    ACCESSION = "accession"
    DESCRIPTION = "description"
    PROTEIN_KEY = "protein_key"
    MAIN_ACCESSION = "main_accession"
    ACCESSIONS = "accessions"
    GROUP_CLASS = "group_class"
    N_PEPTIDES = "n_peptides"


class OutputCols(metaclass=ConstantsClass):
    """String constants for the columns shared by all match level outputs."""

    PSM_KEY = "spectrum_key"
    PEPTIDE_KEY = "peptide_key"
    SEQUENCE = "sequence"
    CHARGE = "charge"
    MODIFICATION_PROFILE = "modification_profile"
    N_SPECTRA = "n_spectra"
    DECOY = "decoy"
    SCORE = "score"
    CONTEXT = "context"
    PEP = "pep"
    VALIDATED = "validated"
