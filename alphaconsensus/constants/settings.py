import os

CONSTANTS_PATH = os.path.dirname(os.path.abspath(__file__))

DEFAULT_CONFIG_PATH = os.path.join(CONSTANTS_PATH, "default.yaml")

FIGURES_FOLDER_NAME = "figures"

PSM_FILE_NAME = "psm.tsv"
PEPTIDE_FILE_NAME = "peptide.tsv"
PROTEIN_FILE_NAME = "protein.tsv"
REPORT_FILE_NAME = "report.txt"
