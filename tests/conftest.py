import os
import pytest

from PCM.cell import EXCLUDED, NA, OBSERVED, CellValue
from PCM.matrix import CohortMatrix
from PCM.ontology import HpoOntology, SimpleOntology, load_hpo
from PCM.row import AnnotationRow, count_alleles
from PCM.schema import ColumnSchema

# A small, real fragment of the HPO
HPO_LABELS = {
    "HP:0000001": "All",
    "HP:0000118": "Phenotypic abnormality",
    "HP:0000707": "Abnormality of the nervous system",
    "HP:0012638": "Abnormal nervous system physiology",
    "HP:0001250": "Seizure",
    "HP:0002069": "Bilateral tonic-clonic seizure",
    "HP:0012758": "Neurodevelopmental delay",
    "HP:0001263": "Global developmental delay",
    "HP:0001288": "Gait disturbance",
    "HP:0000152": "Abnormality of head or neck",
    "HP:0000534": "Abnormal eyebrow morphology",
    "HP:0000574": "Thick eyebrow",
    "HP:0001626": "Abnormality of the cardiovascular system",
    "HP:0001627": "Abnormal heart morphology",
    "HP:0001629": "Ventricular septal defect",
    "HP:0002664": "Neoplasm",
    "HP:0005584": "Renal cell carcinoma",
    "HP:0012823": "Clinical modifier",
}

# (child, parent); children are enumerated in this order
HPO_IS_A = [
    ("HP:0000118", "HP:0000001"),
    ("HP:0012823", "HP:0000001"),
    ("HP:0000707", "HP:0000118"),
    ("HP:0000152", "HP:0000118"),
    ("HP:0001626", "HP:0000118"),
    ("HP:0002664", "HP:0000118"),
    ("HP:0012638", "HP:0000707"),
    ("HP:0001250", "HP:0012638"),
    ("HP:0012758", "HP:0012638"),
    ("HP:0001288", "HP:0012638"),
    ("HP:0002069", "HP:0001250"),
    ("HP:0001263", "HP:0012758"),
    ("HP:0000534", "HP:0000152"),
    ("HP:0000574", "HP:0000534"),
    ("HP:0001627", "HP:0001626"),
    ("HP:0001629", "HP:0001627"),
    ("HP:0005584", "HP:0002664"),
]

HPO_ALT_IDS = {"HP:0002355": "HP:0001288"}


@pytest.fixture(scope="session")
def fpath_test_dir() -> str:
    """
    Path to `tests/data/` folder.
    """
    return os.path.join(os.path.dirname(__file__), "data")


@pytest.fixture(scope="session")
def fpath_hpo(fpath_test_dir: str) -> str:
    return os.path.join(fpath_test_dir, "hp.mini.json")


@pytest.fixture(scope="session")
def hpo(fpath_hpo: str) -> HpoOntology:
    """
    The test HPO JSON loaded through `hpotk`.
    """
    return load_hpo(fpath_hpo)


@pytest.fixture(scope="session")
def ontology() -> SimpleOntology:
    return SimpleOntology(
        HPO_LABELS,
        HPO_IS_A,
        roots=("HP:0000118", "HP:0000001"),
        trailing_roots=("HP:0002664",),
        alt_ids=HPO_ALT_IDS,
        version="2024-04-26",
    )


def make_row(individual_id: str, cells=(), pmid: str = "PMID:29198722", **kwargs) -> AnnotationRow:
    values = dict(
        pmid=pmid,
        title="A recurrent de novo variant in a cohort",
        individual_id=individual_id,
        disease_id="OMIM:615369",
        disease_label="Developmental and epileptic encephalopathy 14",
        hgnc_id="HGNC:18865",
        gene_symbol="KCNT1",
        transcript="NM_020822.3",
        allele_1="c.2800G>A",
        allele_2="na",
        age_of_onset="Infantile onset",
        age_at_last_encounter="P4Y",
        deceased="no",
        sex="F",
    )
    values.update(kwargs)
    counts = count_alleles(values["allele_1"], values["allele_2"], values["gene_symbol"], values["transcript"])
    return AnnotationRow(**values, phenotype_cells=tuple(cells), allele_counts=counts)


@pytest.fixture
def cohort_schema() -> ColumnSchema:
    return ColumnSchema.from_terms([
        ("HP:0001250", "Seizure"),
        ("HP:0002069", "Bilateral tonic-clonic seizure"),
        ("HP:0001263", "Global developmental delay"),
        ("HP:0001629", "Ventricular septal defect"),
    ])


@pytest.fixture
def cohort(cohort_schema: ColumnSchema) -> CohortMatrix:
    """Four individuals, none of them annotated for Thick eyebrow."""
    rows = [
        make_row("P1", [OBSERVED, OBSERVED, NA, EXCLUDED]),
        make_row("P2", [OBSERVED, NA, CellValue.onset("P1Y"), NA], sex="M"),
        make_row("P3", [EXCLUDED, EXCLUDED, OBSERVED, NA]),
        make_row("P4", [NA, NA, EXCLUDED, OBSERVED], allele_2="c.2800G>A"),
    ]
    return CohortMatrix(cohort_schema, rows)
