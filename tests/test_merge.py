import pytest

from PCM.cell import EXCLUDED, NA, OBSERVED
from PCM.column import PhenotypeColumn
from PCM.dto import from_dto, to_dto
from PCM.errors import CellValidationError, StructuralError, TermResolutionError
from PCM.matrix import CohortMatrix
from PCM.merge import ReorderMergeEngine, get_update_vector, reorder_or_fill_na
from PCM.schema import ColumnSchema

from conftest import make_row


@pytest.fixture
def engine(ontology) -> ReorderMergeEngine:
    return ReorderMergeEngine(ontology)


def test_update_vector_and_scatter():
    assert get_update_vector(["a", "b"], ["b", "x", "a"]) == [2, 0]
    assert reorder_or_fill_na([OBSERVED, EXCLUDED], [2, 0], 3) == [EXCLUDED, NA, OBSERVED]
    with pytest.raises(StructuralError):
        get_update_vector(["a", "q"], ["a"])


def test_fold_new_term_with_new_row(engine, cohort: CohortMatrix):
    engine.fold(
        cohort,
        [("HP:0000574", "Thick eyebrow")],
        new_row=make_row("P5"),
        annotations={"HP:0000574": "excluded"},
    )
    assert len(cohort) == 5
    assert cohort.schema.term_ids == ("HP:0001250", "HP:0002069", "HP:0001263", "HP:0000574", "HP:0001629")
    for i in range(4):
        assert cohort.cell(i, "HP:0000574") == NA
        assert cohort.get_cell(i, "Thick eyebrow") == "na"
    assert cohort.cell(4, "HP:0000574") == EXCLUDED
    assert cohort.cell(4, "HP:0001250") == NA
    cohort.structural_qc()


def test_fold_preserves_existing_values(engine, cohort: CohortMatrix):
    before = {
        (i, term_id): cohort.cell(i, term_id)
        for i in range(len(cohort))
        for term_id in cohort.schema.term_ids
    }
    engine.fold(cohort, [PhenotypeColumn("HP:0001288", "Gait disturbance"), ("HP:0005584", "Renal cell carcinoma")])
    for (i, term_id), value in before.items():
        assert cohort.cell(i, term_id) == value
    assert cohort.schema.term_ids[-1] == "HP:0005584"


def test_fold_duplicate_term_is_rejected(engine, cohort: CohortMatrix):
    before = cohort.copy()
    with pytest.raises(StructuralError):
        engine.fold(cohort, [("HP:0001250", "Seizure")])
    with pytest.raises(StructuralError):
        engine.fold(cohort, [("HP:0000574", "Thick eyebrow"), ("HP:0000574", "Thick eyebrow")])
    assert cohort == before


def test_failed_new_row_leaves_matrix_unchanged(engine, cohort: CohortMatrix):
    before = cohort.copy()
    with pytest.raises(StructuralError):
        engine.fold(cohort, [("HP:0000574", "Thick eyebrow")], make_row("P5"), {"HP:0001288": "observed"})
    with pytest.raises(CellValidationError):
        engine.fold(cohort, [("HP:0000574", "Thick eyebrow")], make_row("P5"), {"HP:0000574": "yes"})
    with pytest.raises(CellValidationError):
        engine.fold(cohort, [("HP:0000574", "Thick eyebrow")], make_row("P5", sex="female"))
    assert cohort == before


@pytest.mark.parametrize(
    "term",
    [
        ("not-a-curie", "Whatever"),
        ("HP:9999999", "Unknown term"),
        ("HP:0000574", "Wrong label"),
        ("HP:0002355", "Gait disturbance"),
    ],
)
def test_new_terms_must_resolve_in_the_ontology(engine, cohort: CohortMatrix, term):
    before = cohort.copy()
    with pytest.raises(TermResolutionError) as e:
        engine.fold(cohort, [("HP:0001288", "Gait disturbance"), term], make_row("P5"))
    assert e.value.term_id == term[0]
    assert cohort == before
    # the cohort still round-trips through its plain-data form
    assert from_dto(to_dto(cohort)) == cohort


def test_empty_fold_restores_canonical_order(engine):
    schema = ColumnSchema.from_terms([("HP:0001629", "Ventricular septal defect"), ("HP:0001250", "Seizure")])
    matrix = CohortMatrix(schema, [make_row("P1", [OBSERVED, EXCLUDED])])
    engine.reorder(matrix)
    assert matrix.schema.term_ids == ("HP:0001250", "HP:0001629")
    assert matrix.row(0).phenotype_cells == (EXCLUDED, OBSERVED)


def test_new_row_cells_follow_the_current_schema(engine, cohort: CohortMatrix):
    new_row = make_row("P5", [OBSERVED, NA, NA, EXCLUDED])
    engine.fold(cohort, [("HP:0000574", "Thick eyebrow")], new_row)
    assert cohort.cell(4, "HP:0001250") == OBSERVED
    assert cohort.cell(4, "HP:0001629") == EXCLUDED
    assert cohort.cell(4, "HP:0000574") == NA


def test_new_row_without_cells_is_all_na(engine, cohort: CohortMatrix):
    engine.fold(cohort, (), make_row("P5"))
    assert cohort.row(4).phenotype_cells == (NA,) * 4
