import pytest

from stairval.notepad import create_notepad

from PCM.cell import NA
from PCM.mapper import LegacyTemplateMapper, to_template_matrix
from PCM.matrix import CohortMatrix


@pytest.fixture
def table(cohort: CohortMatrix) -> list[list[str]]:
    return to_template_matrix(cohort)


def column(table, title: str) -> int:
    return table[0].index(title)


def error_messages(notepad) -> list[str]:
    return [issue.message for issue in notepad.errors()]


def warning_messages(notepad) -> list[str]:
    return [issue.message for issue in notepad.warnings()]


def test_template_matrix_layout(table):
    assert table[0][:3] == ["PMID", "title", "individual_id"]
    assert table[1][-1] == "HP:0001629"
    assert table[2][column(table, "HPO")] == "na"
    assert table[3][column(table, "Global developmental delay")] == "P1Y"
    assert len(table) == 6


def test_ingest_valid_template(table, cohort: CohortMatrix, ontology):
    notepad = create_notepad("cohort")
    result = LegacyTemplateMapper(ontology).apply_mapping(table, notepad)
    assert not notepad.has_errors(include_subsections=True)
    assert result.errors == []
    assert result.skipped_rows == []
    assert result.matrix == cohort


def test_free_text_age_is_a_cell_error(table):
    table[2][column(table, "age_of_onset")] = "2 years"
    notepad = create_notepad("cohort")
    result = LegacyTemplateMapper().apply_mapping(table, notepad)

    assert len(result.errors) == 1
    assert result.errors[0].column == "age_of_onset"
    assert result.errors[0].value == "2 years"
    assert result.skipped_rows == [2]
    assert len(result.matrix) == 3
    assert notepad.has_errors(include_subsections=True)


def test_every_cell_error_is_collected(table):
    table[2][column(table, "sex")] = "female"
    table[2][column(table, "Seizure")] = "yes"
    table[4][column(table, "PMID")] = "PMID 1"
    notepad = create_notepad("cohort")
    result = LegacyTemplateMapper().apply_mapping(table, notepad)

    assert sorted(e.column for e in result.errors) == ["PMID", "Seizure", "sex"]
    assert result.skipped_rows == [2, 4]
    assert len(error_messages(notepad)) == 3
    assert error_messages(notepad)[0].startswith("Row 2: ")


def test_normalize_ages(table):
    table[2][column(table, "age_of_onset")] = "2 years"
    table[3][column(table, "age_at_last_encounter")] = "neonate"
    notepad = create_notepad("cohort")
    result = LegacyTemplateMapper(normalize_ages=True).apply_mapping(table, notepad)

    assert result.errors == []
    assert result.matrix.get_cell(0, "age_of_onset") == "P2Y"
    assert result.matrix.get_cell(1, "age_at_last_encounter") == "Neonatal onset"
    assert len(warning_messages(notepad)) == 2


def test_blank_phenotype_cell_is_na(table):
    table[2][column(table, "Seizure")] = ""
    result = LegacyTemplateMapper().apply_mapping(table, create_notepad("cohort"))
    assert result.matrix.cell(0, "HP:0001250") == NA


def test_header_error_stops_ingestion(table):
    table[1][column(table, "sex")] = "M:F"
    notepad = create_notepad("cohort")
    result = LegacyTemplateMapper().apply_mapping(table, notepad)
    assert result.matrix is None
    assert error_messages(notepad) == ["Header: Column 15 (sex): expected secondary 'M:F:O:U' but got 'M:F'"]


def test_too_few_rows():
    notepad = create_notepad("cohort")
    result = LegacyTemplateMapper().apply_mapping([["PMID"]], notepad)
    assert result.matrix is None
    assert notepad.has_errors(include_subsections=True)


def test_ragged_row_is_skipped(table):
    table[3] = table[3][:-1]
    notepad = create_notepad("cohort")
    result = LegacyTemplateMapper().apply_mapping(table, notepad)
    assert result.skipped_rows == [3]
    assert "expected 21 cells but found 20" in error_messages(notepad)[0]


def test_term_problems_are_reported(table, ontology):
    table[0][column(table, "Seizure")] = "Seizures"
    notepad = create_notepad("cohort")
    result = LegacyTemplateMapper(ontology).apply_mapping(table, notepad)
    assert len(result.matrix) == 4
    assert error_messages(notepad) == ["Header: HP:0001250: expected label 'Seizure' but got 'Seizures'"]


def test_duplicate_individual_is_a_warning(table):
    table.append(list(table[2]))
    notepad = create_notepad("cohort")
    result = LegacyTemplateMapper().apply_mapping(table, notepad)
    assert len(result.matrix) == 5
    assert not notepad.has_errors(include_subsections=True)
    assert warning_messages(notepad) == ["Individual 'P1' occurs more than once in PMID:29198722"]
