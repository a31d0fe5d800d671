import json
import pytest

from click.testing import CliRunner

from PCM.__main__ import main
from PCM.dto import from_dto
from PCM.loader import load_template_matrix, write_template_matrix
from PCM.mapper import to_template_matrix
from PCM.matrix import CohortMatrix


@pytest.fixture
def workbook(tmp_path, cohort: CohortMatrix) -> str:
    path = str(tmp_path / "cohort.xlsx")
    write_template_matrix(to_template_matrix(cohort), path)
    return path


def test_qc_reports_conflicts(workbook, fpath_hpo):
    result = CliRunner().invoke(main, ["qc", "-e", workbook, "-hpo", fpath_hpo])
    assert result.exit_code == 0, result.output
    assert "2 conflicting annotation pair(s) in 2 row(s)" in result.output
    assert "Conflict: P1 [PMID:29198722] observed_with_ancestor: Seizure (HP:0001250)" in result.output
    assert "Checked 4 individual(s) and 4 HPO column(s)" in result.output


def test_qc_fails_on_cell_errors(tmp_path, cohort: CohortMatrix, fpath_hpo):
    table = to_template_matrix(cohort)
    table[2][table[0].index("age_of_onset")] = "2 years"
    path = str(tmp_path / "bad.xlsx")
    write_template_matrix(table, path)

    result = CliRunner().invoke(main, ["qc", "-e", path, "-hpo", fpath_hpo])
    assert result.exit_code == 1
    assert "Errors found in cohort:" in result.output
    assert "'age_of_onset', value '2 years'" in result.output

    result = CliRunner().invoke(main, ["qc", "-e", path, "-hpo", fpath_hpo, "--normalize-ages"])
    assert result.exit_code == 0, result.output
    assert "normalized to 'P2Y'" in result.output


def test_hpo_path_from_environment(workbook, fpath_hpo, tmp_path):
    runner = CliRunner()
    result = runner.invoke(main, ["qc", "-e", workbook], env={"PCM_HPO_PATH": fpath_hpo})
    assert result.exit_code == 0, result.output

    result = runner.invoke(main, ["qc", "-e", workbook], env={"PCM_HPO_PATH": str(tmp_path / "missing.json")})
    assert result.exit_code == 1
    assert "HPO file not found" in result.output


def test_sanitize_to_json(workbook, fpath_hpo, tmp_path):
    out = tmp_path / "clean.json"
    result = CliRunner().invoke(main, ["sanitize", "-e", workbook, "-hpo", fpath_hpo, "-o", str(out)])
    assert result.exit_code == 0, result.output

    payload = json.loads(out.read_text())
    assert payload["ontology_version"] == "2024-04-26"
    cleaned = from_dto(payload)
    assert cleaned.get_cell(0, "Seizure") == "na"
    assert cleaned.get_cell(0, "Bilateral tonic-clonic seizure") == "observed"
    assert cleaned.get_cell(2, "Bilateral tonic-clonic seizure") == "na"


def test_sanitize_to_workbook_with_label_update(tmp_path, cohort: CohortMatrix, fpath_hpo):
    table = to_template_matrix(cohort)
    table[0][table[0].index("Seizure")] = "Seizures"
    path = str(tmp_path / "stale.xlsx")
    write_template_matrix(table, path)
    out = str(tmp_path / "clean.xlsx")

    # the stale label is an error unless it is updated
    result = CliRunner().invoke(main, ["sanitize", "-e", path, "-hpo", fpath_hpo, "-o", out])
    assert result.exit_code == 1

    result = CliRunner().invoke(main, ["sanitize", "-e", path, "-hpo", fpath_hpo, "-o", out, "--update-labels"])
    assert result.exit_code == 0, result.output
    written = load_template_matrix(out)
    assert "Seizure" in written[0]
    assert written[2][written[0].index("Seizure")] == "na"
