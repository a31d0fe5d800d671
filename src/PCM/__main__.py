"""
Command-line interface for the PCM cohort toolkit.
Loads a cohort template workbook, validates it, checks phenotype annotations
against the HPO hierarchy, and optionally writes a sanitized copy.
"""

import click
import json
import logging
import os
import pathlib
import requests
import sys
import typing

from stairval.notepad import create_notepad

from .consistency import ConsistencyChecker, Sanitizer
from .dto import to_dto
from .errors import PCMError
from .loader import load_template_matrix, write_template_matrix
from .mapper import LegacyTemplateMapper, to_template_matrix
from .matrix import CohortMatrix
from .ontology import HpoOntology, load_hpo

logger = logging.getLogger(__name__)

HPO_PATH_ENV = "PCM_HPO_PATH"
DEFAULT_HPO_PATH = pathlib.Path("data") / "hp.json"
HPO_RELEASES_URL = "https://github.com/obophenotype/human-phenotype-ontology/releases"
HPO_LATEST_RELEASE_API = "https://api.github.com/repos/obophenotype/human-phenotype-ontology/releases/latest"


@click.group()
@click.option("--verbose", is_flag=True, help="Show debug logging on stderr")
def main(verbose: bool):
    """PCM: Phenotype Cohort Matrix curation and QC."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command(name="download")
@click.option(
    "-d",
    "--data-path",
    "data_dir",
    default="data",
    type=click.Path(file_okay=False),
    help="directory for hp.json (default: data)",
)
@click.option(
    "-v",
    "--hpo-version",
    default=None,
    type=str,
    help="HPO release to fetch, e.g. 2024-04-26 (default: latest)",
)
def download(data_dir: str, hpo_version: typing.Optional[str]):
    """
    Fetch hp.json from an HPO GitHub release.
    """
    tag = _release_tag(hpo_version)
    logger.info("Fetching HPO release %s", tag)
    content = _fetch(f"{HPO_RELEASES_URL}/download/{tag}/hp.json").content

    target = pathlib.Path(data_dir) / "hp.json"
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(content)
    click.echo(f"HPO {tag} written to {target} ({len(content)} bytes)")


@main.command(name="qc")
@click.option(
    "-e",
    "--excel-path",
    "excel_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="path to the cohort template workbook",
)
@click.option(
    "-hpo",
    "--custom-hpo",
    "hpo_path",
    type=click.Path(exists=True, dir_okay=False),
    help=f"path to an HPO JSON file (defaults to ${HPO_PATH_ENV} or {DEFAULT_HPO_PATH})",
)
@click.option("--normalize-ages", is_flag=True, help="Rewrite free-text ages before validation")
def qc(excel_file: str, hpo_path: typing.Optional[str], normalize_ages: bool):
    """
    Validate a cohort template: header, cells, duplicate individuals,
    HPO ids/labels and conflicting observed/excluded annotations.
    Exits with status 1 if any error was found.
    """
    ontology = _load_ontology(_locate_hpo_file(hpo_path))
    matrix, notepad = _ingest(excel_file, ontology, normalize_ages)

    if matrix is not None and not notepad.has_errors(include_subsections=True):
        report = ConsistencyChecker(ontology).qc_conflicting_pairs(matrix)
        for message in report.messages(_labels(matrix)):
            notepad.add_warning(f"Conflict: {message}")
        click.echo(report.summary().splitlines()[0])

    _report_issues(notepad)
    if matrix is not None:
        click.echo(f"Checked {len(matrix)} individual(s) and {matrix.schema.phenotype_column_count} HPO column(s)")
    if notepad.has_errors(include_subsections=True):
        sys.exit(1)


@main.command(name="sanitize")
@click.option(
    "-e",
    "--excel-path",
    "excel_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="path to the cohort template workbook",
)
@click.option(
    "-hpo",
    "--custom-hpo",
    "hpo_path",
    type=click.Path(exists=True, dir_okay=False),
    help=f"path to an HPO JSON file (defaults to ${HPO_PATH_ENV} or {DEFAULT_HPO_PATH})",
)
@click.option(
    "-o",
    "--output",
    "output_path",
    required=True,
    type=click.Path(dir_okay=False),
    help="where to write the result (.xlsx writes a template, anything else JSON)",
)
@click.option("--update-labels", is_flag=True, help="Replace outdated HPO ids and labels")
@click.option("--normalize-ages", is_flag=True, help="Rewrite free-text ages before validation")
def sanitize(excel_file: str, hpo_path: typing.Optional[str], output_path: str, update_labels: bool, normalize_ages: bool):
    """
    Set conflicting phenotype annotations to "na" and write the cleaned cohort.
    """
    ontology = _load_ontology(_locate_hpo_file(hpo_path))
    # label problems are what --update-labels fixes, so only check terms without it
    matrix, notepad = _ingest(excel_file, None if update_labels else ontology, normalize_ages)
    _report_issues(notepad)
    if matrix is None or notepad.has_errors(include_subsections=True):
        click.echo("Not writing output because of errors", err=True)
        sys.exit(1)

    sanitizer = Sanitizer(ontology)
    try:
        if update_labels:
            matrix = sanitizer.update_labels(matrix)
        matrix.structural_qc()
        cleaned = sanitizer.sanitize(matrix)
    except PCMError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    _write_output(cleaned, output_path, ontology.version)
    click.echo(f"Wrote sanitized cohort with {len(cleaned)} individual(s) to {output_path}")


def _fetch(url: str) -> requests.Response:
    response = requests.get(url, timeout=60)
    response.raise_for_status()
    return response


def _release_tag(hpo_version: typing.Optional[str]) -> str:
    # release tags carry a leading "v"
    if not hpo_version:
        return _fetch(HPO_LATEST_RELEASE_API).json()["tag_name"]
    return "v" + hpo_version.lstrip("v")


def _locate_hpo_file(hpo_path: typing.Optional[str]) -> pathlib.Path:
    # pick HPO JSON: explicit option, then environment, then default
    if hpo_path:
        hpo_file = pathlib.Path(hpo_path)
    else:
        hpo_file = pathlib.Path(os.getenv(HPO_PATH_ENV, str(DEFAULT_HPO_PATH)))
    if not hpo_file.is_file():
        click.echo(f"Error: HPO file not found at {hpo_file}", err=True)
        sys.exit(1)
    return hpo_file


def _load_ontology(hpo_file: pathlib.Path) -> HpoOntology:
    return load_hpo(str(hpo_file))


def _ingest(excel_file: str, ontology: typing.Optional[HpoOntology], normalize_ages: bool):
    notepad = create_notepad("cohort")
    table = load_template_matrix(excel_file)
    mapper = LegacyTemplateMapper(ontology, normalize_ages=normalize_ages)
    result = mapper.apply_mapping(table, notepad)
    return result.matrix, notepad


def _labels(matrix: CohortMatrix) -> dict[str, str]:
    return {c.term_id: c.label for c in matrix.schema.phenotype_columns}


def _write_output(matrix: CohortMatrix, output_path: str, ontology_version: typing.Optional[str]) -> None:
    if output_path.endswith(".xlsx"):
        write_template_matrix(to_template_matrix(matrix), output_path)
    else:
        with open(output_path, "w") as f:
            json.dump(to_dto(matrix, ontology_version), f, indent=2)


def _report_issues(notepad) -> None:
    """Print errors, then warnings, each under its own heading."""
    sections = (
        ("Errors", list(notepad.errors())),
        ("Warnings", list(notepad.warnings())),
    )
    for heading, issues in sections:
        if issues:
            click.echo(f"{heading} found in cohort:")
            click.echo("\n".join(f"- {issue.message}" for issue in issues))


if __name__ == "__main__":
    main()
