"""
Plain-data form of a CohortMatrix, for persistence and export.

    {
      "header": [{"title": "PMID", "secondary": "CURIE"}, ..., {"title": "Seizure", "secondary": "HP:0001250"}],
      "rows": [
        {
          "individual": {"pmid": ..., "title": ..., ...},
          "cells": [{"type": "observed"}, {"type": "onset_age", "data": "P3Y"}, ...],
          "allele_counts": {"c.100A>G_GENE_NM_000001.1": 1}
        }
      ],
      "ontology_version": "2024-04-26"
    }

Everything is JSON-serialisable.
"""

import typing

from .cell import CellKind, CellValue
from .column import CellValidator
from .errors import StructuralError
from .matrix import CohortMatrix
from .row import ROW_FIELD_NAMES, AnnotationRow, count_alleles
from .schema import ColumnSchema

_INDIVIDUAL_FIELDS = tuple(name for name in ROW_FIELD_NAMES if name not in ("phenotype_cells", "allele_counts"))


def cell_to_dto(cell: CellValue) -> typing.Dict[str, str]:
    out = {"type": cell.kind.value}
    if cell.payload is not None:
        out["data"] = cell.payload
    return out


def cell_from_dto(payload: typing.Mapping[str, str]) -> CellValue:
    try:
        kind = CellKind(payload["type"])
    except (KeyError, ValueError) as e:
        raise ValueError(f"Invalid cell payload {payload!r}") from e
    return CellValue(kind, payload.get("data"))


def row_to_dto(row: AnnotationRow) -> typing.Dict[str, typing.Any]:
    return {
        "individual": {name: getattr(row, name) for name in _INDIVIDUAL_FIELDS},
        "cells": [cell_to_dto(c) for c in row.phenotype_cells],
        "allele_counts": dict(row.allele_counts),
    }


def row_from_dto(payload: typing.Mapping[str, typing.Any]) -> AnnotationRow:
    individual = payload["individual"]
    unknown = set(individual) - set(_INDIVIDUAL_FIELDS)
    if unknown:
        raise ValueError(f"Unknown individual field(s): {', '.join(sorted(unknown))}")
    return AnnotationRow(
        **individual,
        phenotype_cells=tuple(cell_from_dto(c) for c in payload.get("cells", ())),
        allele_counts=payload.get("allele_counts", {}),
    )


def to_dto(matrix: CohortMatrix, ontology_version: typing.Optional[str] = None) -> typing.Dict[str, typing.Any]:
    return {
        "header": [{"title": t, "secondary": s} for t, s in matrix.schema.duplets()],
        "rows": [row_to_dto(r) for r in matrix.rows],
        "ontology_version": ontology_version,
    }


def from_dto(payload: typing.Mapping[str, typing.Any], validator: typing.Optional[CellValidator] = None) -> CohortMatrix:
    """
    Rebuild a matrix. The header goes through the same checks as a template header
    (HeaderError); rows must match it in width (StructuralError), every fixed cell must
    pass the validator (the first CellValidationError is raised) and the stored allele
    counts must agree with the allele cells (StructuralError).
    """
    header = payload["header"]
    schema = ColumnSchema.from_header(
        [h["title"] for h in header],
        [h["secondary"] for h in header],
    )
    rows = [row_from_dto(r) for r in payload.get("rows", ())]
    matrix = CohortMatrix(schema, rows, validator)
    for i, row in enumerate(matrix.rows):
        errors = row.validate(matrix.validator)
        if errors:
            raise errors[0]
        expected = count_alleles(row.allele_1, row.allele_2, row.gene_symbol, row.transcript)
        if row.allele_counts != expected:
            raise StructuralError(
                f"Row {i} ({row.individual_id}): allele counts {row.allele_counts} do not match the alleles, expected {expected}"
            )
    return matrix
