"""
Fold new phenotype terms into an existing cohort.

The union of the old and new terms is re-arranged by `TermArranger`, every existing
row is remapped to the new column positions (new columns default to "na"), and the
optional new row is built against the new schema. The new schema and rows are
swapped into the matrix together, or not at all.
"""

import logging
import typing

from .arranger import TermArranger
from .cell import NA, CellValue
from .column import PhenotypeColumn
from .errors import CellValidationError, StructuralError, TermResolutionError
from .matrix import CohortMatrix
from .ontology import Ontology, resolve_term
from .row import AnnotationRow
from .schema import ColumnSchema

logger = logging.getLogger(__name__)

NewTerm = typing.Union[PhenotypeColumn, typing.Tuple[str, str]]


def get_update_vector(old_term_ids: typing.Sequence[str], new_term_ids: typing.Sequence[str]) -> typing.List[int]:
    """For each old column index, the index of the same term in the new order."""
    position = {term_id: i for i, term_id in enumerate(new_term_ids)}
    try:
        return [position[term_id] for term_id in old_term_ids]
    except KeyError as e:
        raise StructuralError(f"Term {e.args[0]} is missing from the new column order") from None


def reorder_or_fill_na(
    cells: typing.Sequence[CellValue], update_vector: typing.Sequence[int], width: int
) -> typing.List[CellValue]:
    """Scatter `cells` into a vector of length `width`, leaving untouched positions "na"."""
    if len(cells) != len(update_vector):
        raise StructuralError(f"Expected {len(update_vector)} cells but got {len(cells)}")
    out = [NA] * width
    for old_index, new_index in enumerate(update_vector):
        out[new_index] = cells[old_index]
    return out


class ReorderMergeEngine:

    def __init__(self, ontology: Ontology, arranger: typing.Optional[TermArranger] = None):
        self._ontology = ontology
        self._arranger = arranger if arranger is not None else TermArranger(ontology)

    def fold(
        self,
        matrix: CohortMatrix,
        new_terms: typing.Iterable[NewTerm] = (),
        new_row: typing.Optional[AnnotationRow] = None,
        annotations: typing.Optional[typing.Mapping[str, typing.Union[CellValue, str]]] = None,
    ) -> CohortMatrix:
        """
        Add `new_terms` to `matrix` (in place) and optionally append `new_row`.

        `annotations` maps term id -> cell for the new row; terms it does not mention
        are "na". Without `annotations`, the phenotype cells already on `new_row` are
        taken to follow the current schema.

        Raises StructuralError for a duplicate term or an unknown annotation term,
        TermResolutionError if a new term is malformed, unknown, outdated or mislabelled,
        CellValidationError if the new row is invalid. The matrix is unchanged on error.
        """
        matrix.structural_qc()
        old_schema = matrix.schema
        labels = {c.term_id: c.label for c in old_schema.phenotype_columns}

        added = []
        for term in new_terms:
            term_id, label = (term.term_id, term.label) if isinstance(term, PhenotypeColumn) else term
            if term_id in labels:
                raise StructuralError(f"{term_id} ({label}) is already a column of this cohort")
            self._check_new_term(term_id, label)
            labels[term_id] = label
            added.append(term_id)

        new_order = self._arranger.arrange(labels)
        new_schema = ColumnSchema.from_terms((term_id, labels[term_id]) for term_id in new_order)
        update_vector = get_update_vector(old_schema.term_ids, new_order)
        width = len(new_order)

        rows = [
            row.with_phenotype_cells(reorder_or_fill_na(row.phenotype_cells, update_vector, width))
            for row in matrix.rows
        ]

        if new_row is not None:
            rows.append(self._build_new_row(new_row, new_order, update_vector, annotations, matrix))

        matrix.replace_contents(new_schema, rows)
        logger.debug(
            "Folded %d new term(s); cohort now has %d phenotype columns and %d rows",
            len(added), width, len(rows),
        )
        return matrix

    def reorder(self, matrix: CohortMatrix) -> CohortMatrix:
        """Re-arrange the existing columns into canonical order."""
        return self.fold(matrix)

    def _check_new_term(self, term_id: str, label: str) -> None:
        info = resolve_term(self._ontology, term_id)
        if info.canonical_id != term_id:
            raise TermResolutionError(term_id, f"{term_id} is an outdated id, use {info.canonical_id}", label)
        if info.label != label:
            raise TermResolutionError(
                term_id, f"{term_id}: expected label {info.label!r} but got {label!r}", label
            )

    @staticmethod
    def _build_new_row(
        new_row: AnnotationRow,
        new_order: typing.Sequence[str],
        update_vector: typing.Sequence[int],
        annotations: typing.Optional[typing.Mapping[str, typing.Union[CellValue, str]]],
        matrix: CohortMatrix,
    ) -> AnnotationRow:
        errors = new_row.validate(matrix.validator)
        if errors:
            raise errors[0]

        if annotations is None:
            if not new_row.phenotype_cells:
                cells = [NA] * len(new_order)
            else:
                cells = reorder_or_fill_na(new_row.phenotype_cells, update_vector, len(new_order))
            return new_row.with_phenotype_cells(cells)

        position = {term_id: i for i, term_id in enumerate(new_order)}
        cells = [NA] * len(new_order)
        for term_id, value in annotations.items():
            if term_id not in position:
                raise StructuralError(f"Annotated term {term_id} is not a column of this cohort")
            if not isinstance(value, CellValue):
                try:
                    value = CellValue.from_string(value)
                except ValueError as e:
                    raise CellValidationError(term_id, value, str(e)) from e
            cells[position[term_id]] = value
        return new_row.with_phenotype_cells(cells)
