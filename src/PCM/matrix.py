"""
CohortMatrix: the column schema plus the annotation rows of one cohort.

Cells are addressed by column title (or HPO id for phenotype columns), never by
physical position. Every mutation validates first and swaps in a new immutable
row, so a failed mutation leaves the matrix unchanged.
"""

import logging
import typing
from collections import Counter
from dataclasses import replace

from .arranger import TermArranger
from .cell import CellValue
from .column import (
    DEFAULT_CONFIG,
    FIXED_COLUMN_BY_TITLE,
    HPO_CURIE_PATTERN,
    CellValidator,
    ColumnKind,
)
from .errors import StructuralError, TermResolutionError
from .ontology import Ontology, resolve_term
from .row import AnnotationRow, count_alleles
from .schema import ColumnSchema

logger = logging.getLogger(__name__)

# editing any of these re-derives the allele counts of the row
_ALLELE_ATTRIBUTES = {"gene_symbol", "transcript", "allele_1", "allele_2"}


class CohortMatrix:

    def __init__(
        self,
        schema: typing.Optional[ColumnSchema] = None,
        rows: typing.Iterable[AnnotationRow] = (),
        validator: typing.Optional[CellValidator] = None,
    ):
        self._schema = schema if schema is not None else ColumnSchema()
        self._validator = validator if validator is not None else CellValidator(DEFAULT_CONFIG)
        rows = list(rows)
        for i, row in enumerate(rows):
            self._check_row_width(row, self._schema, i)
        self._rows: typing.List[AnnotationRow] = rows

    # ---- construction -------------------------------------------------------

    @classmethod
    def seed(
        cls,
        term_ids: typing.Iterable[str],
        ontology: Ontology,
        validator: typing.Optional[CellValidator] = None,
    ) -> "CohortMatrix":
        """
        Create an empty matrix whose phenotype columns are the seed terms,
        labelled from the ontology and arranged depth-first.
        """
        labels = {}
        for term_id in term_ids:
            info = resolve_term(ontology, term_id)
            if info.canonical_id != term_id:
                raise TermResolutionError(term_id, f"{term_id} is an outdated id, use {info.canonical_id}")
            if term_id in labels:
                raise StructuralError(f"Duplicate seed term {term_id}")
            labels[term_id] = info.label
        ordered = TermArranger(ontology).arrange(labels)
        schema = ColumnSchema.from_terms((term_id, labels[term_id]) for term_id in ordered)
        logger.debug("Seeded cohort with %d phenotype columns", schema.phenotype_column_count)
        return cls(schema, (), validator)

    # ---- queries ------------------------------------------------------------

    @property
    def schema(self) -> ColumnSchema:
        return self._schema

    @property
    def rows(self) -> typing.Tuple[AnnotationRow, ...]:
        return tuple(self._rows)

    @property
    def validator(self) -> CellValidator:
        return self._validator

    def __len__(self) -> int:
        return len(self._rows)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CohortMatrix):
            return NotImplemented
        return self._schema == other._schema and self._rows == other._rows

    def __repr__(self) -> str:
        return f"CohortMatrix(rows={len(self._rows)}, phenotype_columns={self._schema.phenotype_column_count})"

    def row(self, index: int) -> AnnotationRow:
        self._check_index(index)
        return self._rows[index]

    def get_cell(self, row: int, column_title: str) -> str:
        """
        Text of a cell addressed by column title.

        Phenotype columns may be addressed by label or by HPO id.
        Raises KeyError if no column has this title.
        """
        self._check_index(row)
        fixed = FIXED_COLUMN_BY_TITLE.get(column_title)
        if fixed is not None:
            return self._rows[row].fixed_value(fixed)
        return str(self._rows[row].phenotype_cells[self._phenotype_index(column_title)])

    def cell(self, row: int, term_id: str) -> CellValue:
        """The phenotype cell of `row` for the HPO term `term_id`."""
        self._check_index(row)
        try:
            idx = self._schema.index_of(term_id)
        except KeyError:
            raise KeyError(f"No phenotype column for {term_id}") from None
        return self._rows[row].phenotype_cells[idx]

    def duplicate_individuals(self) -> typing.List[typing.Tuple[str, str]]:
        """(PMID, individual_id) pairs that occur in more than one row."""
        counts = Counter((r.pmid, r.individual_id) for r in self._rows)
        return [key for key, n in counts.items() if n > 1]

    def structural_qc(self, check_individuals: bool = False) -> None:
        """
        Raise StructuralError listing every row whose phenotype-cell count differs
        from the schema and every duplicated phenotype column.
        """
        problems = []
        expected = self._schema.phenotype_column_count
        for i, r in enumerate(self._rows):
            if len(r.phenotype_cells) != expected:
                problems.append(
                    f"Row {i} ({r.individual_id}) has {len(r.phenotype_cells)} phenotype cells, expected {expected}"
                )
        for term_id in self._schema.duplicate_term_ids():
            problems.append(f"Duplicate phenotype column {term_id}")
        if check_individuals:
            for pmid, individual_id in self.duplicate_individuals():
                problems.append(f"Duplicate individual {individual_id!r} in {pmid}")
        if problems:
            raise StructuralError("; ".join(problems))

    def check_terms(self, ontology: Ontology) -> typing.List[TermResolutionError]:
        """
        Check every phenotype column against the ontology.

        One error per column whose id is malformed, unknown, outdated, or whose label
        is not the current label. Other columns are still checked.
        """
        errors = []
        for column in self._schema.phenotype_columns:
            if not HPO_CURIE_PATTERN.match(column.term_id):
                errors.append(TermResolutionError(column.term_id, f"Malformed HPO id {column.term_id!r}", column.label))
                continue
            info = ontology.term_by_id(column.term_id)
            if info is None:
                errors.append(TermResolutionError(column.term_id, f"{column.term_id} not found in ontology", column.label))
            elif info.canonical_id != column.term_id:
                errors.append(TermResolutionError(
                    column.term_id,
                    f"{column.term_id} ({column.label}) is outdated, replace with {info.canonical_id}",
                    column.label,
                ))
            elif info.label != column.label:
                errors.append(TermResolutionError(
                    column.term_id,
                    f"{column.term_id}: expected label {info.label!r} but got {column.label!r}",
                    column.label,
                ))
        return errors

    # ---- mutations ----------------------------------------------------------

    def append_row(self, row: AnnotationRow) -> None:
        self._check_row_width(row, self._schema, len(self._rows))
        errors = row.validate(self._validator)
        if errors:
            raise errors[0]
        self._rows.append(row)

    def delete_row(self, index: int) -> AnnotationRow:
        self._check_index(index)
        return self._rows.pop(index)

    def set_cell(self, row: int, column_title: str, value: typing.Union[str, CellValue]) -> None:
        """
        Validate and write one cell. Raises CellValidationError (matrix unchanged)
        if the value does not satisfy the column rule, KeyError for an unknown title.
        """
        self._check_index(row)
        current = self._rows[row]
        fixed = FIXED_COLUMN_BY_TITLE.get(column_title)
        if fixed is not None:
            self._validator.check(fixed.kind, value, column_title)
            if fixed.attribute is None:
                # the separator column holds no data
                return
            updated = current.with_fixed_value(fixed, value)
            if fixed.attribute in _ALLELE_ATTRIBUTES:
                updated = _recount_alleles(updated)
        else:
            idx = self._phenotype_index(column_title)
            if not isinstance(value, CellValue):
                self._validator.check(ColumnKind.PHENOTYPE_TERM, value, column_title)
                value = CellValue.from_string(value)
            cells = list(current.phenotype_cells)
            cells[idx] = value
            updated = current.with_phenotype_cells(cells)
        self._rows[row] = updated

    def replace_contents(self, schema: ColumnSchema, rows: typing.Sequence[AnnotationRow]) -> None:
        """
        Swap in a new schema and rows together. Every row is checked before
        anything is replaced.
        """
        rows = list(rows)
        for i, r in enumerate(rows):
            self._check_row_width(r, schema, i)
        self._schema = schema
        self._rows = rows

    def copy(self) -> "CohortMatrix":
        return CohortMatrix(self._schema, self._rows, self._validator)

    # ---- helpers ------------------------------------------------------------

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._rows):
            raise StructuralError(f"Row index {index} out of range (matrix has {len(self._rows)} rows)")

    def _phenotype_index(self, column_title: str) -> int:
        try:
            if HPO_CURIE_PATTERN.match(column_title):
                return self._schema.index_of(column_title)
            return self._schema.index_of_title(column_title)
        except KeyError:
            raise KeyError(f"No column titled {column_title!r}") from None

    @staticmethod
    def _check_row_width(row: AnnotationRow, schema: ColumnSchema, index: int) -> None:
        if len(row.phenotype_cells) != schema.phenotype_column_count:
            raise StructuralError(
                f"Row {index} ({row.individual_id}) has {len(row.phenotype_cells)} phenotype cells "
                f"but the schema has {schema.phenotype_column_count} phenotype columns"
            )


def _recount_alleles(row: AnnotationRow) -> AnnotationRow:
    counts = count_alleles(row.allele_1, row.allele_2, row.gene_symbol, row.transcript)
    return replace(row, allele_counts=counts)

