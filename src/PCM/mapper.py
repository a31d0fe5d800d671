import abc
import logging
import typing

from dataclasses import dataclass, field
from stairval.notepad import Notepad

from .age import NOT_AVAILABLE, normalize_age_string
from .cell import NA, CellValue
from .column import DATA_COLUMNS, FIXED_COLUMNS, CellValidator, ColumnKind
from .errors import CellValidationError, HeaderError
from .matrix import CohortMatrix
from .ontology import Ontology
from .row import AnnotationRow, count_alleles
from .schema import ColumnSchema

logger = logging.getLogger(__name__)

StringMatrix = typing.Sequence[typing.Sequence[str]]

_AGE_KINDS = {ColumnKind.AGE_OF_ONSET, ColumnKind.AGE_AT_LAST_ENCOUNTER}


@dataclass
class MappingResult:
    """
    matrix: the cohort built from every valid row (None if the header was rejected).
    errors: every cell-level validation error, in sheet order.
    skipped_rows: sheet row numbers (0-based, header included) that were not ingested.
    """
    matrix: typing.Optional[CohortMatrix]
    errors: list[CellValidationError] = field(default_factory=list)
    skipped_rows: list[int] = field(default_factory=list)


class TemplateMapper(metaclass=abc.ABCMeta):
    @abc.abstractmethod
    def apply_mapping(self, table: StringMatrix, notepad: Notepad) -> MappingResult:
        # issues go to the notepad; nothing is raised for bad input
        raise NotImplementedError


class LegacyTemplateMapper(TemplateMapper):
    def __init__(
            self,
            ontology: typing.Optional[Ontology] = None,
            validator: typing.Optional[CellValidator] = None,
            normalize_ages: bool = False,
    ):
        """
        - ontology: if given, phenotype columns are checked against it (errors, not fatal)
        - normalize_ages: rewrite free-text ages ("neonate", "1y9m") before validation; each rewrite is a warning
        """
        self._ontology = ontology
        self._validator = validator if validator is not None else CellValidator()
        self.normalize_ages = normalize_ages

    def apply_mapping(self, table: StringMatrix, notepad: Notepad) -> MappingResult:
        """
        Process:
        1) parse and check the two header rows
        2) validate every cell of every data row, collecting all errors
        3) build a row for each data row without errors
        4) report duplicate individuals, duplicate columns and unresolvable terms
        """
        if len(table) < 2:
            notepad.add_error(f"Template must have two header rows but has {len(table)} row(s)")
            return MappingResult(matrix=None)

        try:
            schema = ColumnSchema.from_header(list(table[0]), list(table[1]))
        except HeaderError as e:
            for message in e.messages:
                notepad.add_error(f"Header: {message}")
            return MappingResult(matrix=None)

        result = MappingResult(matrix=None)
        rows: list[AnnotationRow] = []
        for sheet_row in range(2, len(table)):
            row = self.parse_row(list(table[sheet_row]), sheet_row, schema, notepad, result.errors)
            if row is None:
                result.skipped_rows.append(sheet_row)
            else:
                rows.append(row)

        matrix = CohortMatrix(schema, rows, self._validator)
        for term_id in schema.duplicate_term_ids():
            notepad.add_error(f"Header: duplicate phenotype column {term_id}")
        for pmid, individual_id in matrix.duplicate_individuals():
            notepad.add_warning(f"Individual {individual_id!r} occurs more than once in {pmid}")
        if self._ontology is not None:
            for error in matrix.check_terms(self._ontology):
                notepad.add_error(f"Header: {error}")

        logger.info(
            "Ingested %d of %d data row(s) with %d phenotype column(s)",
            len(rows), len(table) - 2, schema.phenotype_column_count,
        )
        result.matrix = matrix
        return result

    def parse_row(
            self,
            values: list[str],
            sheet_row: int,
            schema: ColumnSchema,
            notepad: Notepad,
            errors: list[CellValidationError],
    ) -> typing.Optional[AnnotationRow]:
        """
        Validate one data row. Returns None (after recording every problem) if any
        cell is invalid.
        """
        if len(values) != schema.column_count:
            notepad.add_error(
                f"Row {sheet_row}: expected {schema.column_count} cells but found {len(values)}"
            )
            return None

        row_errors: list[CellValidationError] = []
        fixed: dict[str, str] = {}
        for i, column in enumerate(FIXED_COLUMNS):
            value = values[i]
            if column.kind in _AGE_KINDS and self.normalize_ages:
                value = self._normalize_age(value, column.title, sheet_row, notepad)
            error = self._validator.validate(column.kind, value, column.title)
            if error is not None:
                row_errors.append(error)
            elif column.attribute is not None:
                fixed[column.attribute] = value

        cells: list[CellValue] = []
        n_fixed = len(FIXED_COLUMNS)
        for column, value in zip(schema.phenotype_columns, values[n_fixed:]):
            if value == "":
                # blank phenotype cells in legacy sheets mean "not ascertained"
                cells.append(NA)
                continue
            error = self._validator.validate(ColumnKind.PHENOTYPE_TERM, value, column.label)
            if error is not None:
                row_errors.append(error)
            else:
                cells.append(CellValue.from_string(value))

        if row_errors:
            for error in row_errors:
                notepad.add_error(f"Row {sheet_row}: {error}")
            errors.extend(row_errors)
            return None

        counts = count_alleles(fixed["allele_1"], fixed["allele_2"], fixed["gene_symbol"], fixed["transcript"])
        return AnnotationRow(**fixed, phenotype_cells=tuple(cells), allele_counts=counts)

    @staticmethod
    def _normalize_age(value: str, column: str, sheet_row: int, notepad: Notepad) -> str:
        normalized = normalize_age_string(value)
        if normalized is None or normalized == value:
            return value
        notepad.add_warning(f"Row {sheet_row}: {column} {value!r} normalized to {normalized!r}")
        return normalized


def to_template_matrix(matrix: CohortMatrix) -> list[list[str]]:
    """The inverse of ingestion: two header rows followed by one string row per individual."""
    titles, secondaries = matrix.schema.header_rows()
    out = [titles, secondaries]
    for row in matrix.rows:
        values = [row.fixed_value(c) for c in DATA_COLUMNS]
        values.append(NOT_AVAILABLE)  # separator
        values.extend(str(cell) for cell in row.phenotype_cells)
        out.append(values)
    return out
