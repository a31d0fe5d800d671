"""
Ontology-aware consistency checks for phenotype annotations.

Within one row, every pair of ascertained terms where one is a strict ancestor of
the other is classified as:

    observed_with_ancestor             ancestor and descendant both observed (redundant)
    excluded_with_descendant           both excluded (redundant)
    observed_with_excluded_ancestor    ancestor excluded, descendant observed (contradiction)
    excluded_with_observed_descendant  ancestor observed, descendant excluded (contradiction)

Each map is keyed by the ancestor term id and holds the descendant ids.
The Sanitizer sets one term of every conflicting pair to "na": the observed ancestor
of an observed descendant, the excluded descendant of an excluded ancestor, and the
excluded member of a contradictory pair.
"""

import itertools
import logging
import typing
from dataclasses import dataclass, field

from .cell import NA, CellStatus
from .errors import StructuralError
from .matrix import CohortMatrix
from .ontology import Ontology, resolve_term
from .row import AnnotationRow
from .schema import ColumnSchema

logger = logging.getLogger(__name__)

ConflictMap = typing.Dict[str, typing.Set[str]]


@dataclass
class ConflictSet:
    observed_with_ancestor: ConflictMap = field(default_factory=dict)
    excluded_with_descendant: ConflictMap = field(default_factory=dict)
    observed_with_excluded_ancestor: ConflictMap = field(default_factory=dict)
    excluded_with_observed_descendant: ConflictMap = field(default_factory=dict)

    @staticmethod
    def _add(target: ConflictMap, ancestor: str, descendant: str) -> None:
        target.setdefault(ancestor, set()).add(descendant)

    def add(self, ancestor: str, ancestor_status: CellStatus, descendant: str, descendant_status: CellStatus) -> None:
        observed, excluded = CellStatus.OBSERVED, CellStatus.EXCLUDED
        if ancestor_status is observed and descendant_status is observed:
            self._add(self.observed_with_ancestor, ancestor, descendant)
        elif ancestor_status is excluded and descendant_status is excluded:
            self._add(self.excluded_with_descendant, ancestor, descendant)
        elif ancestor_status is excluded and descendant_status is observed:
            self._add(self.observed_with_excluded_ancestor, ancestor, descendant)
        elif ancestor_status is observed and descendant_status is excluded:
            self._add(self.excluded_with_observed_descendant, ancestor, descendant)

    def categories(self) -> typing.Dict[str, ConflictMap]:
        return {
            "observed_with_ancestor": self.observed_with_ancestor,
            "excluded_with_descendant": self.excluded_with_descendant,
            "observed_with_excluded_ancestor": self.observed_with_excluded_ancestor,
            "excluded_with_observed_descendant": self.excluded_with_observed_descendant,
        }

    def pairs(self) -> typing.List[typing.Tuple[str, str, str]]:
        """(category, ancestor, descendant) triples in a stable order."""
        out = []
        for category, mapping in self.categories().items():
            for ancestor in sorted(mapping):
                for descendant in sorted(mapping[ancestor]):
                    out.append((category, ancestor, descendant))
        return out

    @property
    def count(self) -> int:
        return sum(len(d) for m in self.categories().values() for d in m.values())

    def is_empty(self) -> bool:
        return self.count == 0

    def flagged_terms(self) -> typing.Set[str]:
        """Terms whose cells the sanitizer sets to "na"."""
        flagged: typing.Set[str] = set()
        flagged.update(self.observed_with_ancestor)
        flagged.update(self.observed_with_excluded_ancestor)
        for descendants in self.excluded_with_descendant.values():
            flagged.update(descendants)
        for descendants in self.excluded_with_observed_descendant.values():
            flagged.update(descendants)
        return flagged


@dataclass(frozen=True)
class RowConflicts:
    row_index: int
    pmid: str
    individual_id: str
    conflicts: ConflictSet


@dataclass
class ConflictReport:
    """Non-fatal finding of `ConsistencyChecker.qc_conflicting_pairs`."""

    rows: typing.List[RowConflicts] = field(default_factory=list)

    @property
    def count(self) -> int:
        return sum(r.conflicts.count for r in self.rows)

    @property
    def has_conflicts(self) -> bool:
        return self.count > 0

    def messages(self, labels: typing.Optional[typing.Mapping[str, str]] = None) -> typing.List[str]:
        labels = labels or {}

        def show(term_id: str) -> str:
            label = labels.get(term_id)
            return f"{label} ({term_id})" if label else term_id

        lines = []
        for r in self.rows:
            for category, ancestor, descendant in r.conflicts.pairs():
                lines.append(
                    f"{r.individual_id} [{r.pmid}] {category}: {show(ancestor)} -> {show(descendant)}"
                )
        return lines

    def summary(self, labels: typing.Optional[typing.Mapping[str, str]] = None) -> str:
        if not self.has_conflicts:
            return "No conflicting annotations found"
        head = f"{self.count} conflicting annotation pair(s) in {len(self.rows)} row(s)"
        return "\n".join([head] + self.messages(labels))


class ConsistencyChecker:

    def __init__(self, ontology: Ontology):
        self._ontology = ontology

    def find_conflicts(self, row: AnnotationRow, schema: ColumnSchema) -> ConflictSet:
        """
        Pairwise ancestor queries over the ascertained ("na" excluded) cells of `row`.

        Raises TermResolutionError if a term cannot be looked up.
        """
        if len(row.phenotype_cells) != schema.phenotype_column_count:
            raise StructuralError(
                f"Row {row.individual_id} has {len(row.phenotype_cells)} cells for "
                f"{schema.phenotype_column_count} phenotype columns"
            )
        annotated = []
        for column, cell in zip(schema.phenotype_columns, row.phenotype_cells):
            if cell.status is CellStatus.NOT_APPLICABLE:
                continue
            resolve_term(self._ontology, column.term_id)
            annotated.append((column.term_id, cell.status))

        conflicts = ConflictSet()
        for (t1, s1), (t2, s2) in itertools.combinations(annotated, 2):
            if self._ontology.ancestor_of(t1, t2):
                conflicts.add(t1, s1, t2, s2)
            elif self._ontology.ancestor_of(t2, t1):
                conflicts.add(t2, s2, t1, s1)
        return conflicts

    def qc_conflicting_pairs(self, matrix: CohortMatrix) -> ConflictReport:
        matrix.structural_qc()
        report = ConflictReport()
        for i, row in enumerate(matrix.rows):
            conflicts = self.find_conflicts(row, matrix.schema)
            if not conflicts.is_empty():
                report.rows.append(RowConflicts(i, row.pmid, row.individual_id, conflicts))
        logger.info("Found %d conflicting pair(s) in %d row(s)", report.count, len(report.rows))
        return report


class Sanitizer:

    def __init__(self, ontology: Ontology, checker: typing.Optional[ConsistencyChecker] = None):
        self._ontology = ontology
        self._checker = checker if checker is not None else ConsistencyChecker(ontology)

    def sanitize(self, matrix: CohortMatrix) -> CohortMatrix:
        """Return a new matrix with every flagged conflicting cell set to "na"."""
        matrix.structural_qc()
        schema = matrix.schema
        rows = []
        changed = 0
        for row in matrix.rows:
            flagged = self._checker.find_conflicts(row, schema).flagged_terms()
            if flagged:
                cells = [
                    NA if column.term_id in flagged else cell
                    for column, cell in zip(schema.phenotype_columns, row.phenotype_cells)
                ]
                row = row.with_phenotype_cells(cells)
                changed += len(flagged)
                logger.debug("%s: set %s to na", row.individual_id, ", ".join(sorted(flagged)))
            rows.append(row)
        logger.info("Sanitized %d cell(s)", changed)
        return CohortMatrix(schema, rows, matrix.validator)

    def update_labels(self, matrix: CohortMatrix) -> CohortMatrix:
        """
        Return a new matrix whose phenotype columns use primary ids and current labels.

        Raises TermResolutionError for an id the ontology does not know and
        StructuralError if two columns collapse onto the same primary id.
        """
        columns = []
        for column in matrix.schema.phenotype_columns:
            info = resolve_term(self._ontology, column.term_id)
            if info.canonical_id != column.term_id:
                logger.info("Replacing outdated id %s with %s", column.term_id, info.canonical_id)
            if info.label != column.label:
                logger.info("Updating label of %s: %r -> %r", info.canonical_id, column.label, info.label)
            columns.append((info.canonical_id, info.label))
        schema = ColumnSchema.from_terms(columns)
        duplicates = schema.duplicate_term_ids()
        if duplicates:
            raise StructuralError(f"Updating ids produced duplicate columns: {', '.join(duplicates)}")
        return CohortMatrix(schema, matrix.rows, matrix.validator)

