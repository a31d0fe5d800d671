"""
ColumnSchema: the ordered phenotype-term columns of one matrix version.

The fixed columns and the separator are always the same (see `PCM.column.FIXED_COLUMNS`),
so the schema only stores the variable phenotype suffix. A schema is immutable;
reorder/merge operations build a new one.
"""

import typing
from collections import Counter
from dataclasses import dataclass

from .column import FIXED_COLUMNS, HPO_CURIE_PATTERN, PhenotypeColumn, resolve
from .errors import HeaderError

Duplet = typing.Tuple[str, str]


@dataclass(frozen=True)
class ColumnSchema:
    phenotype_columns: typing.Tuple[PhenotypeColumn, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "phenotype_columns", tuple(self.phenotype_columns))

    @staticmethod
    def from_terms(terms: typing.Iterable[typing.Tuple[str, str]]) -> "ColumnSchema":
        """Build from (term_id, label) pairs, keeping the given order."""
        return ColumnSchema(tuple(PhenotypeColumn(term_id, label) for term_id, label in terms))

    @property
    def phenotype_column_count(self) -> int:
        return len(self.phenotype_columns)

    @property
    def term_ids(self) -> typing.Tuple[str, ...]:
        return tuple(c.term_id for c in self.phenotype_columns)

    @property
    def column_count(self) -> int:
        return len(FIXED_COLUMNS) + len(self.phenotype_columns)

    def __len__(self) -> int:
        return self.phenotype_column_count

    def __contains__(self, term_id: object) -> bool:
        return any(c.term_id == term_id for c in self.phenotype_columns)

    def index_of(self, term_id: str) -> int:
        """Position of `term_id` among the phenotype columns; raises KeyError if absent."""
        for i, column in enumerate(self.phenotype_columns):
            if column.term_id == term_id:
                return i
        raise KeyError(term_id)

    def index_of_title(self, title: str) -> int:
        """Position of the phenotype column titled `title`; raises KeyError if absent."""
        for i, column in enumerate(self.phenotype_columns):
            if column.label == title:
                return i
        raise KeyError(title)

    def duplicate_term_ids(self) -> typing.List[str]:
        counts = Counter(self.term_ids)
        return [term_id for term_id, n in counts.items() if n > 1]

    def duplets(self) -> typing.List[Duplet]:
        """The two header rows as (title, secondary) pairs, fixed columns first."""
        out = [(c.title, c.secondary) for c in FIXED_COLUMNS]
        out.extend((c.title, c.secondary) for c in self.phenotype_columns)
        return out

    def header_rows(self) -> typing.Tuple[typing.List[str], typing.List[str]]:
        duplets = self.duplets()
        return [d[0] for d in duplets], [d[1] for d in duplets]

    @staticmethod
    def from_header(titles: typing.Sequence[str], secondaries: typing.Sequence[str]) -> "ColumnSchema":
        """
        Parse the two header rows of a template.

        All problems are collected and raised together as one HeaderError.
        Duplicate phenotype columns are not a header error (see `CohortMatrix.structural_qc`).
        """
        messages: typing.List[str] = []
        if len(titles) != len(secondaries):
            raise HeaderError([
                f"Header rows have different lengths ({len(titles)} titles, {len(secondaries)} secondary tokens)"
            ])
        n_fixed = len(FIXED_COLUMNS)
        if len(titles) < n_fixed:
            raise HeaderError([f"Header has {len(titles)} columns but at least {n_fixed} are required"])

        for i, expected in enumerate(FIXED_COLUMNS):
            title, secondary = titles[i], secondaries[i]
            if title != expected.title:
                messages.append(f"Column {i}: expected title {expected.title!r} but got {title!r}")
            elif secondary != expected.secondary:
                messages.append(
                    f"Column {i} ({expected.title}): expected secondary {expected.secondary!r} but got {secondary!r}"
                )

        columns = []
        for i in range(n_fixed, len(titles)):
            title, secondary = titles[i], secondaries[i]
            if resolve(title) is not None:
                messages.append(f"Column {i}: fixed column {title!r} is not allowed among phenotype columns")
                continue
            if not title or title != title.strip():
                messages.append(f"Column {i}: malformed phenotype label {title!r}")
                continue
            if not HPO_CURIE_PATTERN.match(secondary):
                messages.append(f"Column {i} ({title}): malformed HPO identifier {secondary!r}")
                continue
            columns.append(PhenotypeColumn(secondary, title))

        if messages:
            raise HeaderError(messages)
        return ColumnSchema(tuple(columns))
