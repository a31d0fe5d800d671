"""
Column registry for the cohort template.

Every template column is a duplet: a title (header row 0) and a secondary
token (header row 1). The sixteen fixed columns and the HPO separator come
first, in a fixed order; phenotype-term columns follow, one per HPO term,
with the term label as title and the HPO CURIE as secondary token.

`CellValidator` holds the per-column validation rules.
"""

import re
import typing
from dataclasses import dataclass, field
from enum import Enum

from .age import NOT_AVAILABLE, ONSET_LABELS, is_valid_age_string
from .cell import CellValue
from .errors import CellValidationError

HPO_CURIE_PATTERN = re.compile(r"^HP:\d{7}$")


class ColumnKind(Enum):
    PMID = "PMID"
    TITLE = "title"
    INDIVIDUAL_ID = "individual_id"
    COMMENT = "comment"
    DISEASE_ID = "disease_id"
    DISEASE_LABEL = "disease_label"
    GENE_ID = "HGNC_id"
    GENE_SYMBOL = "gene_symbol"
    TRANSCRIPT = "transcript"
    ALLELE_1 = "allele_1"
    ALLELE_2 = "allele_2"
    VARIANT_COMMENT = "variant.comment"
    AGE_OF_ONSET = "age_of_onset"
    AGE_AT_LAST_ENCOUNTER = "age_at_last_encounter"
    DECEASED = "deceased"
    SEX = "sex"
    SEPARATOR = "HPO"
    PHENOTYPE_TERM = "phenotype_term"

    @property
    def is_fixed(self) -> bool:
        return self is not ColumnKind.PHENOTYPE_TERM


@dataclass(frozen=True)
class FixedColumn:
    """
    One of the non-phenotype columns.

    Attributes:
        kind: the column kind.
        title: header row 0 text.
        secondary: header row 1 text (a type tag such as "CURIE" or "str").
        attribute: name of the AnnotationRow field holding the value (None for the separator).
    """

    kind: ColumnKind
    title: str
    secondary: str
    attribute: typing.Optional[str]


# Order matters: this is the column order of the template.
FIXED_COLUMNS: typing.Tuple[FixedColumn, ...] = (
    FixedColumn(ColumnKind.PMID, "PMID", "CURIE", "pmid"),
    FixedColumn(ColumnKind.TITLE, "title", "str", "title"),
    FixedColumn(ColumnKind.INDIVIDUAL_ID, "individual_id", "str", "individual_id"),
    FixedColumn(ColumnKind.COMMENT, "comment", "optional", "comment"),
    FixedColumn(ColumnKind.DISEASE_ID, "disease_id", "CURIE", "disease_id"),
    FixedColumn(ColumnKind.DISEASE_LABEL, "disease_label", "str", "disease_label"),
    FixedColumn(ColumnKind.GENE_ID, "HGNC_id", "CURIE", "hgnc_id"),
    FixedColumn(ColumnKind.GENE_SYMBOL, "gene_symbol", "str", "gene_symbol"),
    FixedColumn(ColumnKind.TRANSCRIPT, "transcript", "str", "transcript"),
    FixedColumn(ColumnKind.ALLELE_1, "allele_1", "str", "allele_1"),
    FixedColumn(ColumnKind.ALLELE_2, "allele_2", "str", "allele_2"),
    FixedColumn(ColumnKind.VARIANT_COMMENT, "variant.comment", "optional", "variant_comment"),
    FixedColumn(ColumnKind.AGE_OF_ONSET, "age_of_onset", "age", "age_of_onset"),
    FixedColumn(ColumnKind.AGE_AT_LAST_ENCOUNTER, "age_at_last_encounter", "age", "age_at_last_encounter"),
    FixedColumn(ColumnKind.DECEASED, "deceased", "yes/no/na", "deceased"),
    FixedColumn(ColumnKind.SEX, "sex", "M:F:O:U", "sex"),
    FixedColumn(ColumnKind.SEPARATOR, "HPO", NOT_AVAILABLE, None),
)

FIXED_COLUMN_BY_TITLE: typing.Dict[str, FixedColumn] = {c.title: c for c in FIXED_COLUMNS}
FIXED_COLUMN_BY_KIND: typing.Dict[ColumnKind, FixedColumn] = {c.kind: c for c in FIXED_COLUMNS}

# Columns whose value is stored on the row (everything except the separator)
DATA_COLUMNS: typing.Tuple[FixedColumn, ...] = tuple(c for c in FIXED_COLUMNS if c.attribute is not None)


@dataclass(frozen=True)
class PhenotypeColumn:
    """A phenotype-term column: HPO CURIE plus its label."""

    term_id: str
    label: str

    @property
    def kind(self) -> ColumnKind:
        return ColumnKind.PHENOTYPE_TERM

    @property
    def title(self) -> str:
        return self.label

    @property
    def secondary(self) -> str:
        return self.term_id


def resolve(title: str) -> typing.Optional[ColumnKind]:
    """
    Return the ColumnKind of a fixed-column title.

    None means the title is not one of the fixed titles, i.e. the column is a
    candidate phenotype-term column.
    """
    fixed = FIXED_COLUMN_BY_TITLE.get(title)
    return fixed.kind if fixed is not None else None


# -------------------
# Cell validation
# -------------------


@dataclass(frozen=True)
class ValidationConfig:
    """
    Vocabularies used by the cell validators.

    `onset_labels` applies to the age_of_onset and age_at_last_encounter columns only.
    Onset ages inside phenotype cells always use the standard labels of `CellValue`.
    """

    onset_labels: typing.FrozenSet[str] = field(default_factory=lambda: frozenset(ONSET_LABELS))
    structural_prefixes: typing.FrozenSet[str] = frozenset({"DEL", "DUP", "INV", "INS", "TRANSL"})
    forbidden_id_chars: typing.FrozenSet[str] = frozenset({"/", "\\", "(", ")"})
    deceased_values: typing.FrozenSet[str] = frozenset({"yes", "no", NOT_AVAILABLE})
    sex_values: typing.FrozenSet[str] = frozenset({"M", "F", "O", "U"})


DEFAULT_CONFIG = ValidationConfig()

# c./n. position: 123, -12, *5, 76+1, 100_102, 100+1_101-1
_HGVS_POSITION = r"[-*]?\d+(?:[+-]\d+)?"
_HGVS_RE = re.compile(rf"^[cn]\.(?P<pos>{_HGVS_POSITION}(?:_{_HGVS_POSITION})?)(?P<change>.*)$")
_SUBSTITUTION_RE = re.compile(r"^[ACGT]+>[ACGT]+$")
_INSERTION_RE = re.compile(r"^(?:del)?ins[ACGT]+$")
_DEL_DUP_RE = re.compile(r"^(?:del|dup)[ACGT]*$")


class CellValidator:
    """
    Validates fixed-column cells.

    `validate` returns a CellValidationError (or None) and never raises;
    `check` raises the same error.
    """

    def __init__(self, config: ValidationConfig = DEFAULT_CONFIG):
        self._config = config
        self._dispatch: typing.Dict[ColumnKind, typing.Callable[[str], typing.Optional[str]]] = {
            ColumnKind.PMID: self._check_pmid,
            ColumnKind.TITLE: self._check_required_text,
            ColumnKind.INDIVIDUAL_ID: self._check_individual_id,
            ColumnKind.COMMENT: self._check_white_space,
            ColumnKind.DISEASE_ID: self._check_disease_id,
            ColumnKind.DISEASE_LABEL: self._check_required_text,
            ColumnKind.GENE_ID: self._check_hgnc_id,
            ColumnKind.GENE_SYMBOL: self._check_gene_symbol,
            ColumnKind.TRANSCRIPT: self._check_transcript,
            ColumnKind.ALLELE_1: self._check_allele_1,
            ColumnKind.ALLELE_2: self._check_allele_2,
            ColumnKind.VARIANT_COMMENT: self._check_variant_comment,
            ColumnKind.AGE_OF_ONSET: self._check_age,
            ColumnKind.AGE_AT_LAST_ENCOUNTER: self._check_age,
            ColumnKind.DECEASED: self._check_deceased,
            ColumnKind.SEX: self._check_sex,
            ColumnKind.SEPARATOR: self._check_separator,
            ColumnKind.PHENOTYPE_TERM: self._check_phenotype_cell,
        }
        missing = set(ColumnKind) - set(self._dispatch)
        if missing:
            raise RuntimeError(f"No validator registered for {sorted(k.name for k in missing)}")

    @property
    def config(self) -> ValidationConfig:
        return self._config

    def validate(self, kind: ColumnKind, cell: str, column: typing.Optional[str] = None) -> typing.Optional[CellValidationError]:
        column_name = column if column is not None else _default_title(kind)
        if not isinstance(cell, str):
            return CellValidationError(column_name, repr(cell), f"expected a string, got {type(cell).__name__}")
        reason = self._dispatch[kind](cell)
        if reason is None:
            return None
        return CellValidationError(column_name, cell, reason)

    def check(self, kind: ColumnKind, cell: str, column: typing.Optional[str] = None) -> None:
        error = self.validate(kind, cell, column)
        if error is not None:
            raise error

    # ---- generic checks -------------------------------------------------------

    @staticmethod
    def _check_empty(value: str) -> typing.Optional[str]:
        return "Value must not be empty" if not value else None

    @staticmethod
    def _check_white_space(value: str) -> typing.Optional[str]:
        if value[-1:].isspace():
            return "Trailing whitespace"
        if value[:1].isspace():
            return "Leading whitespace"
        if "  " in value:
            return "Consecutive whitespace"
        return None

    @staticmethod
    def _check_curie(value: str) -> typing.Optional[str]:
        """A CURIE has one colon, a non-empty prefix and a non-empty numeric suffix."""
        if not value:
            return "Empty CURIE"
        if any(c.isspace() for c in value):
            return "CURIE contains stray whitespace"
        if value.count(":") != 1:
            return "CURIE must contain exactly one colon"
        prefix, suffix = value.split(":")
        if not prefix:
            return "CURIE has no prefix"
        if not suffix:
            return "CURIE has no suffix"
        if not suffix.isdigit():
            return "CURIE suffix must be numeric"
        return None

    def _check_required_text(self, value: str) -> typing.Optional[str]:
        return self._check_empty(value) or self._check_white_space(value)

    # ---- per column ----------------------------------------------------------

    def _check_pmid(self, value: str) -> typing.Optional[str]:
        reason = self._check_curie(value)
        if reason:
            return reason
        if not value.startswith("PMID:"):
            return "Invalid PubMed prefix"
        return None

    def _check_individual_id(self, value: str) -> typing.Optional[str]:
        reason = self._check_required_text(value)
        if reason:
            return reason
        for char in value:
            if char in self._config.forbidden_id_chars:
                return f"Forbidden character {char!r}"
        return None

    def _check_disease_id(self, value: str) -> typing.Optional[str]:
        reason = self._check_curie(value)
        if reason:
            return reason
        prefix, suffix = value.split(":")
        if prefix not in {"OMIM", "MONDO"}:
            return "Disease id must have prefix OMIM or MONDO"
        if prefix == "OMIM" and len(suffix) != 6:
            return "OMIM identifiers must have 6 digits"
        return None

    def _check_hgnc_id(self, value: str) -> typing.Optional[str]:
        reason = self._check_curie(value)
        if reason:
            return reason
        if not value.startswith("HGNC:"):
            return "HGNC id has invalid prefix"
        return None

    def _check_gene_symbol(self, value: str) -> typing.Optional[str]:
        reason = self._check_required_text(value)
        if reason:
            return reason
        if any(c.isspace() for c in value):
            return "Gene symbol must not contain whitespace"
        return None

    @staticmethod
    def _check_transcript(value: str) -> typing.Optional[str]:
        if not value:
            return "Value must not be empty"
        if not (value.startswith("NM_") or value.startswith("ENST")):
            return "Unrecognized transcript prefix"
        if "." not in value:
            return "Transcript is missing a version"
        accession, version = value.rsplit(".", 1)
        if not accession or not version.isdigit():
            return "Malformed transcript version"
        return None

    @staticmethod
    def _check_hgvs(value: str) -> typing.Optional[str]:
        m = _HGVS_RE.match(value)
        if not m:
            return "Malformed HGVS expression"
        change = m.group("change")
        if (
            _SUBSTITUTION_RE.match(change)
            or _INSERTION_RE.match(change)
            or _DEL_DUP_RE.match(change)
        ):
            # substitutions must be a single position
            if ">" in change and "_" in m.group("pos"):
                return "Malformed HGVS substitution"
            return None
        return "Malformed HGVS expression"

    def _check_structural(self, value: str) -> typing.Optional[str]:
        prefix, sep, description = value.partition(":")
        if prefix not in self._config.structural_prefixes or not sep or not description.strip():
            return "Malformed structural variant"
        return None

    def _check_allele(self, value: str) -> typing.Optional[str]:
        if value.startswith("c.") or value.startswith("n."):
            return self._check_hgvs(value)
        return self._check_structural(value)

    def _check_allele_1(self, value: str) -> typing.Optional[str]:
        return self._check_required_text(value) or self._check_allele(value)

    def _check_allele_2(self, value: str) -> typing.Optional[str]:
        reason = self._check_required_text(value)
        if reason:
            return reason
        if value == NOT_AVAILABLE:
            return None
        return self._check_allele(value)

    @staticmethod
    def _check_variant_comment(value: str) -> typing.Optional[str]:
        return "Must not contain a tab character" if "\t" in value else None

    def _check_age(self, value: str) -> typing.Optional[str]:
        if not value:
            return "Empty age string not allowed (use na)"
        if not is_valid_age_string(value, self._config.onset_labels):
            return "Malformed age string"
        return None

    def _check_deceased(self, value: str) -> typing.Optional[str]:
        return None if value in self._config.deceased_values else "Malformed deceased entry"

    def _check_sex(self, value: str) -> typing.Optional[str]:
        return None if value in self._config.sex_values else "Malformed sex entry"

    @staticmethod
    def _check_separator(value: str) -> typing.Optional[str]:
        return None if value == NOT_AVAILABLE else "Separator cells must be 'na'"

    @staticmethod
    def _check_phenotype_cell(value: str) -> typing.Optional[str]:
        try:
            CellValue.from_string(value)
        except ValueError as e:
            return str(e)
        return None


def _default_title(kind: ColumnKind) -> str:
    fixed = FIXED_COLUMN_BY_KIND.get(kind)
    return fixed.title if fixed is not None else kind.value
