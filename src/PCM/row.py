"""
AnnotationRow: the data recorded for one individual.

A row holds one value per fixed column, the phenotype cells aligned 1:1 with the
phenotype columns of the schema it belongs to, and the allele-usage counts
(variant key -> 1 or 2).
"""

import typing
from collections import Counter
from dataclasses import dataclass, field, fields, replace

from .age import NOT_AVAILABLE
from .cell import CellValue
from .column import DATA_COLUMNS, CellValidator, FixedColumn
from .errors import CellValidationError


@dataclass(frozen=True)
class AnnotationRow:
    """
    Attributes mirror the fixed template columns (see PCM.column.FIXED_COLUMNS).

    phenotype_cells: values in schema order.
    allele_counts: variant key -> number of alleles (1 heterozygous, 2 homozygous).
    """

    pmid: str
    title: str
    individual_id: str
    comment: str = ""
    disease_id: str = ""
    disease_label: str = ""
    hgnc_id: str = ""
    gene_symbol: str = ""
    transcript: str = ""
    allele_1: str = ""
    allele_2: str = NOT_AVAILABLE
    variant_comment: str = ""
    age_of_onset: str = NOT_AVAILABLE
    age_at_last_encounter: str = NOT_AVAILABLE
    deceased: str = NOT_AVAILABLE
    sex: str = "U"
    phenotype_cells: typing.Tuple[CellValue, ...] = ()
    allele_counts: typing.Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self):
        # normalise containers so rows compare equal regardless of the input type
        object.__setattr__(self, "phenotype_cells", tuple(self.phenotype_cells))
        object.__setattr__(self, "allele_counts", dict(self.allele_counts))
        for key, count in self.allele_counts.items():
            if count not in (1, 2):
                raise ValueError(f"Allele {key!r} must occur once or twice, not {count}")

    def fixed_value(self, column: FixedColumn) -> str:
        if column.attribute is None:
            return NOT_AVAILABLE
        return getattr(self, column.attribute)

    def fixed_values(self) -> typing.Dict[str, str]:
        """Title -> value for every fixed data column."""
        return {c.title: getattr(self, c.attribute) for c in DATA_COLUMNS}

    def with_fixed_value(self, column: FixedColumn, value: str) -> "AnnotationRow":
        return replace(self, **{column.attribute: value})

    def with_phenotype_cells(self, cells: typing.Iterable[CellValue]) -> "AnnotationRow":
        return replace(self, phenotype_cells=tuple(cells))

    def validate(self, validator: CellValidator) -> typing.List[CellValidationError]:
        """Validate every fixed cell; returns all failures."""
        errors = []
        for column in DATA_COLUMNS:
            error = validator.validate(column.kind, getattr(self, column.attribute), column.title)
            if error is not None:
                errors.append(error)
        return errors

    @property
    def variant_keys(self) -> typing.List[str]:
        """The allele keys of this individual, homozygous alleles listed twice."""
        keys: typing.List[str] = []
        for key, count in sorted(self.allele_counts.items()):
            keys.extend([key] * count)
        return keys


# ------------------
# Allele key helpers
# ------------------

def is_hgvs_allele(allele: str) -> bool:
    return allele.startswith("c.") or allele.startswith("n.")


def variant_key(allele: str, gene_symbol: str, transcript: str) -> str:
    """HGVS alleles are keyed by transcript, symbolic (structural) alleles by gene."""
    if is_hgvs_allele(allele):
        return f"{allele}_{gene_symbol}_{transcript}"
    return f"{gene_symbol}_SV_{allele}"


def count_alleles(allele_1: str, allele_2: str, gene_symbol: str, transcript: str) -> typing.Dict[str, int]:
    """Build the allele-usage map from the two allele cells ("na" contributes nothing)."""
    keys = [
        variant_key(allele, gene_symbol, transcript)
        for allele in (allele_1, allele_2)
        if allele and allele != NOT_AVAILABLE
    ]
    return dict(Counter(keys))


ROW_FIELD_NAMES = tuple(f.name for f in fields(AnnotationRow))
