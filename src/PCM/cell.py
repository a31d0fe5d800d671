"""
Phenotype cell values.

A phenotype cell is one of: observed, excluded, not applicable ("na"),
an onset age (the term was observed at that age), or a modifier (the term
was observed, qualified by an HPO modifier term).
"""

import re
import typing
from dataclasses import dataclass
from enum import Enum

from .age import is_valid_age_string

_MODIFIER_PATTERN = re.compile(r"^HP:\d{7}$")


class CellKind(Enum):
    OBSERVED = "observed"
    EXCLUDED = "excluded"
    NOT_APPLICABLE = "na"
    ONSET_AGE = "onset_age"
    MODIFIER = "modifier"


class CellStatus(Enum):
    """Coarse classification used by the consistency checker."""

    OBSERVED = "observed"
    EXCLUDED = "excluded"
    NOT_APPLICABLE = "na"


@dataclass(frozen=True)
class CellValue:
    """
    Attributes:
        kind: which constructor this value was built with.
        payload: the age or modifier string for ONSET_AGE/MODIFIER, None otherwise.

    Onset ages are checked against the standard onset vocabulary (`age.ONSET_LABELS`),
    never a per-validator one, so a cell reads back the same wherever it is stored.
    """

    kind: CellKind
    payload: typing.Optional[str] = None

    def __post_init__(self):
        carries_payload = self.kind in (CellKind.ONSET_AGE, CellKind.MODIFIER)
        if carries_payload and not self.payload:
            raise ValueError(f"{self.kind.name} cell requires a payload")
        if not carries_payload and self.payload is not None:
            raise ValueError(f"{self.kind.name} cell takes no payload")
        if self.kind is CellKind.ONSET_AGE and (
            self.payload == CellKind.NOT_APPLICABLE.value or not is_valid_age_string(self.payload)
        ):
            raise ValueError(f"Invalid onset age: {self.payload!r}")
        if self.kind is CellKind.MODIFIER and not _MODIFIER_PATTERN.match(self.payload):
            raise ValueError(f"Invalid HPO modifier: {self.payload!r}")

    # ---- constructors -------------------------------------------------------

    @classmethod
    def observed(cls) -> "CellValue":
        return OBSERVED

    @classmethod
    def excluded(cls) -> "CellValue":
        return EXCLUDED

    @classmethod
    def na(cls) -> "CellValue":
        return NA

    @classmethod
    def onset(cls, age: str) -> "CellValue":
        return cls(CellKind.ONSET_AGE, age)

    @classmethod
    def modifier(cls, curie: str) -> "CellValue":
        return cls(CellKind.MODIFIER, curie)

    @classmethod
    def from_string(cls, value: str) -> "CellValue":
        """Parse the text of a phenotype cell; raises ValueError for anything unrecognised."""
        if value == "observed":
            return OBSERVED
        if value == "excluded":
            return EXCLUDED
        if value == "na":
            return NA
        if isinstance(value, str) and is_valid_age_string(value):
            return cls(CellKind.ONSET_AGE, value)
        if isinstance(value, str) and _MODIFIER_PATTERN.match(value):
            return cls(CellKind.MODIFIER, value)
        raise ValueError(f"Malformed HPO cell contents: {value!r}")

    # ---- queries ------------------------------------------------------------

    @property
    def status(self) -> CellStatus:
        if self.kind is CellKind.EXCLUDED:
            return CellStatus.EXCLUDED
        if self.kind is CellKind.NOT_APPLICABLE:
            return CellStatus.NOT_APPLICABLE
        # observed, onset age and modifier all assert the phenotype is present
        return CellStatus.OBSERVED

    @property
    def is_observed(self) -> bool:
        return self.status is CellStatus.OBSERVED

    @property
    def is_excluded(self) -> bool:
        return self.kind is CellKind.EXCLUDED

    @property
    def is_ascertained(self) -> bool:
        return self.kind is not CellKind.NOT_APPLICABLE

    def __str__(self) -> str:
        if self.payload is not None:
            return self.payload
        return self.kind.value


OBSERVED = CellValue(CellKind.OBSERVED)
EXCLUDED = CellValue(CellKind.EXCLUDED)
NA = CellValue(CellKind.NOT_APPLICABLE)
