# marital_status_analysis/variables.py
"""Column registry for the cleaned census extract.

- DEFAULT_SCHEMA declares every column the loader expects and the fixed label set of
  each categorical column (declared order is also the dummy-encoding order).
- REDUCED_PREDICTORS / FULL_PREDICTORS are the two nested models fitted for maritalstatus.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

OUTCOME = "maritalstatus"
DEFAULT_REFERENCE = "Married"

# -----------------------------------------------------------------------------
# Label sets (cleaned Adult census extract)
# -----------------------------------------------------------------------------
WORKCLASS_LEVELS: list[str] = [
    "Private",
    "Self-emp-not-inc",
    "Self-emp-inc",
    "Federal-gov",
    "Local-gov",
    "State-gov",
]

EDUCATION_LEVELS: list[str] = [
    "Dropout",
    "HS-grad",
    "Some-college",
    "Associates",
    "Bachelors",
    "Graduate",
]

RACE_LEVELS: list[str] = [
    "White",
    "Black",
    "Asian-Pac-Islander",
    "Amer-Indian-Eskimo",
    "Other",
]

SEX_LEVELS: list[str] = ["Female", "Male"]

MARITALSTATUS_LEVELS: list[str] = [
    "Married",
    "Never-married",
    "Divorced",
    "Widowed",
]

# -----------------------------------------------------------------------------
# Predictor sets
# -----------------------------------------------------------------------------
REDUCED_PREDICTORS: list[str] = ["age", "sex"]

FULL_PREDICTORS: list[str] = ["age", "workclass", "education", "race", "sex"]

EXAMPLE_RECORD: dict[str, Any] = {
    "workclass": "Private",
    "education": "Bachelors",
    "race": "White",
    "sex": "Female",
    "age": 30,
}


@dataclass(frozen=True)
class DatasetSchema:
    """Expected columns of the input file.

    continuous: numeric columns, in file order
    categorical: column -> declared label set
    """

    continuous: tuple[str, ...]
    categorical: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        frozen = {k: tuple(v) for k, v in self.categorical.items()}
        object.__setattr__(self, "continuous", tuple(self.continuous))
        object.__setattr__(self, "categorical", MappingProxyType(frozen))

    @property
    def columns(self) -> list[str]:
        return [*self.continuous, *self.categorical.keys()]

    def levels(self, column: str) -> list[str]:
        if column not in self.categorical:
            raise KeyError(f"'{column}' is not a categorical column of this schema")
        return list(self.categorical[column])

    def is_categorical(self, column: str) -> bool:
        return column in self.categorical

    def with_levels(self, overrides: Mapping[str, list[str]]) -> DatasetSchema:
        """Return a copy with some label sets replaced (e.g. from config)."""
        unknown = [c for c in overrides if c not in self.categorical]
        if unknown:
            raise KeyError(f"Cannot override levels of non-categorical columns: {unknown}")
        merged = {c: tuple(overrides.get(c, lv)) for c, lv in self.categorical.items()}
        return DatasetSchema(continuous=self.continuous, categorical=merged)


DEFAULT_SCHEMA = DatasetSchema(
    continuous=("age",),
    categorical={
        "workclass": tuple(WORKCLASS_LEVELS),
        "education": tuple(EDUCATION_LEVELS),
        "race": tuple(RACE_LEVELS),
        "sex": tuple(SEX_LEVELS),
        "maritalstatus": tuple(MARITALSTATUS_LEVELS),
    },
)
