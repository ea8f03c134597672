"""Column record model shared by the adapters, the classifier and the API."""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, Field, field_validator

NdmoClassification = Literal["Top Secret", "Secret", "Restricted", "Public"]
NDMO_CLASSIFICATIONS: tuple = get_args(NdmoClassification)
DEFAULT_NDMO_CLASSIFICATION = "Public"

DatabaseType = Literal["postgres", "oracle", "hive", "unknown"]

FLAG_FIELDS = ("pii", "phi", "pfi", "psi", "pci")


def normalize_ndmo(value: object) -> object:
    """Map empty values to the default level and fix the case of known levels."""
    if value is None:
        return DEFAULT_NDMO_CLASSIFICATION
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return DEFAULT_NDMO_CLASSIFICATION
        for option in NDMO_CLASSIFICATIONS:
            if option.lower() == stripped.lower():
                return option
        return stripped
    return value


class ColumnRecord(BaseModel):
    """One governed database column.

    Field names are snake_case; JSON uses the camelCase aliases
    (``columnName``, ``ndmoClassification``, ``reasonNdmo``).
    """

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    column_name: str = Field(alias="columnName", min_length=1)
    description: str = ""
    ndmo_classification: NdmoClassification = Field(
        default=DEFAULT_NDMO_CLASSIFICATION, alias="ndmoClassification"
    )
    reason_ndmo: Optional[str] = Field(default=None, alias="reasonNdmo")
    pii: bool = False
    phi: bool = False
    pfi: bool = False
    psi: bool = False
    pci: bool = False

    @field_validator("column_name")
    @classmethod
    def _strip_column_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("columnName must not be blank")
        return value

    @field_validator("description", mode="before")
    @classmethod
    def _description_default(cls, value: object) -> object:
        return "" if value is None else value

    @field_validator("ndmo_classification", mode="before")
    @classmethod
    def _ndmo_default(cls, value: object) -> object:
        return normalize_ndmo(value)

    def flags(self) -> dict:
        return {name: getattr(self, name) for name in FLAG_FIELDS}

    def to_json(self) -> dict:
        """Serialise with the camelCase keys the browser client expects."""
        return self.model_dump(by_alias=True, mode="json")


class ClassificationOutput(BaseModel):
    """Non-identity fields produced by the language model for one column name."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    description: str
    ndmo_classification: NdmoClassification = Field(alias="ndmoClassification")
    reason_ndmo: str = Field(alias="reasonNdmo")
    pii: bool = Field(strict=True)
    phi: bool = Field(strict=True)
    pfi: bool = Field(strict=True)
    psi: bool = Field(strict=True)
    pci: bool = Field(strict=True)

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")

    def to_record(self, column_name: str, column_id: Optional[str] = None) -> ColumnRecord:
        return ColumnRecord(id=column_id, column_name=column_name, **self.model_dump())


def find_duplicate_names(records: Iterable[ColumnRecord]) -> set:
    """Return column names that occur more than once (case-sensitive)."""
    counts = Counter(r.column_name for r in records)
    return {name for name, count in counts.items() if count > 1}


def parse_column_names(text: str) -> list:
    """Split a newline-separated list of column names, dropping blank lines."""
    return [line.strip() for line in (text or "").splitlines() if line.strip()]
