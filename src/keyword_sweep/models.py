"""Data models / typed dicts used across the package."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from numbers import Integral
from typing import Any


def _to_non_negative_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TypeError(f"{field_name} must be an integer")
    result = int(value)
    if result < 0:
        raise ValueError(f"{field_name} must be >= 0")
    return result


def _to_string_list(values: Sequence[Any] | None, field_name: str) -> list[str]:
    if values is None:
        return []
    if isinstance(values, str):
        raise TypeError(f"{field_name} must be a sequence of strings")
    normalized: list[str] = []
    for item in values:
        if not isinstance(item, str):
            raise TypeError(f"{field_name} items must be strings")
        normalized.append(item)
    return normalized


@dataclass(frozen=True)
class KeywordRecord:
    """One keyword row of an uploaded report.

    ``roas`` and ``loss`` are derived from ``spend`` and ``sales_14d`` on every
    access; they are never stored.
    """

    record_id: str
    campaign: str
    keyword: str
    spend: float = 0.0
    sales_14d: float = 0.0
    impressions: float = 0.0
    clicks: float = 0.0

    @property
    def roas(self) -> float:
        return self.sales_14d / self.spend if self.spend > 0 else 0.0

    @property
    def loss(self) -> float:
        return self.spend - self.sales_14d

    def to_dict(self) -> dict[str, Any]:
        return {
            "record_id": self.record_id,
            "campaign": self.campaign,
            "keyword": self.keyword,
            "spend": self.spend,
            "sales_14d": self.sales_14d,
            "impressions": self.impressions,
            "clicks": self.clicks,
            "roas": self.roas,
            "loss": self.loss,
        }


class SortField(str, Enum):
    campaign = "campaign"
    keyword = "keyword"
    loss = "loss"
    spend = "spend"
    sales_14d = "sales_14d"
    impressions = "impressions"
    clicks = "clicks"
    roas = "roas"

    @property
    def is_text(self) -> bool:
        return self in (SortField.campaign, SortField.keyword)


class SortDirection(str, Enum):
    asc = "asc"
    desc = "desc"


@dataclass(frozen=True)
class SortState:
    field: SortField
    direction: SortDirection = SortDirection.asc

    def toggled(self, sort_field: SortField) -> SortState:
        """Return the state after a click on *sort_field*'s column header."""
        if sort_field == self.field and self.direction == SortDirection.asc:
            return SortState(sort_field, SortDirection.desc)
        return SortState(sort_field, SortDirection.asc)


@dataclass
class IngestReport:
    """Ingest summary emitted for every upload.

    Contract invariants: ``rows_in == records + placeholder_rows`` and
    ``candidates <= records``.
    """

    rows_in: int = 0
    records: int = 0
    placeholder_rows: int = 0
    candidates: int = 0
    unmatched_fields: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.rows_in = _to_non_negative_int(self.rows_in, "rows_in")
        self.records = _to_non_negative_int(self.records, "records")
        self.placeholder_rows = _to_non_negative_int(self.placeholder_rows, "placeholder_rows")
        self.candidates = _to_non_negative_int(self.candidates, "candidates")
        self.unmatched_fields = _to_string_list(self.unmatched_fields, "unmatched_fields")
        self.warnings = _to_string_list(self.warnings, "warnings")
        if self.records + self.placeholder_rows != self.rows_in:
            raise ValueError("records + placeholder_rows must equal rows_in")
        if self.candidates > self.records:
            raise ValueError("candidates must be <= records")

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows_in": self.rows_in,
            "records": self.records,
            "placeholder_rows": self.placeholder_rows,
            "candidates": self.candidates,
            "unmatched_fields": list(self.unmatched_fields),
            "warnings": list(self.warnings),
        }


@dataclass
class RunManifest:
    """Audit-trail manifest for a single export run."""

    tool: str = "keyword-sweep"
    version: str = ""
    input_path: str = ""
    output_path: str = ""
    created_at_utc: str = ""
    sha256: str = ""
    rows_in: int = 0
    candidates: int = 0
    kept: int = 0
    removed: int = 0
    total_savings: float = 0.0
    status: str = "success"
    error_message: str = ""

    def __post_init__(self) -> None:
        self.rows_in = _to_non_negative_int(self.rows_in, "rows_in")
        self.candidates = _to_non_negative_int(self.candidates, "candidates")
        self.kept = _to_non_negative_int(self.kept, "kept")
        self.removed = _to_non_negative_int(self.removed, "removed")
        if self.kept + self.removed != self.candidates:
            raise ValueError("kept + removed must equal candidates")

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "version": self.version,
            "input_path": self.input_path,
            "output_path": self.output_path,
            "created_at_utc": self.created_at_utc,
            "sha256": self.sha256,
            "rows_in": self.rows_in,
            "candidates": self.candidates,
            "kept": self.kept,
            "removed": self.removed,
            "total_savings": self.total_savings,
            "status": self.status,
            "error_message": self.error_message,
        }
