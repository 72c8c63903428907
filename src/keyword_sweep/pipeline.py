"""Record building + selection pipeline — pure functions, no side effects."""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping, Sequence
from numbers import Real
from typing import Any, cast

import pandas as pd

from keyword_sweep import CANONICAL_FIELDS
from keyword_sweep.models import (
    IngestReport,
    KeywordRecord,
    SortDirection,
    SortField,
    SortState,
)
from keyword_sweep.utils import collation_key

RawRow = Mapping[str, Any]

# ── Header aliases ───────────────────────────────────────────────

# Exact, case- and spacing-sensitive header names, tried in order.
HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "campaign": ("캠페인명", "캠페인", "campaign", "Campaign"),
    "keyword": ("키워드", "키워드명", "검색 키워드", "keyword", "Keyword"),
    "spend": ("광고비", "비용", "ad cost", "Ad cost", "Cost", "cost", "총 광고비"),
    "sales_14d": ("총 전환매출액(14일)", "총전환매출액(14일)", "총 전환 매출액(14일)"),
    "impressions": ("노출수", "노출", "impressions", "Impressions"),
    "clicks": ("클릭수", "클릭", "clicks", "Clicks"),
}

# Keyword text the ad platform uses for non-search (placement) traffic.
NON_SEARCH_PLACEHOLDER = "-"

_STRIP_SEPARATORS_RE = re.compile(r"[, \t]")
_STRIP_UNITS_RE = re.compile(r"원|KRW|₩|%", re.IGNORECASE)
_LEADING_NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def merge_aliases(
    extra: Mapping[str, Sequence[str]] | None = None,
) -> dict[str, tuple[str, ...]]:
    """Return the built-in alias table with *extra* aliases appended per field."""
    merged = dict(HEADER_ALIASES)
    for field_name, names in (extra or {}).items():
        if field_name not in merged:
            raise ValueError(
                f"Unknown field {field_name!r}. Use one of: {', '.join(CANONICAL_FIELDS)}"
            )
        current = list(merged[field_name])
        current.extend(name for name in names if name not in current)
        merged[field_name] = tuple(current)
    return merged


# ── Header Resolver ──────────────────────────────────────────────


def _is_blank(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    try:
        return bool(pd.isna(cast(Any, value)))
    except (TypeError, ValueError):
        return False


def resolve_field(
    row: RawRow,
    field_name: str,
    aliases: Mapping[str, Sequence[str]] | None = None,
) -> Any:
    """Return the first non-blank value among *field_name*'s aliases, else ``""``."""
    table = aliases if aliases is not None else HEADER_ALIASES
    for header in table[field_name]:
        if header in row and not _is_blank(row[header]):
            return row[header]
    return ""


def unmatched_fields(
    headers: Iterable[str],
    aliases: Mapping[str, Sequence[str]] | None = None,
) -> list[str]:
    """Return canonical fields for which none of the aliases is among *headers*."""
    table = aliases if aliases is not None else HEADER_ALIASES
    present = set(headers)
    return [name for name in CANONICAL_FIELDS if not present.intersection(table[name])]


# ── Value Normalizer ─────────────────────────────────────────────


def to_number(value: object) -> float:
    """Coerce a raw cell into a float; anything unparseable becomes 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, Real):
        number = float(value)
        return number if math.isfinite(number) else 0.0
    if _is_blank(value):
        return 0.0

    token = _STRIP_SEPARATORS_RE.sub("", str(value))
    token = _STRIP_UNITS_RE.sub("", token)
    match = _LEADING_NUMBER_RE.match(token)
    if not match:
        return 0.0
    number = float(match.group(0))
    return number if math.isfinite(number) else 0.0


# ── Record Builder ───────────────────────────────────────────────


def _text(value: object) -> str:
    return str(value or "").strip()


def build_record(
    row: RawRow,
    index: int,
    uploaded_at_ns: int,
    aliases: Mapping[str, Sequence[str]] | None = None,
) -> KeywordRecord | None:
    """Turn one raw row into a :class:`KeywordRecord`.

    Returns ``None`` for non-search placeholder rows (keyword ``"-"``).
    """
    campaign = _text(resolve_field(row, "campaign", aliases))
    keyword = _text(resolve_field(row, "keyword", aliases))
    if keyword == NON_SEARCH_PLACEHOLDER:
        return None

    return KeywordRecord(
        record_id=f"{campaign}_{keyword}_{index}_{uploaded_at_ns}",
        campaign=campaign,
        keyword=keyword,
        spend=to_number(resolve_field(row, "spend", aliases)),
        sales_14d=to_number(resolve_field(row, "sales_14d", aliases)),
        impressions=to_number(resolve_field(row, "impressions", aliases)),
        clicks=to_number(resolve_field(row, "clicks", aliases)),
    )


def build_records(
    rows: Sequence[RawRow],
    uploaded_at_ns: int,
    aliases: Mapping[str, Sequence[str]] | None = None,
) -> tuple[list[KeywordRecord], IngestReport]:
    """Build records for every accepted row.

    Returns ``(records, report)``; ``report.candidates`` is left at 0.
    """
    records: list[KeywordRecord] = []
    placeholders = 0
    headers: dict[str, None] = {}
    for idx, row in enumerate(rows):
        headers.update(dict.fromkeys(str(h) for h in row))
        record = build_record(row, idx, uploaded_at_ns, aliases)
        if record is None:
            placeholders += 1
            continue
        records.append(record)

    report = IngestReport(
        rows_in=len(rows), records=len(records), placeholder_rows=placeholders
    )
    if rows:
        report.unmatched_fields = unmatched_fields(headers, aliases)
        for name in report.unmatched_fields:
            fallback = "empty" if name in ("campaign", "keyword") else "0"
            report.warnings.append(f"No column found for {name}; defaulting to {fallback}")
    if placeholders:
        report.warnings.append(
            f"Skipped {placeholders} non-search rows (keyword {NON_SEARCH_PLACEHOLDER!r})"
        )
    return records, report


# ── Selector ─────────────────────────────────────────────────────


def is_candidate(record: KeywordRecord) -> bool:
    """A keyword loses money when ROAS < 1 and loss > 0."""
    return record.roas < 1 and record.loss > 0


def select_candidates(records: Iterable[KeywordRecord]) -> list[KeywordRecord]:
    return [r for r in records if is_candidate(r)]


# ── Grouper / Sorter ─────────────────────────────────────────────


def default_order(records: Iterable[KeywordRecord]) -> list[KeywordRecord]:
    """Campaign ascending (collated), then loss descending; stable."""
    by_loss = sorted(records, key=lambda r: r.loss, reverse=True)
    return sorted(by_loss, key=lambda r: collation_key(r.campaign))


def campaigns_in_order(records: Iterable[KeywordRecord]) -> list[str]:
    """Distinct campaign names in first-appearance order."""
    return list(dict.fromkeys(r.campaign for r in records))


def _sort_value(record: KeywordRecord, sort_field: SortField) -> Any:
    value = getattr(record, sort_field.value, None)
    if sort_field.is_text:
        return collation_key(str(value or ""))
    return value or 0


def sort_records(
    records: Iterable[KeywordRecord], state: SortState | None
) -> list[KeywordRecord]:
    """Return *records* ordered for display; input order when *state* is None."""
    ordered = list(records)
    if state is None:
        return ordered
    return sorted(
        ordered,
        key=lambda r: _sort_value(r, state.field),
        reverse=state.direction == SortDirection.desc,
    )


def ingest(
    rows: Sequence[RawRow],
    uploaded_at_ns: int,
    aliases: Mapping[str, Sequence[str]] | None = None,
) -> tuple[list[KeywordRecord], list[str], IngestReport]:
    """Run builder, selector and default ordering over one upload.

    Returns ``(candidates, campaigns, report)`` where *candidates* is in
    default order and *campaigns* in first-appearance order.
    """
    records, report = build_records(rows, uploaded_at_ns, aliases)
    selected = select_candidates(records)
    report.candidates = len(selected)
    if records and not selected:
        report.warnings.append("No keyword has ROAS below 100% with a positive loss")
    return default_order(selected), campaigns_in_order(selected), report
