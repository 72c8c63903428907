"""Targeted tests for header resolution, numeric coercion, selection and ordering."""

from __future__ import annotations

import math

import pytest

from conftest import make_row
from keyword_sweep.models import KeywordRecord, SortDirection, SortField, SortState
from keyword_sweep.pipeline import (
    HEADER_ALIASES,
    build_record,
    build_records,
    campaigns_in_order,
    default_order,
    ingest,
    is_candidate,
    merge_aliases,
    resolve_field,
    select_candidates,
    sort_records,
    to_number,
)
from keyword_sweep.utils import collation_key


def _record(campaign: str, keyword: str, spend: float, sales: float, idx: int = 0) -> KeywordRecord:
    return KeywordRecord(
        record_id=f"{campaign}_{keyword}_{idx}_0",
        campaign=campaign,
        keyword=keyword,
        spend=spend,
        sales_14d=sales,
    )


# ── Header Resolver ──────────────────────────────────────────────


def test_resolve_field_returns_first_non_empty_alias() -> None:
    row = {"캠페인명": "", "캠페인": "A", "campaign": "B"}

    assert resolve_field(row, "campaign") == "A"


def test_resolve_field_skips_none_and_nan() -> None:
    row = {"광고비": None, "비용": float("nan"), "ad cost": 700}

    assert resolve_field(row, "spend") == 700


def test_resolve_field_is_exact_match_only() -> None:
    row = {"CAMPAIGN": "A", " 캠페인명": "B", "keyword ": "x"}

    assert resolve_field(row, "campaign") == ""
    assert resolve_field(row, "keyword") == ""


def test_resolve_field_respects_alias_order() -> None:
    row = {"Cost": 1, "광고비": 2}

    assert resolve_field(row, "spend") == 2


def test_merge_aliases_appends_after_builtin_aliases() -> None:
    merged = merge_aliases({"spend": ["집행금액", "광고비"]})

    assert merged["spend"][: len(HEADER_ALIASES["spend"])] == HEADER_ALIASES["spend"]
    assert merged["spend"][-1] == "집행금액"
    assert merged["spend"].count("광고비") == 1
    assert resolve_field({"집행금액": 10}, "spend", merged) == 10


def test_merge_aliases_rejects_unknown_field() -> None:
    with pytest.raises(ValueError, match="Unknown field"):
        merge_aliases({"revenue": ["Sales"]})


# ── Value Normalizer ─────────────────────────────────────────────


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (7, 7.0),
        (12.5, 12.5),
        ("1,234원", 1234.0),
        ("₩ 12,000", 12000.0),
        ("krw 500", 500.0),
        ("12.5%", 12.5),
        ("\t3 000", 3000.0),
        ("-5", -5.0),
        ("12abc", 12.0),
        ("1e3", 1000.0),
    ],
)
def test_to_number_parses_localized_values(raw: object, expected: float) -> None:
    assert to_number(raw) == expected


@pytest.mark.parametrize(
    "raw", [None, "", "abc", "원", float("nan"), float("inf"), True, "Infinity"]
)
def test_to_number_degrades_to_zero(raw: object) -> None:
    assert to_number(raw) == 0.0


# ── Record Builder ───────────────────────────────────────────────


def test_build_record_derives_roas_and_loss() -> None:
    row = make_row("A", "shoes", 10000, 4000, 500, 20)

    record = build_record(row, 3, 99)

    assert record is not None
    assert record.record_id == "A_shoes_3_99"
    assert record.campaign == "A"
    assert record.keyword == "shoes"
    assert record.impressions == 500
    assert record.clicks == 20
    assert math.isclose(record.roas, 0.4)
    assert record.loss == 6000
    assert is_candidate(record)


@pytest.mark.parametrize("keyword", ["-", " - ", "\t-"])
def test_build_record_discards_non_search_placeholder(keyword: str) -> None:
    row = make_row("A", keyword, 5000, 1000)

    assert build_record(row, 0, 1) is None


def test_build_record_trims_text_and_defaults_missing_numbers() -> None:
    row = {"캠페인": "  A  ", "검색 키워드": " shoes "}

    record = build_record(row, 0, 1)

    assert record is not None
    assert record.campaign == "A"
    assert record.keyword == "shoes"
    assert record.spend == 0
    assert record.sales_14d == 0
    assert not is_candidate(record)


def test_identical_keywords_get_distinct_ids() -> None:
    rows = [make_row("A", "shoes", 100, 0), make_row("A", "shoes", 200, 0)]

    records, _report = build_records(rows, 42)

    assert len({r.record_id for r in records}) == 2


def test_build_records_reports_placeholders_and_unmatched_fields() -> None:
    rows = [
        {"캠페인명": "A", "키워드": "shoes", "광고비": 100},
        {"캠페인명": "A", "키워드": "-", "광고비": 100},
    ]

    records, report = build_records(rows, 1)

    assert len(records) == 1
    assert report.rows_in == 2
    assert report.records == 1
    assert report.placeholder_rows == 1
    assert report.unmatched_fields == ["sales_14d", "impressions", "clicks"]
    assert "No column found for sales_14d; defaulting to 0" in report.warnings
    assert any("Skipped 1 non-search rows" in w for w in report.warnings)


def test_build_records_empty_input_has_no_warnings() -> None:
    records, report = build_records([], 1)

    assert records == []
    assert report.rows_in == 0
    assert report.warnings == []


# ── Selector ─────────────────────────────────────────────────────


@pytest.mark.parametrize("sales", [0, 50, 1000])
def test_zero_spend_is_never_selected(sales: float) -> None:
    assert not is_candidate(_record("A", "x", 0, sales))


def test_selector_matches_predicate_exactly() -> None:
    records = [
        _record("A", f"k{spend}-{sales}", spend, sales, idx=i)
        for i, (spend, sales) in enumerate(
            (spend, sales) for spend in (0, 50, 100) for sales in (0, 50, 99, 100, 150)
        )
    ]

    selected = select_candidates(records)

    expected = [r for r in records if r.roas < 1 and r.loss > 0]
    assert selected == expected
    assert all(r.spend > r.sales_14d for r in selected)


# ── Grouper / Sorter ─────────────────────────────────────────────


def test_default_order_groups_campaign_then_loss_descending() -> None:
    records = [
        _record("B", "b1", 1, 0, idx=0),
        _record("A", "a3", 3000, 0, idx=1),
        _record("A", "a9", 9000, 0, idx=2),
    ]

    ordered = default_order(records)

    assert [(r.campaign, r.loss) for r in ordered] == [("A", 9000), ("A", 3000), ("B", 1)]


def test_default_order_is_stable_on_loss_ties() -> None:
    records = [_record("A", f"k{i}", 100, 0, idx=i) for i in range(4)]

    assert [r.keyword for r in default_order(records)] == ["k0", "k1", "k2", "k3"]


def test_default_order_collates_case_insensitively() -> None:
    records = [_record("Banana", "x", 10, 0), _record("apple", "y", 10, 0, idx=1)]

    assert [r.campaign for r in default_order(records)] == ["apple", "Banana"]


def test_default_order_puts_hangul_campaigns_before_latin() -> None:
    records = [
        _record("Brand", "shoes", 3000, 1000, idx=0),
        _record("봄 세일", "러닝화", 9000, 0, idx=1),
        _record("1차", "모자", 100, 0, idx=2),
    ]

    assert [r.campaign for r in default_order(records)] == ["1차", "봄 세일", "Brand"]


def test_sort_records_keyword_column_puts_hangul_before_latin() -> None:
    records = [
        _record("A", "shoes", 300, 0, idx=0),
        _record("A", "운동화", 200, 0, idx=1),
        _record("A", "_promo", 100, 0, idx=2),
    ]

    by_keyword = sort_records(records, SortState(SortField.keyword))

    assert [r.keyword for r in by_keyword] == ["_promo", "운동화", "shoes"]


def test_default_order_adjacent_pairs_hold_invariant() -> None:
    records = [
        _record(c, f"{c}{i}", spend, 0, idx=i)
        for i, (c, spend) in enumerate(
            [("나", 5), ("가", 7), ("A", 2), ("나", 9), ("가", 1), ("A", 2)]
        )
    ]

    ordered = default_order(records)

    for left, right in zip(ordered, ordered[1:]):
        assert collation_key(left.campaign) <= collation_key(right.campaign)
        if left.campaign == right.campaign:
            assert left.loss >= right.loss


def test_ingest_lists_campaigns_in_first_appearance_order() -> None:
    rows = [
        make_row("나", "k1", 100, 0),
        make_row("A", "k2", 100, 0),
        make_row("나", "k3", 300, 0),
        make_row("Z", "k4", 100, 500),
    ]

    candidates, campaigns, report = ingest(rows, 1)

    assert campaigns == ["나", "A"]
    assert [r.keyword for r in candidates] == ["k3", "k1", "k2"]
    assert report.candidates == 3


def test_campaigns_in_order_deduplicates() -> None:
    records = [_record("B", "x", 1, 0), _record("A", "y", 1, 0), _record("B", "z", 1, 0)]

    assert campaigns_in_order(records) == ["B", "A"]


def test_sort_records_numeric_and_text_columns() -> None:
    records = [
        _record("A", "b", 300, 0, idx=0),
        _record("A", "C", 100, 0, idx=1),
        _record("A", "a", 200, 0, idx=2),
    ]

    by_loss_desc = sort_records(records, SortState(SortField.loss, SortDirection.desc))
    by_keyword = sort_records(records, SortState(SortField.keyword))

    assert [r.loss for r in by_loss_desc] == [300, 200, 100]
    assert [r.keyword for r in by_keyword] == ["a", "b", "C"]
    assert [r.keyword for r in records] == ["b", "C", "a"]


def test_sort_records_without_state_keeps_order() -> None:
    records = [_record("A", "b", 1, 0), _record("A", "a", 2, 0, idx=1)]

    assert sort_records(records, None) == records
