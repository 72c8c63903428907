from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from openpyxl import Workbook

HEADERS = ["캠페인명", "키워드", "광고비", "총 전환매출액(14일)", "노출수", "클릭수"]

# 3 losing keywords: Brand/shoes (2,000), 봄 세일/러닝화 (9,000), 봄 세일/운동화 (6,000)
SAMPLE_ROWS: list[list[Any]] = [
    ["봄 세일", "운동화", 10000, 4000, 500, 20],
    ["봄 세일", "러닝화", 9000, 0, 300, 12],
    ["봄 세일", "-", 5000, 1000, 100, 3],
    ["봄 세일", "샌들", 2000, 8000, 80, 2],
    ["Brand", "shoes", "3,000원", "1,000", 40, 1],
    ["Brand", "boots", 0, 0, 10, 0],
]


def make_row(
    campaign: str,
    keyword: str,
    spend: Any = 0,
    sales: Any = 0,
    impressions: Any = 0,
    clicks: Any = 0,
) -> dict[str, Any]:
    return dict(zip(HEADERS, [campaign, keyword, spend, sales, impressions, clicks]))


def write_report_xlsx(path: Path, rows: list[list[Any]], headers: list[str] = HEADERS) -> Path:
    wb = Workbook()
    ws = wb.active
    assert ws is not None
    ws.append(headers)
    for row in rows:
        ws.append(row)
    wb.save(path)
    return path


@pytest.fixture
def sample_rows() -> list[dict[str, Any]]:
    return [dict(zip(HEADERS, row)) for row in SAMPLE_ROWS]


@pytest.fixture
def report_xlsx(tmp_path: Path) -> Path:
    return write_report_xlsx(tmp_path / "report.xlsx", SAMPLE_ROWS)
