"""Excel export — builds the three hand-off sheets and writes ``*_edited.xlsx``."""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from keyword_sweep.models import KeywordRecord

# ── Sheet contract ───────────────────────────────────────────────

KEPT_SHEET = "제외키워드(보기)"
REMOVED_SHEET = "삭제목록(보기)"
NUMERIC_SHEET = "NumericRaw"

VIEW_COLUMNS: list[str] = [
    "캠페인명",
    "키워드",
    "손실비용",
    "광고비",
    "총전환매출액(14일)",
    "노출수",
    "클릭수",
    "ROAS(%)",
]
NUMERIC_COLUMNS: list[str] = [
    "캠페인명",
    "키워드",
    "손실비용",
    "광고비",
    "총전환매출액_14일",
    "노출수",
    "클릭수",
    "ROAS_배수",
]

DEFAULT_BASENAME = "제외키워드"
OUTPUT_SUFFIX = "_edited.xlsx"
_INPUT_EXT_RE = re.compile(r"\.(xlsx|xls|csv)$", re.IGNORECASE)

# ── Style constants ──────────────────────────────────────────────

HEADER_FONT = Font(name="Calibri", bold=True, size=11, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="2F5496", end_color="2F5496", fill_type="solid")
HEADER_ALIGN = Alignment(horizontal="center", vertical="center", wrap_text=True)

_AUTO_WIDTH_SAMPLE_ROWS = 300


# ── Value formatting ─────────────────────────────────────────────


def format_int(value: float | None) -> str:
    """Round half up and group thousands with commas (ko-KR style)."""
    if value is None or not math.isfinite(value):
        return ""
    return f"{math.floor(value + 0.5):,}"


def format_pct(ratio: float | None) -> str:
    """Render a ratio as percent points with two decimals, without the sign."""
    if ratio is None or not math.isfinite(ratio):
        return ""
    return f"{ratio * 100:.2f}"


def _view_row(r: KeywordRecord) -> list[Any]:
    return [
        r.campaign,
        r.keyword,
        format_int(r.loss),
        format_int(r.spend),
        format_int(r.sales_14d),
        format_int(r.impressions),
        format_int(r.clicks),
        format_pct(r.roas),
    ]


def _numeric_row(r: KeywordRecord) -> list[Any]:
    return [r.campaign, r.keyword, r.loss, r.spend, r.sales_14d, r.impressions, r.clicks, r.roas]


def view_frame(records: Iterable[KeywordRecord]) -> pd.DataFrame:
    return pd.DataFrame([_view_row(r) for r in records], columns=VIEW_COLUMNS, dtype=object)


def numeric_frame(records: Iterable[KeywordRecord]) -> pd.DataFrame:
    return pd.DataFrame([_numeric_row(r) for r in records], columns=NUMERIC_COLUMNS)


@dataclass(frozen=True)
class ExportSheets:
    kept_view: pd.DataFrame
    removed_view: pd.DataFrame
    numeric_raw: pd.DataFrame

    def items(self) -> Iterator[tuple[str, pd.DataFrame]]:
        yield KEPT_SHEET, self.kept_view
        yield REMOVED_SHEET, self.removed_view
        yield NUMERIC_SHEET, self.numeric_raw


def build_export_sheets(
    kept: Iterable[KeywordRecord], removed: Iterable[KeywordRecord]
) -> ExportSheets:
    """Render kept + removed views into the three export sheets."""
    kept = list(kept)
    return ExportSheets(
        kept_view=view_frame(kept),
        removed_view=view_frame(removed),
        numeric_raw=numeric_frame(kept),
    )


def output_filename(input_name: str | None) -> str:
    """``report.xlsx`` -> ``report_edited.xlsx``; a fixed name when nothing was uploaded."""
    base = _INPUT_EXT_RE.sub("", Path(input_name).name) if input_name else ""
    return f"{base or DEFAULT_BASENAME}{OUTPUT_SUFFIX}"


# ── Helpers ──────────────────────────────────────────────────────


def _style_header(ws: Worksheet, ncols: int) -> None:
    for c in range(1, ncols + 1):
        cell = ws.cell(row=1, column=c)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGN


def _auto_width(ws: Worksheet) -> None:
    max_row = min(ws.max_row, _AUTO_WIDTH_SAMPLE_ROWS + 1)  # include header row
    for c_idx in range(1, ws.max_column + 1):
        letter = get_column_letter(c_idx)
        width = 0
        for row in ws.iter_rows(min_row=1, max_row=max_row, min_col=c_idx, max_col=c_idx):
            cell = row[0]
            width = max(width, len(str(cell.value or "")))
        width += 4
        ws.column_dimensions[letter].width = min(width, 30)


def _excel_value(val: Any) -> Any:
    try:
        if pd.isna(val):
            return None
    except (TypeError, ValueError):
        return val
    item = getattr(val, "item", None)
    if callable(item):
        return item()
    return val


def _df_to_sheet(wb: Workbook, name: str, df: pd.DataFrame) -> None:
    ws = wb.create_sheet(title=name)
    col_names = list(df.columns)

    for c_idx, col_name in enumerate(col_names, 1):
        ws.cell(row=1, column=c_idx, value=col_name)
    for r_idx, row_vals in enumerate(df.itertuples(index=False, name=None), 2):
        for c_idx, val in enumerate(row_vals, 1):
            cell = ws.cell(row=r_idx, column=c_idx, value=_excel_value(val))
            # keyword text such as "=abc" must stay text, not become a formula
            if isinstance(cell.value, str) and cell.value.startswith("="):
                cell.data_type = "s"
    _style_header(ws, len(col_names))
    ws.freeze_panes = "A2"
    if len(df) > 0:
        ws.auto_filter.ref = ws.dimensions
    _auto_width(ws)


# ── Public API ───────────────────────────────────────────────────


def write_workbook(out_dir: Path, filename: str, sheets: ExportSheets) -> Path:
    """Write the three export sheets to ``out_dir / filename`` and return the path."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    report_path = out_dir / filename

    wb = Workbook()
    active_sheet = wb.active
    if active_sheet is not None:
        wb.remove(active_sheet)  # remove default sheet

    for name, df in sheets.items():
        _df_to_sheet(wb, name, df)

    tmp_path = report_path.with_name(report_path.stem + ".tmp.xlsx")
    wb.save(tmp_path)
    tmp_path.replace(report_path)
    return report_path
