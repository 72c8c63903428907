"""I/O helpers — load the uploaded report, write JSON + text artifacts."""

from __future__ import annotations

import json
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, cast

import pandas as pd

EXCEL_SUFFIXES = (".xlsx", ".xlsm", ".xltx", ".xltm")


class ReportParseError(ValueError):
    """The uploaded file could not be decoded as a spreadsheet."""


class ClipboardError(OSError):
    """The keyword list could not be handed to its destination."""


# ── Loading ──────────────────────────────────────────────────────


def _read_csv(path: Path) -> pd.DataFrame:
    last_exc: Exception | None = None
    for encoding in ("utf-8-sig", "utf-8", "cp949", "latin-1"):
        try:
            return pd.read_csv(
                path,
                dtype="string",
                sep=None,
                engine="python",
                encoding=encoding,
                encoding_errors="strict",
                keep_default_na=False,
            )
        except (UnicodeDecodeError, pd.errors.ParserError) as exc:
            last_exc = exc
    raise ReportParseError(f"Could not read CSV {path} (decode or parse failed)") from last_exc


def load_table(path: Path) -> pd.DataFrame:
    """Load the first sheet of a CSV or Excel report as a raw DataFrame.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ReportParseError
        If the extension is not supported or the file cannot be decoded.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".csv":
        return _read_csv(path)

    if suffix in EXCEL_SUFFIXES or suffix == ".xls":
        engine = "xlrd" if suffix == ".xls" else "openpyxl"
        read_excel = cast(Callable[..., pd.DataFrame], getattr(pd, "read_excel"))
        try:
            return read_excel(path, sheet_name=0, engine=engine, dtype=object)
        except ImportError as exc:
            raise ReportParseError(
                "Unsupported .xls input unless 'xlrd' is installed. "
                "Either convert to .xlsx or add dependency: pip install xlrd"
            ) from exc
        except Exception as exc:
            raise ReportParseError(f"Could not read spreadsheet {path}: {exc}") from exc

    raise ReportParseError(f"Unsupported file type: {suffix!r}. Use .xlsx, .xls, or .csv")


def rows_from_frame(df: pd.DataFrame) -> list[dict[str, Any]]:
    """Turn a raw DataFrame into header -> cell mappings; blank cells become ``""``."""
    df = df.astype(object)
    df = df.where(df.notna(), "")
    df.columns = pd.Index([str(c) for c in df.columns])
    return cast(list[dict[str, Any]], df.to_dict(orient="records"))


def load_rows(path: Path) -> list[dict[str, Any]]:
    """Load *path* and return its data rows as raw mappings."""
    return rows_from_frame(load_table(path))


# ── Writing ──────────────────────────────────────────────────────


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    item = getattr(obj, "item", None)
    if callable(item):
        converted = item()
        if isinstance(converted, (str, int, float, bool)) or converted is None:
            return converted
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _write_atomic(path: Path, payload: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(payload, encoding="utf-8")
    tmp_path.replace(path)
    return path


def write_json(path: Path, data: Any) -> Path:
    """Write *data* as pretty-printed JSON to *path* (atomic + deterministic)."""
    payload = json.dumps(
        data,
        indent=2,
        sort_keys=True,
        ensure_ascii=False,
        default=_json_default,
    ) + "\n"
    return _write_atomic(Path(path), payload)


def write_keyword_list(path: Path, text: str) -> Path:
    """Write the clipboard-ready keyword list to *path*.

    Raises
    ------
    ClipboardError
        If the destination cannot be written.
    """
    try:
        return _write_atomic(Path(path), text + "\n" if text else "")
    except OSError as exc:
        raise ClipboardError(f"Could not write keyword list to {path}: {exc}") from exc
