"""CLI entry point for keyword-sweep."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table as RichTable

from keyword_sweep import CANONICAL_FIELDS, __version__
from keyword_sweep.io import ClipboardError, ReportParseError, load_rows, write_json, write_keyword_list
from keyword_sweep.models import RunManifest, SortDirection, SortField
from keyword_sweep.qc import write_ingest_report
from keyword_sweep.report import format_int, format_pct, write_workbook
from keyword_sweep.session import ReviewSession
from keyword_sweep.utils import sha256_file, utcnow_iso

app = typer.Typer(
    name="ksweep",
    help="keyword-sweep — Pick money-losing keywords out of an ad report.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()

PARSE_ERROR_HINT = "Check that the file is an original monthly ad report (.xlsx)."


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


def _printer(quiet: bool) -> Callable[..., None]:
    return _noop if quiet else console.print


def _err(msg: str) -> None:
    console.print(f"[red]x[/red] {escape(msg)}")


def _warn(msg: str) -> None:
    console.print(f"  [yellow]![/yellow] {escape(msg)}")


# ── Helpers ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"keyword-sweep v{__version__}")
        raise typer.Exit()


def _split_pair(item: str, option: str, expected: str) -> tuple[str, str]:
    if "=" not in item:
        raise ValueError(f"Invalid {option} value: {item!r}  (expected {expected})")
    left, right = item.split("=", 1)
    left, right = left.strip(), right.strip()
    if not left or not right:
        raise ValueError(f"{option} entries must have non-empty parts ({expected})")
    return left, right


def _parse_alias_map(raw: list[str] | None) -> dict[str, list[str]]:
    """Parse ``--alias field=Header`` pairs into ``{field: [headers]}``."""
    aliases: dict[str, list[str]] = {}
    for item in raw or []:
        field_name, header = _split_pair(item, "--alias", "field=Header")
        if field_name not in CANONICAL_FIELDS:
            raise ValueError(
                f"Unknown field {field_name!r} in --alias. "
                f"Use one of: {', '.join(CANONICAL_FIELDS)}"
            )
        aliases.setdefault(field_name, []).append(header)
    return aliases


def _load_profile_map(profile: Path | None) -> list[str]:
    """Return list of ``field=Header`` strings from a profile file."""
    if not profile:
        return []
    if not profile.exists():
        raise ValueError(f"Profile not found: {profile} (expected lines like spend=집행금액)")
    if profile.is_dir():
        raise ValueError(f"Profile is a directory, not a file: {profile}")
    try:
        text = profile.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read profile {profile}: {exc}") from exc

    lines: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        lines.append(stripped)
    return lines


def _parse_keep(raw: list[str] | None) -> list[tuple[str, str]]:
    return [_split_pair(item, "--keep", "CAMPAIGN=KEYWORD") for item in raw or []]


def _open_session(
    input_file: Path,
    *,
    aliases: list[str] | None,
    profile: Path | None,
    keep: list[str] | None,
    campaign: str | None,
    sort: SortField | None,
    desc: bool,
    quiet: bool,
    on_parse_error: Callable[[str], None] | None = None,
) -> ReviewSession:
    """Load *input_file*, apply operator decisions and return the session."""
    echo = _printer(quiet)
    try:
        alias_map = _parse_alias_map(_load_profile_map(profile) + (aliases or []))
        keep_pairs = _parse_keep(keep)
        if desc and sort is None:
            raise ValueError("--desc needs --sort to name the column to sort by")
    except ValueError as exc:
        _err(str(exc))
        raise typer.Exit(code=2)

    session = ReviewSession(aliases=alias_map)

    echo("[blue]>[/blue] Loading report …")
    try:
        rows = load_rows(input_file)
    except (FileNotFoundError, ReportParseError, OSError) as exc:
        if on_parse_error is not None:
            on_parse_error(str(exc))
        _err(str(exc))
        console.print(f"  {PARSE_ERROR_HINT}")
        raise typer.Exit(code=2)

    report = session.upload(rows, input_file.name)
    echo(
        f"  {report.rows_in} rows, {report.records} keywords, "
        f"{report.candidates} losing keywords in {len(session.campaigns)} campaigns"
    )
    if not quiet:
        for w in report.warnings:
            _warn(w)

    for campaign_name, keyword in keep_pairs:
        matches = session.find(campaign_name, keyword)
        if not matches and not quiet:
            _warn(f"--keep {campaign_name}={keyword} matched no candidate")
        for record in matches:
            session.remove(record)

    if campaign is not None:
        try:
            session.set_active_campaign(campaign)
        except ValueError as exc:
            _err(str(exc))
            console.print(f"  Campaigns: {escape(', '.join(session.campaigns) or 'none')}")
            raise typer.Exit(code=2)

    if sort is not None:
        session.set_sort(sort, SortDirection.desc if desc else SortDirection.asc)

    return session


def _write_manifest(
    out_dir: Path,
    input_file: Path,
    created_at: str,
    session: ReviewSession | None,
    *,
    output_path: Path | None = None,
    status: str = "success",
    error_message: str = "",
) -> Path:
    sha256 = ""
    try:
        sha256 = sha256_file(input_file)
    except OSError:
        pass

    kept = session.kept() if session else []
    removed = session.removed() if session else []
    manifest = RunManifest(
        version=__version__,
        input_path=str(input_file.resolve()),
        output_path=str(output_path.resolve()) if output_path else "",
        created_at_utc=created_at,
        sha256=sha256,
        rows_in=session.report.rows_in if session else 0,
        candidates=len(session.candidates) if session else 0,
        kept=len(kept),
        removed=len(removed),
        total_savings=session.total_savings() if session else 0.0,
        status=status,
        error_message=error_message,
    )
    return write_json(out_dir / "run_manifest.json", manifest.to_dict())


def _print_review(session: ReviewSession) -> None:
    tabs = RichTable(title="Campaigns", show_lines=False)
    tabs.add_column("Campaign", style="bold")
    tabs.add_column("Remaining", justify="right")
    for name, count in session.remaining_counts().items():
        marker = " *" if name == session.active_campaign else ""
        tabs.add_row(escape(name) + marker, str(count))
    console.print(tabs)

    rows = session.visible_rows()
    title = f"Exclusion candidates — {escape(session.active_campaign or 'N/A')}"
    tbl = RichTable(title=title, show_lines=False)
    tbl.add_column("키워드", style="bold")
    tbl.add_column("손실비용", justify="right", style="red")
    for label in ("광고비", "총전환매출액(14일)", "노출수", "클릭수", "ROAS(%)"):
        tbl.add_column(label, justify="right")
    for r in rows:
        tbl.add_row(
            escape(r.keyword),
            format_int(r.loss),
            format_int(r.spend),
            format_int(r.sales_14d),
            format_int(r.impressions),
            format_int(r.clicks),
            f"{format_pct(r.roas)}%",
        )
    if not rows:
        tbl.add_row("[dim]No keywords to exclude in this campaign[/dim]", "", "", "", "", "", "")
    console.print(tbl)
    if session.sort_state is not None:
        console.print(
            f"  Sorted by {session.sort_state.field.value} ({session.sort_state.direction.value})"
        )

    removed = session.removed()
    if removed:
        console.print(f"  Kept by operator ({len(removed)}):")
        for r in removed:
            console.print(f"    - {escape(r.campaign)}: {escape(r.keyword)}")

    kept = session.kept()
    console.print(Panel(
        f"[bold]{format_int(session.total_savings())}[/bold] 원 "
        f"across {len(kept)} excluded keywords",
        title="Estimated Savings", border_style="blue",
    ))


# ── Callbacks ────────────────────────────────────────────────────


@app.callback()
def main(
    version: bool | None = typer.Option(
        None, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Log session transitions.",
    ),
) -> None:
    """keyword-sweep CLI."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )


_INPUT_OPTION = typer.Option(
    ..., "--input", "-i",
    help="Path to the ad report (.xlsx, .xls or .csv).",
    exists=True, readable=True,
)
_ALIAS_OPTION = typer.Option(
    None, "--alias", "-a",
    help="Extra header alias: field=Header. E.g. --alias spend=집행금액",
)
_PROFILE_OPTION = typer.Option(
    None, "--profile",
    help="Profile file containing header aliases (field=Header lines).",
)
_KEEP_OPTION = typer.Option(
    None, "--keep", "-k",
    help="Keep spending on a keyword: CAMPAIGN=KEYWORD (removes it from exclusion).",
)
_CAMPAIGN_OPTION = typer.Option(
    None, "--campaign", "-c",
    help="Campaign tab to show (default: first campaign in the report).",
)
_SORT_OPTION = typer.Option(
    None, "--sort", "-s",
    help="Column to sort the campaign's keywords by.",
)
_DESC_OPTION = typer.Option(
    False, "--desc",
    help="Sort descending instead of ascending.",
)
_QUIET_OPTION = typer.Option(
    False, "--quiet", "-q",
    help="Suppress informational output.",
)


# ── review command ───────────────────────────────────────────────


@app.command()
def review(
    input_file: Path = _INPUT_OPTION,
    aliases: list[str] | None = _ALIAS_OPTION,
    profile: Path | None = _PROFILE_OPTION,
    keep: list[str] | None = _KEEP_OPTION,
    campaign: str | None = _CAMPAIGN_OPTION,
    sort: SortField | None = _SORT_OPTION,
    desc: bool = _DESC_OPTION,
    quiet: bool = _QUIET_OPTION,
) -> None:
    """Show the losing keywords of one campaign and the projected savings."""
    session = _open_session(
        input_file, aliases=aliases, profile=profile, keep=keep,
        campaign=campaign, sort=sort, desc=desc, quiet=quiet,
    )
    if not session.campaigns:
        console.print("No keyword has ROAS below 100% with a positive loss.")
        return
    _print_review(session)


# ── keywords command ─────────────────────────────────────────────


@app.command()
def keywords(
    input_file: Path = _INPUT_OPTION,
    output: Path | None = typer.Option(
        None, "--output", "-o",
        help="Write the keyword list to this file instead of stdout.",
    ),
    aliases: list[str] | None = _ALIAS_OPTION,
    profile: Path | None = _PROFILE_OPTION,
    keep: list[str] | None = _KEEP_OPTION,
    campaign: str | None = _CAMPAIGN_OPTION,
    sort: SortField | None = _SORT_OPTION,
    desc: bool = _DESC_OPTION,
) -> None:
    """Print the active campaign's keywords, one per line, ready to paste."""
    session = _open_session(
        input_file, aliases=aliases, profile=profile, keep=keep,
        campaign=campaign, sort=sort, desc=desc, quiet=True,
    )
    text = session.clipboard_text()
    if output is None:
        if text:
            typer.echo(text)
        return

    try:
        path = write_keyword_list(output, text)
    except ClipboardError as exc:
        _err(str(exc))
        raise typer.Exit(code=3)
    count = len(session.visible_rows())
    console.print(
        f"[green]Copied[/green] {count} keywords of {escape(session.active_campaign or 'N/A')} -> {path}"
    )


# ── export command ───────────────────────────────────────────────


@app.command()
def export(
    input_file: Path = _INPUT_OPTION,
    out_dir: Path = typer.Option(
        Path("output"), "--out-dir", "-o",
        help="Output directory for the edited workbook + ingest report + manifest.",
    ),
    aliases: list[str] | None = _ALIAS_OPTION,
    profile: Path | None = _PROFILE_OPTION,
    keep: list[str] | None = _KEEP_OPTION,
    quiet: bool = _QUIET_OPTION,
) -> None:
    """Write ``<name>_edited.xlsx`` with kept, removed and raw-numeric sheets."""
    echo = _printer(quiet)
    created_at = utcnow_iso()
    out_dir.mkdir(parents=True, exist_ok=True)

    if not quiet:
        console.print(Panel(
            f"[bold]keyword-sweep[/bold] v{__version__}\n"
            f"Input:  {input_file}\nOutput: {out_dir}",
            title="Export Start", border_style="blue",
        ))

    def _on_parse_error(message: str) -> None:
        manifest_path = _write_manifest(
            out_dir, input_file, created_at, None, status="failed", error_message=message,
        )
        console.print(f"  Manifest -> {manifest_path}")

    session = _open_session(
        input_file, aliases=aliases, profile=profile, keep=keep,
        campaign=None, sort=None, desc=False, quiet=quiet,
        on_parse_error=_on_parse_error,
    )

    try:
        report_path = write_ingest_report(out_dir, session.report)
        echo(f"  Ingest report -> {report_path}")

        echo(f"[blue]>[/blue] Writing {session.output_filename()} …")
        workbook_path = write_workbook(out_dir, session.output_filename(), session.export_sheets())
        echo(f"  Workbook -> {workbook_path}")

        manifest_path = _write_manifest(
            out_dir, input_file, created_at, session, output_path=workbook_path,
        )
        echo(f"  Manifest -> {manifest_path}")
    except OSError as exc:
        message = f"Could not write export: {exc}"
        _err(message)
        try:
            _write_manifest(
                out_dir, input_file, created_at, session, status="failed", error_message=message,
            )
        except OSError as manifest_exc:
            _err(f"Could not write failure manifest: {manifest_exc}")
        raise typer.Exit(code=1)

    if not quiet:
        console.print(Panel(
            f"[green]Done[/green] — {len(session.kept())} excluded, "
            f"{len(session.removed())} kept, savings {format_int(session.total_savings())} 원",
            title="Export Complete", border_style="green",
        ))
