"""Review session — the single owner of upload, ledger, cursor and sort state."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence

from keyword_sweep.ledger import ExclusionLedger, remaining_by_campaign, total_savings
from keyword_sweep.models import IngestReport, KeywordRecord, SortDirection, SortField, SortState
from keyword_sweep.pipeline import RawRow, ingest, merge_aliases, sort_records
from keyword_sweep.report import ExportSheets, build_export_sheets, output_filename

logger = logging.getLogger(__name__)


class ReviewSession:
    """Explicit state for one operator reviewing one uploaded report.

    Transitions are ``upload``, ``remove``, ``restore``,
    ``set_active_campaign`` and ``set_sort``. Everything else is a view
    recomputed from the candidates and the ledger on each call.
    """

    def __init__(self, aliases: Mapping[str, Sequence[str]] | None = None) -> None:
        self.aliases = merge_aliases(aliases)
        self.file_name: str | None = None
        self.report = IngestReport()
        self.ledger = ExclusionLedger()
        self.active_campaign: str | None = None
        self.sort_state: SortState | None = None
        self._candidates: tuple[KeywordRecord, ...] = ()
        self._campaigns: tuple[str, ...] = ()
        self._by_id: dict[str, KeywordRecord] = {}

    # ── Transitions ──────────────────────────────────────────────

    def upload(
        self,
        rows: Sequence[RawRow],
        file_name: str | None = None,
        *,
        uploaded_at_ns: int | None = None,
    ) -> IngestReport:
        """Replace all session state with a new report.

        The new state is built completely before anything is swapped in, so
        a failure leaves the previous upload untouched.
        """
        if uploaded_at_ns is None:
            uploaded_at_ns = time.time_ns()
        candidates, campaigns, report = ingest(rows, uploaded_at_ns, self.aliases)

        self._candidates = tuple(candidates)
        self._campaigns = tuple(campaigns)
        self._by_id = {r.record_id: r for r in candidates}
        self.report = report
        self.file_name = file_name
        self.ledger = ExclusionLedger()
        self.sort_state = None
        self.active_campaign = campaigns[0] if campaigns else None
        logger.debug(
            "Uploaded %s: %d rows, %d candidates in %d campaigns",
            file_name or "<rows>", report.rows_in, report.candidates, len(campaigns),
        )
        return report

    def _require_candidate(self, record: KeywordRecord) -> KeywordRecord:
        known = self._by_id.get(record.record_id)
        if known is None or known != record:
            raise ValueError(f"Not a candidate of the current upload: {record.record_id!r}")
        return known

    def remove(self, record: KeywordRecord) -> bool:
        """Take *record* out of the exclusion recommendation (idempotent)."""
        changed = self.ledger.remove(self._require_candidate(record))
        if changed:
            logger.debug("Removed %s from %s", record.keyword, record.campaign)
        return changed

    def restore(self, record: KeywordRecord) -> bool:
        """Return *record* to the exclusion recommendation (no-op if not removed)."""
        changed = self.ledger.restore(self._require_candidate(record))
        if changed:
            logger.debug("Restored %s in %s", record.keyword, record.campaign)
        return changed

    def set_active_campaign(self, campaign: str) -> None:
        """Switch tabs. Sort state is global and carries over."""
        if campaign not in self._campaigns:
            raise ValueError(f"Unknown campaign: {campaign!r}")
        self.active_campaign = campaign

    def set_sort(
        self, sort_field: SortField | str, direction: SortDirection | str | None = None
    ) -> SortState:
        """Sort the visible rows by *sort_field*.

        Without *direction* this behaves like a header click: the same
        column flips direction, a new column starts ascending.
        """
        sort_field = SortField(sort_field)
        if direction is not None:
            self.sort_state = SortState(sort_field, SortDirection(direction))
        elif self.sort_state is None:
            self.sort_state = SortState(sort_field)
        else:
            self.sort_state = self.sort_state.toggled(sort_field)
        return self.sort_state

    # ── Views ────────────────────────────────────────────────────

    @property
    def candidates(self) -> tuple[KeywordRecord, ...]:
        return self._candidates

    @property
    def campaigns(self) -> tuple[str, ...]:
        return self._campaigns

    def find(self, campaign: str, keyword: str) -> list[KeywordRecord]:
        return [r for r in self._candidates if r.campaign == campaign and r.keyword == keyword]

    def kept(self) -> list[KeywordRecord]:
        return self.ledger.kept(self._candidates)

    def removed(self) -> list[KeywordRecord]:
        return self.ledger.removed(self._candidates)

    def remaining_counts(self) -> dict[str, int]:
        return remaining_by_campaign(self.kept(), self._campaigns)

    def remaining_count(self, campaign: str) -> int:
        return self.remaining_counts().get(campaign, 0)

    def total_savings(self) -> float:
        return total_savings(self.kept())

    def visible_rows(self) -> list[KeywordRecord]:
        """Kept rows of the active campaign in display order."""
        rows = [r for r in self.kept() if r.campaign == self.active_campaign]
        return sort_records(rows, self.sort_state)

    def clipboard_text(self) -> str:
        return "\n".join(r.keyword for r in self.visible_rows())

    def export_sheets(self) -> ExportSheets:
        return build_export_sheets(self.kept(), self.removed())

    def output_filename(self) -> str:
        return output_filename(self.file_name)
