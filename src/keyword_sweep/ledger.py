"""Exclusion ledger — per-campaign soft delete/restore over the candidate list."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from keyword_sweep.models import KeywordRecord


class ExclusionLedger:
    """Record ids the operator pulled out of the exclusion recommendation.

    Ids are grouped by campaign, in the order campaigns first received a
    removal and, within a campaign, in removal order. The candidate list
    itself is never touched; every view is derived from it on demand.
    """

    def __init__(self) -> None:
        self._removed: dict[str, list[str]] = {}

    def __contains__(self, record: object) -> bool:
        if not isinstance(record, KeywordRecord):
            return False
        return record.record_id in self._removed.get(record.campaign, ())

    def __len__(self) -> int:
        return sum(len(ids) for ids in self._removed.values())

    def remove(self, record: KeywordRecord) -> bool:
        """Mark *record* as kept by the operator. Returns False if already marked."""
        ids = self._removed.setdefault(record.campaign, [])
        if record.record_id in ids:
            return False
        ids.append(record.record_id)
        return True

    def restore(self, record: KeywordRecord) -> bool:
        """Put *record* back into the exclusion set. Returns False if it was not removed."""
        ids = self._removed.get(record.campaign)
        if not ids or record.record_id not in ids:
            return False
        ids.remove(record.record_id)
        return True

    def clear(self) -> None:
        self._removed.clear()

    def removed_ids(self, campaign: str) -> list[str]:
        return list(self._removed.get(campaign, ()))

    def kept(self, candidates: Iterable[KeywordRecord]) -> list[KeywordRecord]:
        """Candidates still recommended for exclusion, in candidate order."""
        return [r for r in candidates if r not in self]

    def removed(self, candidates: Sequence[KeywordRecord]) -> list[KeywordRecord]:
        """Candidates the operator overrode, flattened across campaigns."""
        by_id = {r.record_id: r for r in candidates}
        return [
            by_id[record_id]
            for ids in self._removed.values()
            for record_id in ids
            if record_id in by_id
        ]


# ── Aggregates ───────────────────────────────────────────────────


def total_savings(kept: Iterable[KeywordRecord]) -> float:
    """Projected savings: total loss over every kept record, all campaigns."""
    return float(sum(r.loss for r in kept))


def remaining_by_campaign(
    kept: Iterable[KeywordRecord], campaigns: Iterable[str]
) -> dict[str, int]:
    """Kept-record count per campaign, zero for campaigns with nothing left."""
    counts = dict.fromkeys(campaigns, 0)
    for record in kept:
        counts[record.campaign] = counts.get(record.campaign, 0) + 1
    return counts
