"""Immutable evidence store and the scan state threaded through the loop."""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass, replace

from docscan.models import EvidenceItem
from docscan.pointer import pointer_key


def merge_evidence(
    existing: tuple[EvidenceItem, ...],
    new_items: Iterable[EvidenceItem],
    capacity: int,
) -> tuple[EvidenceItem, ...]:
    """Append unseen pointers and keep the most recent ``capacity`` items.

    A pointer already in the store is never replaced; the first finding wins.
    """
    merged = list(existing)
    seen = {pointer_key(item.pointer) for item in merged}
    for item in new_items:
        key = pointer_key(item.pointer)
        if key in seen:
            continue
        seen.add(key)
        merged.append(item)

    if capacity <= 0:
        return ()
    if len(merged) > capacity:
        merged = merged[-capacity:]
    return tuple(merged)


@dataclass(frozen=True)
class ScanState:
    evidence: tuple[EvidenceItem, ...] = ()
    summary: str | None = None

    def with_evidence(self, new_items: Iterable[EvidenceItem], capacity: int) -> ScanState:
        return replace(self, evidence=merge_evidence(self.evidence, new_items, capacity))

    def with_summary(self, summary: str | None) -> ScanState:
        if not summary or not summary.strip():
            return self
        return replace(self, summary=summary)

    def recent_pointers(self, limit: int) -> list[str]:
        tail = self.evidence[-limit:] if limit > 0 else ()
        pointers: list[str] = []
        for item in tail:
            if item.pointer and item.pointer not in pointers:
                pointers.append(item.pointer)
        return pointers


def serialize_evidence(evidence: Iterable[EvidenceItem]) -> str:
    return json.dumps(
        [item.model_dump() for item in evidence],
        ensure_ascii=False,
        separators=(",", ":"),
    )
