"""Evidence grounding against the current window and the collected store."""

from __future__ import annotations

import logging

from docscan.cursor import Window
from docscan.models import EvidenceItem, Item
from docscan.pointer import pointer_key, try_parse_pointer

log = logging.getLogger(__name__)


def window_lookup(window: Window) -> dict[str, Item]:
    return {item.label.lower(): item for item in window.items}


def ground_evidence_in_window(
    evidence: list[EvidenceItem],
    window: Window,
) -> list[EvidenceItem]:
    """Keep evidence whose pointer is in ``window``; excerpts become the item's markdown."""
    if not evidence:
        return []

    lookup = window_lookup(window)
    grounded: list[EvidenceItem] = []
    for candidate in evidence:
        pointer = try_parse_pointer(candidate.pointer)
        item = lookup.get(pointer.canonical().lower()) if pointer else None
        if item is None:
            log.warning("evidence_dropped: pointer=%r not in current window", candidate.pointer)
            continue
        grounded.append(
            EvidenceItem(
                pointer=item.label,
                excerpt=item.markdown,
                rationale=candidate.rationale,
            )
        )
    return grounded


def find_evidence(evidence: tuple[EvidenceItem, ...], pointer: str | None) -> EvidenceItem | None:
    if not pointer or not pointer.strip():
        return None
    key = pointer_key(pointer)
    for item in evidence:
        if pointer_key(item.pointer) == key:
            return item
    return None
