"""Recover structured decisions from free-form model output.

Model text is not guaranteed to be clean JSON: it may carry prose, code fences,
several JSON objects or raw control characters inside string literals. The
extractor scans for every balanced ``{...}`` block, parses each one on its own
and picks a single decision from the ones that survive.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from typing import Any

from docscan.models import AdjudicatorDecision, EvidenceItem, ScannerDecision

log = logging.getLogger(__name__)

_CONTROL_ESCAPES = {"\n": "\\n", "\r": "\\r", "\t": "\\t"}
_SCANNER_VERDICTS = {"continue", "done", "not_found"}
_LEGACY_VERDICTS = {"stop": "done"}
_ADJUDICATOR_TERMINAL = {"success", "not_found"}


class MalformedResponseError(ValueError):
    """Raised when no JSON object in a model response can be parsed."""

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw


def _balanced_end(text: str, start: int) -> int:
    """Index of the brace closing the object opened at ``start``, or -1."""
    depth = 0
    in_string = False
    escaped = False
    for position in range(start, len(text)):
        char = text[position]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return position
    return -1


def escape_control_chars(candidate: str) -> str:
    """Escape raw newlines, carriage returns and tabs inside string literals only."""
    out: list[str] = []
    in_string = False
    escaped = False
    for char in candidate:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            elif char in _CONTROL_ESCAPES:
                out.append(_CONTROL_ESCAPES[char])
                continue
        elif char == '"':
            in_string = True
        out.append(char)
    return "".join(out)


def parse_candidate(candidate: str) -> dict[str, Any] | None:
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError:
        sanitized = escape_control_chars(candidate)
        if sanitized == candidate:
            return None
        try:
            payload = json.loads(sanitized)
        except json.JSONDecodeError:
            return None
    return payload if isinstance(payload, dict) else None


def iter_json_candidates(text: str) -> Iterator[tuple[str, dict[str, Any]]]:
    """Yield parsed ``{...}`` objects in document order.

    A balanced span that does not parse is not skipped whole: scanning resumes
    just past its opening brace so objects nested inside it are still found.
    """
    position = 0
    while True:
        start = text.find("{", position)
        if start < 0:
            return
        end = _balanced_end(text, start)
        if end < 0:
            # Unbalanced opener, usually a stray brace in prose.
            position = start + 1
            continue
        candidate = text[start : end + 1]
        payload = parse_candidate(candidate)
        if payload is None:
            position = start + 1
            continue
        yield candidate, payload
        position = end + 1


def parse_all(text: str) -> list[tuple[str, dict[str, Any]]]:
    return list(iter_json_candidates(text or ""))


def _str_field(payload: dict[str, Any], *names: str) -> str | None:
    for name in names:
        value = payload.get(name)
        if isinstance(value, str):
            return value
    return None


def normalize_decision(raw: str | None) -> str:
    value = (raw or "").strip().lower()
    value = _LEGACY_VERDICTS.get(value, value)
    if value in _SCANNER_VERDICTS:
        return value
    log.debug("unknown_decision: %r treated as continue", raw)
    return "continue"


def _parse_evidence(value: Any) -> list[EvidenceItem]:
    if not isinstance(value, list):
        return []
    items: list[EvidenceItem] = []
    for entry in value:
        if not isinstance(entry, dict):
            continue
        pointer = entry.get("pointer")
        if not isinstance(pointer, str):
            continue
        items.append(
            EvidenceItem(
                pointer=pointer,
                excerpt=_str_field(entry, "excerpt", "markdown", "text"),
                rationale=_str_field(entry, "reason", "rationale"),
            )
        )
    return items


def _to_scanner_decision(candidate: str, payload: dict[str, Any]) -> ScannerDecision | None:
    raw_decision = _str_field(payload, "decision")
    if not raw_decision or not raw_decision.strip():
        raw_decision = _str_field(payload, "action")
    if not raw_decision or not raw_decision.strip():
        return None

    evidence_field = payload.get("newEvidence", payload.get("evidence"))
    return ScannerDecision(
        decision=normalize_decision(raw_decision),
        raw_decision=raw_decision,
        new_evidence=_parse_evidence(evidence_field),
        progress=_str_field(payload, "progress"),
        need_more_context=payload.get("needMoreContext") is True,
        raw=candidate,
    )


def extract_scanner_decision(text: str) -> ScannerDecision:
    """Pick one scanner decision, preferring the first terminal one."""
    decisions = [
        decision
        for candidate, payload in parse_all(text)
        if (decision := _to_scanner_decision(candidate, payload)) is not None
    ]
    if not decisions:
        raise MalformedResponseError("Scanner response contained no parseable decision.", raw=text)

    multiple = len(decisions) > 1
    if multiple:
        log.warning("multiple_candidates: %d scanner decisions in one response", len(decisions))
    selected = next((d for d in decisions if d.is_terminal), decisions[0])
    return selected.model_copy(update={"multiple_candidates": multiple})


def _to_adjudicator_decision(candidate: str, payload: dict[str, Any]) -> AdjudicatorDecision | None:
    decision = _str_field(payload, "decision")
    if not decision or not decision.strip():
        return None
    return AdjudicatorDecision(
        decision=decision.strip().lower(),
        chosen_pointer=_str_field(payload, "semanticPointerFrom", "chosenPointer", "pointer"),
        excerpt=_str_field(payload, "excerpt"),
        markdown=_str_field(payload, "markdown"),
        rationale=_str_field(payload, "whyThis", "rationale", "reason"),
        summary=_str_field(payload, "summary"),
        raw=candidate,
    )


def extract_adjudicator_decision(text: str) -> AdjudicatorDecision:
    decisions = [
        decision
        for candidate, payload in parse_all(text)
        if (decision := _to_adjudicator_decision(candidate, payload)) is not None
    ]
    if not decisions:
        raise MalformedResponseError("Adjudicator response contained no parseable decision.", raw=text)

    multiple = len(decisions) > 1
    selected = next((d for d in decisions if d.decision in _ADJUDICATOR_TERMINAL), decisions[0])
    return selected.model_copy(update={"multiple_candidates": multiple})
