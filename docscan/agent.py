"""Scan loop: drive the scanner over cursor windows, then adjudicate the evidence."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from docscan.config import ScanLimits
from docscan.cursor import BoundedCursor, Window
from docscan.evidence import ScanState
from docscan.extraction import (
    MalformedResponseError,
    extract_adjudicator_decision,
    extract_scanner_decision,
)
from docscan.grounding import find_evidence, ground_evidence_in_window
from docscan.llm_client import ChatMessage, LLMClient, default_settings
from docscan.models import Document, ScannerDecision, ScanRequest, ScanResult, StopReason
from docscan.prompts import build_adjudicator_messages, build_scanner_messages

log = logging.getLogger(__name__)


def truncate(text: str | None, max_length: int) -> str | None:
    if not text or len(text) <= max_length:
        return text
    return f"{text[:max_length]}... (+{len(text) - max_length} chars)"


def should_stop(
    decision: str,
    has_more: bool,
    steps_used: int,
    max_steps: int,
) -> tuple[bool, StopReason | None]:
    """Stop on ``done``, on ``not_found`` once nothing remains, or when a budget runs out.

    ``not_found`` while more windows remain is treated as ``continue``.
    """
    if decision == "done":
        return True, "decision_done"
    if decision == "not_found" and not has_more:
        return True, "decision_not_found"
    if not has_more:
        return True, "cursor_complete"
    if steps_used >= max_steps:
        return True, "max_steps"
    return False, None


@dataclass(frozen=True)
class StepOutcome:
    state: ScanState
    last_pointer: str | None
    stop: bool
    stop_reason: StopReason | None


def apply_step(
    state: ScanState,
    window: Window,
    decision: ScannerDecision,
    *,
    steps_used: int,
    max_steps: int,
    limits: ScanLimits,
) -> StepOutcome:
    """Fold one scanner decision into a new state without touching ``state``."""
    grounded = ground_evidence_in_window(decision.new_evidence, window)
    next_state = state.with_evidence(grounded, limits.max_found) if grounded else state
    next_state = next_state.with_summary(truncate(decision.progress, limits.max_summary_length))
    stop, reason = should_stop(decision.decision, window.has_more, steps_used, max_steps)
    return StepOutcome(
        state=next_state,
        last_pointer=window.last_pointer,
        stop=stop,
        stop_reason=reason,
    )


class CursorScanAgent:
    """Scans one document in bounded windows and converges on a single answer."""

    def __init__(
        self,
        document: Document,
        llm: LLMClient,
        limits: ScanLimits | None = None,
    ) -> None:
        self.document = document
        self.llm = llm
        self.limits = limits or ScanLimits()
        self._settings = default_settings(self.limits.response_token_limit)

    def create_cursor(self, start_after: str | None = None) -> BoundedCursor:
        return BoundedCursor(
            self.document.items,
            self.limits.max_elements,
            self.limits.max_bytes,
            start_after=start_after,
        )

    def _generate(self, messages: list[ChatMessage], step: int, phase: str) -> str:
        response = self.llm.generate(messages, self._settings)
        log.info(
            "%s_call: step=%d model=%s tokens_in=%d tokens_out=%d",
            phase,
            step,
            response.model or "<unknown>",
            response.input_tokens,
            response.output_tokens,
        )
        log.debug(
            "%s_raw: step=%d len=%d snippet=%s",
            phase,
            step,
            len(response.text),
            truncate(response.text, 1000),
        )
        return response.text

    def run(
        self,
        request: ScanRequest,
        *,
        cursor: BoundedCursor | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ScanResult:
        max_steps = self.limits.resolve_max_steps(request.max_steps)
        cursor = cursor or self.create_cursor(request.start_after_pointer)
        state = ScanState()
        last_pointer = request.start_after_pointer
        stop_reason: StopReason | None = None
        steps_used = 0

        def cancelled() -> ScanResult:
            log.info("scan_cancelled: steps=%d evidence=%d", steps_used, len(state.evidence))
            return ScanResult(
                success=False,
                summary=state.summary or "cancelled",
                evidence=list(state.evidence),
                last_pointer=last_pointer,
                cursor_complete=cursor.is_complete,
                stop_reason="cancelled",
                steps_used=steps_used,
                incomplete=True,
            )

        while stop_reason is None:
            if cancel_event is not None and cancel_event.is_set():
                return cancelled()

            window = cursor.next_window()
            if window.is_empty:
                stop_reason = "cursor_complete"
                break

            log.debug(
                "%s: count=%d has_more=%s",
                "cursor_batch" if window.has_more else "cursor_batch_complete",
                len(window.items),
                window.has_more,
            )
            messages = build_scanner_messages(
                request,
                state,
                window,
                first=steps_used == 0,
                snapshot_tail=self.limits.snapshot_evidence_limit,
                max_evidence=self.limits.max_found,
            )
            if cancel_event is not None and cancel_event.is_set():
                return cancelled()

            content = self._generate(messages, steps_used, "scanner")
            steps_used += 1
            try:
                decision = extract_scanner_decision(content)
            except MalformedResponseError:
                log.error("scanner_malformed: step=%d", steps_used - 1)
                raise

            log.debug(
                "scanner_parsed: step=%d decision=%s evidence=%d multiple=%s",
                steps_used - 1,
                decision.decision,
                len(decision.new_evidence),
                decision.multiple_candidates,
            )
            outcome = apply_step(
                state,
                window,
                decision,
                steps_used=steps_used,
                max_steps=max_steps,
                limits=self.limits,
            )
            state = outcome.state
            last_pointer = outcome.last_pointer or last_pointer
            if outcome.stop:
                stop_reason = outcome.stop_reason

        cursor_complete = cursor.is_complete or stop_reason == "cursor_complete"
        log.info(
            "scan_stopped: reason=%s steps=%d evidence=%d",
            stop_reason,
            steps_used,
            len(state.evidence),
        )

        if cancel_event is not None and cancel_event.is_set():
            return cancelled()

        return self.adjudicate(
            request.task_description,
            state,
            stop_reason=stop_reason,
            last_pointer=last_pointer,
            cursor_complete=cursor_complete,
            steps_used=steps_used,
        )

    def adjudicate(
        self,
        task_description: str,
        state: ScanState,
        *,
        stop_reason: StopReason,
        last_pointer: str | None,
        cursor_complete: bool,
        steps_used: int,
    ) -> ScanResult:
        failed = ScanResult(
            success=False,
            summary=state.summary or stop_reason,
            evidence=list(state.evidence),
            last_pointer=last_pointer,
            cursor_complete=cursor_complete,
            stop_reason=stop_reason,
            steps_used=steps_used,
        )
        if not state.evidence:
            return failed

        messages = build_adjudicator_messages(
            task_description,
            state,
            cursor_complete=cursor_complete,
            steps_used=steps_used,
            last_pointer=last_pointer,
        )
        content = self._generate(messages, steps_used, "adjudicator")
        try:
            verdict = extract_adjudicator_decision(content)
        except MalformedResponseError:
            log.warning("adjudicator_malformed: response could not be parsed")
            return failed.model_copy(update={"summary": "adjudicator_malformed"})

        if verdict.decision == "not_found":
            return failed

        chosen = find_evidence(state.evidence, verdict.chosen_pointer)
        if not verdict.is_success or chosen is None:
            log.warning(
                "adjudicator_rejected: decision=%s pointer=%r",
                verdict.decision,
                verdict.chosen_pointer,
            )
            return failed.model_copy(update={"summary": "adjudicator_missing_pointer"})

        excerpt = verdict.excerpt or verdict.markdown or chosen.excerpt
        return ScanResult(
            success=True,
            summary=truncate(verdict.summary, self.limits.max_summary_length) or state.summary,
            chosen_pointer=chosen.pointer,
            excerpt=truncate(excerpt, self.limits.max_excerpt_length),
            rationale=verdict.rationale or chosen.rationale,
            evidence=list(state.evidence),
            last_pointer=last_pointer,
            cursor_complete=cursor_complete,
            stop_reason=stop_reason,
            steps_used=steps_used,
        )
