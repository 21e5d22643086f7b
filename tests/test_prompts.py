import json

from docscan.cursor import Window
from docscan.evidence import ScanState
from docscan.ingest import build_items
from docscan.models import EvidenceItem, ScanRequest
from docscan.prompts import (
    ADJUDICATOR_SYSTEM_PROMPT,
    SCANNER_SYSTEM_PROMPT,
    build_adjudicator_messages,
    build_scanner_messages,
    build_snapshot_payload,
    build_task_payload,
    build_window_payload,
)


def test_system_prompts_describe_protocol() -> None:
    assert '"decision": "continue|done|not_found"' in SCANNER_SYSTEM_PROMPT
    assert "untrusted" in SCANNER_SYSTEM_PROMPT
    assert "semanticPointerFrom" in ADJUDICATOR_SYSTEM_PROMPT


def test_task_payload_drops_blank_context() -> None:
    payload = json.loads(build_task_payload(ScanRequest(task_description="find X", context="  ")))
    assert payload["type"] == "task"
    assert payload["goal"] == "find X"
    assert payload["context"] is None
    assert "maxEvidence" not in payload

    with_hint = json.loads(build_task_payload(ScanRequest(task_description="t", context="c"), 3))
    assert with_hint["context"] == "c"
    assert with_hint["maxEvidence"] == 3


def test_snapshot_exposes_count_and_pointer_tail_only() -> None:
    state = ScanState(
        evidence=tuple(
            EvidenceItem(pointer=f"p{n}", excerpt=f"secret {n}", rationale="r") for n in range(1, 8)
        )
    )
    text = build_snapshot_payload(state, tail=5)
    payload = json.loads(text)
    assert payload == {
        "type": "snapshot",
        "evidenceCount": 7,
        "recentEvidencePointers": ["p3", "p4", "p5", "p6", "p7"],
    }
    assert "secret" not in text


def test_window_payload_keeps_non_ascii_readable() -> None:
    items = build_items([{"type": "paragraph", "markdown": "Ёлка и café"}])
    text = build_window_payload(Window(items=items, has_more=True), first=True)
    assert "Ёлка и café" in text
    payload = json.loads(text)
    assert payload["firstBatch"] is True
    assert payload["hasMoreBatches"] is True
    assert payload["items"] == [{"pointer": "p1", "itemType": "paragraph", "markdown": "Ёлка и café"}]


def test_scanner_messages_order() -> None:
    items = build_items([{"type": "paragraph", "markdown": "a"}])
    messages = build_scanner_messages(
        ScanRequest(task_description="t"),
        ScanState(),
        Window(items=items, has_more=False),
        first=False,
        snapshot_tail=5,
    )
    assert [m.role for m in messages] == ["system", "user", "user", "user"]
    assert messages[0].text == SCANNER_SYSTEM_PROMPT
    assert json.loads(messages[1].text)["type"] == "task"
    assert json.loads(messages[2].text)["type"] == "snapshot"
    assert json.loads(messages[3].text)["firstBatch"] is False


def test_adjudicator_message_carries_scan_facts() -> None:
    state = ScanState(evidence=(EvidenceItem(pointer="1.p2", excerpt="x", rationale="y"),))
    messages = build_adjudicator_messages(
        "find X",
        state,
        cursor_complete=True,
        steps_used=3,
        last_pointer=None,
    )
    assert messages[0].text == ADJUDICATOR_SYSTEM_PROMPT
    body = messages[1].text
    assert body.startswith("Task description:\nfind X")
    assert '"pointer":"1.p2"' in body
    assert "cursorComplete: true" in body
    assert "stepsUsed: 3" in body
    assert "afterPointer: <none>" in body
