"""Shared data models for the document scanning agent."""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from docscan.pointer import Pointer, pointer_key


class ItemType(str, Enum):
    HEADING = "heading"
    PARAGRAPH = "paragraph"
    LIST_ITEM = "list_item"
    CODE = "code"
    THEMATIC_BREAK = "thematic_break"
    HTML = "html"


class Item(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    index: int = Field(..., ge=0)
    type: ItemType
    markdown: str
    text: str
    pointer: Pointer

    @property
    def label(self) -> str:
        return self.pointer.canonical()


class Document(BaseModel):
    model_config = ConfigDict(frozen=True)

    doc_id: str
    items: tuple[Item, ...] = ()

    def index_of(self, pointer: str | Pointer) -> int:
        """Position of the item with ``pointer`` or -1."""
        key = pointer_key(pointer)
        for position, item in enumerate(self.items):
            if item.label.lower() == key:
                return position
        return -1


class EvidenceItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    pointer: str = Field(..., description="Canonical pointer of the item backing the finding.")
    excerpt: str | None = Field(default=None, description="Verbatim text of that item.")
    rationale: str | None = Field(default=None, description="Short local reason for the match.")


class ScanRequest(BaseModel):
    task_description: str = Field(..., min_length=1)
    context: str | None = None
    start_after_pointer: str | None = None
    max_steps: int | None = Field(default=None, ge=1)


StopReason = Literal[
    "decision_done",
    "decision_not_found",
    "cursor_complete",
    "max_steps",
    "cancelled",
]


class ScanResult(BaseModel):
    success: bool
    summary: str | None = None
    chosen_pointer: str | None = None
    excerpt: str | None = None
    rationale: str | None = None
    evidence: list[EvidenceItem] = Field(default_factory=list)
    last_pointer: str | None = None
    cursor_complete: bool = False
    stop_reason: StopReason = "cursor_complete"
    steps_used: int = 0
    incomplete: bool = False


ScannerVerdict = Literal["continue", "done", "not_found"]


class ScannerDecision(BaseModel):
    decision: ScannerVerdict = "continue"
    raw_decision: str = ""
    new_evidence: list[EvidenceItem] = Field(default_factory=list)
    progress: str | None = None
    need_more_context: bool = False
    raw: str = ""
    multiple_candidates: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.decision in {"done", "not_found"}


class AdjudicatorDecision(BaseModel):
    decision: str
    chosen_pointer: str | None = None
    excerpt: str | None = None
    markdown: str | None = None
    rationale: str | None = None
    summary: str | None = None
    raw: str = ""
    multiple_candidates: bool = False

    @property
    def is_success(self) -> bool:
        return self.decision == "success"
