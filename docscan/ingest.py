"""Document loading: turn a JSON/JSONL list of blocks into addressed items."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from docscan.models import Document, Item, ItemType
from docscan.pointer import PointerCounter, PointerParseError, parse_pointer


def _read_blocks(path: Path) -> list[Any]:
    raw = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".jsonl":
        return [json.loads(line) for line in raw.splitlines() if line.strip()]
    payload = json.loads(raw)
    if isinstance(payload, dict):
        payload = payload.get("items", [])
    if not isinstance(payload, list):
        raise ValueError(f"Expected a list of blocks in {path}.")
    return payload


def _item_type(value: Any) -> ItemType:
    try:
        return ItemType(str(value or "paragraph").strip().lower())
    except ValueError as exc:
        allowed = ", ".join(t.value for t in ItemType)
        raise ValueError(f"Unsupported item type {value!r}. Allowed: {allowed}.") from exc


def _heading_level(block: dict, index: int) -> int:
    level = block.get("level")
    if level is None:
        return 1
    try:
        return int(level)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Block {index} has an invalid level {level!r}.") from exc


def build_items(blocks: list[Any]) -> tuple[Item, ...]:
    """Index blocks in order; blocks without a pointer get one from a running counter."""
    counter = PointerCounter()
    items: list[Item] = []
    for index, block in enumerate(blocks):
        if not isinstance(block, dict):
            raise ValueError(f"Block {index} must be an object.")
        markdown = block.get("markdown")
        if not isinstance(markdown, str):
            raise ValueError(f"Block {index} is missing 'markdown'.")
        item_type = _item_type(block.get("type"))

        if item_type is ItemType.HEADING:
            assigned = counter.enter_heading(_heading_level(block, index))
        else:
            assigned = counter.next_leaf()

        raw_pointer = block.get("pointer")
        if raw_pointer is None:
            pointer = assigned
        else:
            try:
                pointer = parse_pointer(raw_pointer)
            except PointerParseError as exc:
                raise ValueError(f"Block {index} has an invalid pointer: {exc}") from exc

        text = block.get("text")
        items.append(
            Item(
                index=index,
                type=item_type,
                markdown=markdown,
                text=text if isinstance(text, str) else markdown,
                pointer=pointer,
            )
        )
    return tuple(items)


def load_document(path: str | Path, doc_id: str | None = None) -> Document:
    resolved = Path(path).expanduser().resolve()
    if not resolved.exists() or not resolved.is_file():
        raise FileNotFoundError(f"File not found: {resolved}")
    items = build_items(_read_blocks(resolved))
    return Document(doc_id=doc_id or resolved.stem, items=items)
