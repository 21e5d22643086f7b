"""Hierarchical addresses for document items.

A pointer names an item by its heading path and, for leaf items, a paragraph
ordinal scoped to the nearest heading: ``1.2`` is a heading, ``1.2.p3`` is the
third leaf under it and ``p7`` is a leaf that precedes every heading.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass

_LABEL_RE = re.compile(r"^(?P<numbers>\d+(?:\.\d+)*)?(?:(?:^|\.)p(?P<paragraph>\d+))?$")
_LEGACY_RE = re.compile(r"^(?P<index>\d+):(?P<label>.+)$", re.DOTALL)


class PointerParseError(ValueError):
    """Raised when a raw value does not describe a valid pointer."""


def _normalize_label(label: str) -> str:
    normalized = label.strip().replace("P", "p")
    p_index = normalized.find("p")
    if p_index > 0 and normalized[p_index - 1] != ".":
        normalized = f"{normalized[:p_index]}.{normalized[p_index:]}"
    return normalized


def _label_from_json(raw: str) -> str:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise PointerParseError(f"Invalid pointer JSON: {raw!r}") from exc
    if not isinstance(payload, dict):
        raise PointerParseError(f"Pointer JSON must be an object: {raw!r}")
    for key, value in payload.items():
        if key.lower() == "label":
            if isinstance(value, str) and value.strip():
                return value
            break
    raise PointerParseError(f"Pointer JSON has no usable label: {raw!r}")


@dataclass(frozen=True)
class Pointer:
    numbers: tuple[int, ...] = ()
    paragraph: int | None = None

    def __post_init__(self) -> None:
        if not self.numbers and self.paragraph is None:
            raise PointerParseError("Pointer needs heading numbers or a paragraph ordinal.")
        if any(n < 0 for n in self.numbers) or (self.paragraph is not None and self.paragraph < 0):
            raise PointerParseError("Pointer components must be non-negative.")

    @property
    def level(self) -> int:
        return len(self.numbers)

    @property
    def has_paragraph(self) -> bool:
        return self.paragraph is not None

    @property
    def is_container(self) -> bool:
        return self.paragraph is None

    def canonical(self) -> str:
        head = ".".join(str(n) for n in self.numbers)
        if self.paragraph is None:
            return head
        if head:
            return f"{head}.p{self.paragraph}"
        return f"p{self.paragraph}"

    def contains(self, other: Pointer) -> bool:
        """True when ``other`` sits inside this heading's subtree.

        A leaf pointer is not a container and only contains itself.
        """
        if not self.numbers:
            return False
        if self.paragraph is not None:
            return self == other
        if len(other.numbers) < len(self.numbers):
            return False
        return other.numbers[: len(self.numbers)] == self.numbers

    def is_adjacent(self, other: Pointer, tolerance: int) -> bool:
        """Leaf pointers under the same heading path within ``tolerance`` ordinals."""
        if tolerance < 0:
            return False
        if self.paragraph is None or other.paragraph is None:
            return False
        if self.numbers != other.numbers:
            return False
        return abs(self.paragraph - other.paragraph) <= tolerance

    def to_json(self) -> str:
        return json.dumps({"label": self.canonical()}, ensure_ascii=False)

    def __str__(self) -> str:
        return self.canonical()


def parse_pointer(raw: str | Pointer) -> Pointer:
    """Parse a bare label, an ``"<index>:<label>"`` value or ``{"label": ...}``."""
    if isinstance(raw, Pointer):
        return raw
    if raw is None or not str(raw).strip():
        raise PointerParseError("Pointer label cannot be empty.")

    trimmed = str(raw).strip()
    if trimmed.startswith("{"):
        label = _label_from_json(trimmed)
    else:
        label = trimmed
        legacy = _LEGACY_RE.match(trimmed)
        if legacy and legacy.group("label").strip():
            label = legacy.group("label")

    normalized = _normalize_label(label)
    match = _LABEL_RE.match(normalized)
    if not normalized or not match:
        raise PointerParseError(f"Invalid pointer label: {raw!r}")

    numbers_raw = match.group("numbers")
    paragraph_raw = match.group("paragraph")
    numbers = tuple(int(part) for part in numbers_raw.split(".")) if numbers_raw else ()
    paragraph = int(paragraph_raw) if paragraph_raw is not None else None
    return Pointer(numbers=numbers, paragraph=paragraph)


def try_parse_pointer(raw: str | Pointer | None) -> Pointer | None:
    if raw is None:
        return None
    try:
        return parse_pointer(raw)
    except PointerParseError:
        return None


def pointer_key(raw: str | Pointer) -> str:
    """Case-insensitive identity used for deduplication and lookups."""
    pointer = try_parse_pointer(raw)
    if pointer is not None:
        return pointer.canonical().lower()
    return str(raw).strip().lower()


class PointerCounter:
    """Hands out pointers in document order as headings and leaves are visited."""

    def __init__(self) -> None:
        self._headings: list[int] = []
        self._paragraph = 0

    def enter_heading(self, level: int) -> Pointer:
        if level <= 0:
            self._headings = [1]
        else:
            while len(self._headings) < level:
                self._headings.append(0)
            self._headings[level - 1] += 1
            del self._headings[level:]
        self._paragraph = 0
        return Pointer(numbers=tuple(self._headings))

    def next_leaf(self) -> Pointer:
        self._paragraph += 1
        return Pointer(numbers=tuple(self._headings), paragraph=self._paragraph)
