"""Budgeted, resumable cursor over a document's item list."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from functools import lru_cache

import snowballstemmer

from docscan.models import Item, ItemType
from docscan.pointer import pointer_key, try_parse_pointer

log = logging.getLogger(__name__)

ItemPredicate = Callable[[Item], bool]

_TOKEN_RE = re.compile(r"[^\W\d_]+")


@dataclass(frozen=True)
class Window:
    items: tuple[Item, ...]
    has_more: bool

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def last_pointer(self) -> str | None:
        return self.items[-1].label if self.items else None


def item_size(item: Item) -> int:
    """Byte-budget proxy for one item; not a wire format."""
    serialized = f"{item.index}|{item.type.value}|{item.label}|{item.markdown}|"
    return len(serialized.encode("utf-8"))


def match_all(item: Item) -> bool:
    del item
    return True


def _normalize_keywords(keywords: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    normalized: list[str] = []
    for keyword in keywords:
        value = (keyword or "").strip()
        if not value or value.casefold() in seen:
            continue
        seen.add(value.casefold())
        normalized.append(value)
    return normalized


def _is_cyrillic(char: str) -> bool:
    return (
        "\u0400" <= char <= "\u052f"
        or "\u2de0" <= char <= "\u2dff"
        or "\ua640" <= char <= "\ua69f"
    )


def _is_latin(char: str) -> bool:
    return "a" <= char <= "z" or "A" <= char <= "Z" or "\u00c0" <= char <= "\u024f"


@lru_cache(maxsize=None)
def _stemmer(language: str):
    return snowballstemmer.stemmer(language)


def stem_token(token: str) -> str:
    """Lowercase ``token`` and stem it as English or Russian; mixed scripts stay unstemmed."""
    lower = token.lower()
    cyrillic = any(_is_cyrillic(char) for char in token)
    latin = any(_is_latin(char) for char in token)
    if cyrillic and not latin:
        return _stemmer("russian").stemWord(lower)
    if latin and not cyrillic:
        return _stemmer("english").stemWord(lower)
    return lower


def stem_set(text: str | None) -> set[str]:
    if not text:
        return set()
    return {stem for token in _TOKEN_RE.findall(text) if (stem := stem_token(token))}


class KeywordMatcher:
    """Matches items whose text carries every stem of at least one keyword.

    Keywords with no letters at all (numbers, symbols) are matched as
    case-insensitive substrings of the item's text or markdown instead.
    """

    def __init__(self, keywords: Iterable[str]) -> None:
        self.keywords = _normalize_keywords(keywords)
        if not self.keywords:
            raise ValueError("At least one keyword is required.")
        self._entries = [(keyword.casefold(), frozenset(stem_set(keyword))) for keyword in self.keywords]

    @property
    def description(self) -> str:
        return f"Keywords: {', '.join(self.keywords)}"

    def __call__(self, item: Item) -> bool:
        text = item.text.casefold()
        markdown = item.markdown.casefold()
        if any(not stems and (needle in text or needle in markdown) for needle, stems in self._entries):
            return True

        stemmed = [stems for _, stems in self._entries if stems]
        if not stemmed:
            return False
        item_stems = stem_set(item.text)
        return any(stems <= item_stems for stems in stemmed)


class PhraseMatcher:
    """Matches items containing the query as a case-insensitive substring."""

    def __init__(self, query: str) -> None:
        if not query or not query.strip():
            raise ValueError("Query cannot be empty.")
        self.query = query.strip()
        self._needle = self.query.casefold()

    @property
    def description(self) -> str:
        return f"Query: {self.query}"

    def __call__(self, item: Item) -> bool:
        return self._needle in item.text.casefold() or self._needle in item.markdown.casefold()


def keyword_predicate(keywords: Iterable[str]) -> KeywordMatcher:
    return KeywordMatcher(keywords)


def query_predicate(query: str) -> PhraseMatcher:
    return PhraseMatcher(query)


def resolve_start_index(items: Sequence[Item], start_after: str | None) -> int:
    """Index right after the item matching ``start_after``; 0 when absent or unknown."""
    if not start_after:
        return 0
    if try_parse_pointer(start_after) is None:
        log.warning("Invalid pointer format: %s", start_after)
        return 0
    target = pointer_key(start_after)
    for position, item in enumerate(items):
        if item.label.lower() == target:
            return position + 1
    log.info("start_after pointer %s not found; starting from the beginning", start_after)
    return 0


class BoundedCursor:
    """Partitions items into windows bounded by item count and serialized size.

    The first item of a window is always taken, even when it alone exceeds the
    byte budget, so an oversized item can never stall the scan.
    """

    def __init__(
        self,
        items: Sequence[Item],
        max_elements: int,
        max_bytes: int,
        *,
        start_after: str | None = None,
        include_headings: bool = True,
        predicate: ItemPredicate | None = None,
    ) -> None:
        if max_elements < 1:
            raise ValueError("max_elements must be >= 1.")
        self._items = tuple(items)
        self._max_elements = max_elements
        self._max_bytes = max_bytes
        self._include_headings = include_headings
        self._predicate = predicate or match_all
        self._offset = resolve_start_index(self._items, start_after)
        self._complete = False

    @property
    def is_complete(self) -> bool:
        return self._complete

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def filter_description(self) -> str | None:
        return getattr(self._predicate, "description", None)

    def _eligible(self, item: Item) -> bool:
        if not self._include_headings and item.type is ItemType.HEADING:
            return False
        return self._predicate(item)

    def next_window(self) -> Window:
        if self._complete or not self._items:
            self._complete = True
            return Window(items=(), has_more=False)

        accepted: list[Item] = []
        byte_budget = self._max_bytes
        position = self._offset

        while position < len(self._items):
            item = self._items[position]
            if not self._eligible(item):
                position += 1
                continue

            if len(accepted) >= self._max_elements:
                break

            size = item_size(item)
            if byte_budget - size < 0:
                if accepted:
                    break
                accepted.append(item)
                position += 1
                byte_budget = 0
                break

            accepted.append(item)
            byte_budget -= size
            position += 1
            if byte_budget <= 0:
                break

        self._offset = position
        has_more = position < len(self._items)
        if not has_more:
            self._complete = True

        log.debug(
            "cursor_window: count=%d offset=%d has_more=%s",
            len(accepted),
            position,
            has_more,
        )
        return Window(items=tuple(accepted), has_more=has_more)

    def __iter__(self):
        while True:
            window = self.next_window()
            if window.is_empty and not window.has_more:
                return
            yield window
            if not window.has_more:
                return
