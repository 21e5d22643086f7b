"""Named cursors over one document, so a scan can resume where it stopped."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from docscan.config import ScanLimits
from docscan.cursor import BoundedCursor, ItemPredicate, keyword_predicate, query_predicate
from docscan.models import Document

log = logging.getLogger(__name__)


class CursorRegistry:
    def __init__(self, document: Document, limits: ScanLimits | None = None) -> None:
        self._document = document
        self._limits = limits or ScanLimits()
        self._cursors: dict[str, BoundedCursor] = {}
        self._counter = 0

    def _register(
        self,
        prefix: str,
        predicate: ItemPredicate | None,
        include_headings: bool,
        start_after: str | None,
    ) -> str:
        name = f"{prefix}_{self._counter}"
        self._counter += 1
        self._cursors[name] = BoundedCursor(
            self._document.items,
            self._limits.max_elements,
            self._limits.max_bytes,
            start_after=start_after,
            include_headings=include_headings,
            predicate=predicate,
        )
        log.info("cursor_created: cursor=%s filter=%s", name, self._cursors[name].filter_description)
        return name

    def create_cursor(self, *, include_headings: bool = True, start_after: str | None = None) -> str:
        return self._register("cursor", None, include_headings, start_after)

    def create_keyword_cursor(
        self,
        keywords: Iterable[str],
        *,
        include_headings: bool = True,
        start_after: str | None = None,
    ) -> str:
        return self._register("keyword_cursor", keyword_predicate(keywords), include_headings, start_after)

    def create_query_cursor(
        self,
        query: str,
        *,
        include_headings: bool = True,
        start_after: str | None = None,
    ) -> str:
        return self._register("query_cursor", query_predicate(query), include_headings, start_after)

    def get(self, name: str) -> BoundedCursor:
        try:
            return self._cursors[name]
        except KeyError:
            raise KeyError(f"cursor_not_found: {name}") from None

    def remove(self, name: str) -> None:
        self._cursors.pop(name, None)

    def names(self) -> list[str]:
        return list(self._cursors)
