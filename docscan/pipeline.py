"""End-to-end scan of a document file."""

from __future__ import annotations

import json
from pathlib import Path

from docscan.agent import CursorScanAgent
from docscan.config import ScanLimits
from docscan.cursor import BoundedCursor, keyword_predicate
from docscan.ingest import load_document
from docscan.llm_client import get_llm_client
from docscan.models import ScanRequest, ScanResult


def write_result(result: ScanResult, output_json_path: str) -> Path:
    out_path = Path(output_json_path).expanduser().resolve()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(
        json.dumps(result.model_dump(), indent=2, ensure_ascii=False),
        encoding="utf-8",
    )
    return out_path


def run_scan(
    request: ScanRequest,
    document_path: str,
    *,
    keywords: list[str] | None = None,
    limits: ScanLimits | None = None,
    output_json_path: str | None = None,
) -> ScanResult:
    document = load_document(document_path)
    agent = CursorScanAgent(document, get_llm_client(), limits)

    cursor = None
    if keywords:
        cursor = BoundedCursor(
            document.items,
            agent.limits.max_elements,
            agent.limits.max_bytes,
            start_after=request.start_after_pointer,
            predicate=keyword_predicate(keywords),
        )

    result = agent.run(request, cursor=cursor)
    if output_json_path:
        write_result(result, output_json_path)
    return result
