"""CLI entrypoint for scanning a document."""

from __future__ import annotations

import argparse
import json
import logging
import os

from docscan.config import LOG_LEVEL, bootstrap_runtime_dirs


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Scan a document in bounded windows and pick one answer."
    )
    parser.add_argument("--task", required=True, help="What to find in the document.")
    parser.add_argument(
        "--doc",
        required=True,
        help="Document blocks as JSON or JSONL (type, markdown, optional level/pointer).",
    )
    parser.add_argument("--context", default=None, help="Optional extra context for the task.")
    parser.add_argument(
        "--start-after",
        default=None,
        help="Resume scanning right after this pointer (e.g. 1.2.p3).",
    )
    parser.add_argument("--max-steps", type=int, default=None, help="Scanner call budget.")
    parser.add_argument(
        "--keywords",
        nargs="+",
        default=None,
        help="Only scan items containing any of these keywords.",
    )
    parser.add_argument(
        "--output",
        default="outputs/scan_result.json",
        help="Path for JSON result output.",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Run deterministic offline mode (no API keys or external model calls).",
    )
    return parser


def main() -> None:
    args = build_parser().parse_args()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    bootstrap_runtime_dirs()
    if args.offline:
        os.environ["OFFLINE_MODE"] = "1"
        os.environ["LLM_PROVIDER"] = "mock"

    from docscan.models import ScanRequest
    from docscan.pipeline import run_scan

    request = ScanRequest(
        task_description=args.task,
        context=args.context,
        start_after_pointer=args.start_after,
        max_steps=args.max_steps,
    )
    result = run_scan(
        request,
        args.doc,
        keywords=args.keywords,
        output_json_path=args.output,
    )
    print(json.dumps(result.model_dump(), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
