"""Command-line entrypoint: analyze text, list stored tasks, or serve the API."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Sequence

from task_pipeline.config.settings import Settings, get_settings
from task_pipeline.llm.factory import build_provider
from task_pipeline.logging_config import configure_logging
from task_pipeline.models import ProgressEvent
from task_pipeline.pipeline.factory import build_task_pipeline
from task_pipeline.pipeline.runner import PipelineRunner
from task_pipeline.store.factory import build_task_store
from task_pipeline.tools import build_tool_registry


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="task-pipeline",
        description="Parse, categorize, prioritize and plan free-text tasks.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="Run the pipeline over task text.")
    analyze.add_argument(
        "text",
        nargs="+",
        help="Task text; each argument is treated as one line of input.",
    )
    analyze.add_argument(
        "--json",
        action="store_true",
        help="Print each progress event as a JSON line.",
    )

    list_parser = subparsers.add_parser("list", help="Print a page of stored tasks as JSON.")
    list_parser.add_argument("--page", type=int, default=1)
    list_parser.add_argument("--page-size", type=int, default=None)
    list_parser.add_argument("--category", type=str, default=None)
    list_parser.add_argument("--priority", type=str, default=None)

    serve = subparsers.add_parser("serve", help="Run the HTTP API with uvicorn.")
    serve.add_argument("--host", type=str, default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    return parser.parse_args(argv)


def _format_event(event: ProgressEvent) -> str:
    return f"[{event.status:>9}] {event.stage_name}: {event.message}"


def _analyze(args: argparse.Namespace, settings: Settings) -> int:
    store = build_task_store(settings)
    registry = build_tool_registry(
        enabled=settings.tools_enabled,
        url_check_timeout_s=settings.url_check_timeout_s,
    )
    machine = build_task_pipeline(
        build_provider(settings),
        registry,
        max_retries=settings.stage_max_retries,
    )
    run = PipelineRunner(machine, store=store).start("\n".join(args.text))

    last_run_event: ProgressEvent | None = None
    for event in run.channel:
        if event.task_id == run.run_id:
            last_run_event = event
        if args.json:
            print(json.dumps(event.model_dump(mode="json")))
        else:
            print(_format_event(event))
    run.wait()

    if last_run_event is not None and last_run_event.status == "failed":
        return 1
    return 0


def _list(args: argparse.Namespace, settings: Settings) -> int:
    store = build_task_store(settings)
    page_size = args.page_size or settings.default_page_size
    page = store.list(
        page=max(args.page, 1),
        page_size=min(max(page_size, 1), settings.max_page_size),
        category=args.category,
        priority=args.priority,
    )
    print(json.dumps(page.model_dump(mode="json"), indent=2))
    return 0


def _serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    uvicorn.run(
        "task_pipeline.api.main:app",
        host=args.host,
        port=args.port,
        log_level=settings.log_level.lower(),
    )
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)

    if args.command == "analyze":
        return _analyze(args, settings)
    if args.command == "list":
        return _list(args, settings)
    return _serve(args, settings)


if __name__ == "__main__":
    sys.exit(main())
