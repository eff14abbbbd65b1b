"""Command line interface for asking questions against the Diet minutes."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from .clients import LLMClientError
from .config import AppConfig, load_config
from .core.types import SpeechResult
from .database import SpeechStore, StorageError
from .pipeline import PipelineConfigurationError
from .planning import PlanParseError
from .runtime import create_pipeline, open_storage
from .synthesis.answer import truncate

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
LOGGER = logging.getLogger(__name__)

_RULE = "=" * 80


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Question answering over National Diet speeches")
    parser.add_argument("command", choices=["ask", "stats", "ui"], help="Which action to execute")
    parser.add_argument("question", nargs="*", help="Question to answer (only used with the 'ask' command)")
    parser.add_argument("--config", type=Path, help="Path to an explicit configuration file")
    parser.add_argument("--top-k", type=int, help="Number of speeches to retrieve (defaults to retrieval.top_k)")
    parser.add_argument(
        "--no-stats",
        action="store_true",
        help="Do not print corpus statistics before answering",
    )
    parser.add_argument(
        "--ui-host",
        default="127.0.0.1",
        help="Host interface for the UI server (only used with the 'ui' command)",
    )
    parser.add_argument(
        "--ui-port",
        type=int,
        default=8080,
        help="Port for the UI server (only used with the 'ui' command)",
    )
    return parser


def format_results(results: Sequence[SpeechResult]) -> str:
    lines = [f"Found {len(results)} results:", ""]
    for index, result in enumerate(results, start=1):
        lines.extend(
            [
                f"--- Result {index} ---",
                f"Speaker: {result.speaker} ({result.party})",
                f"Date: {result.date}",
                f"Meeting: {result.meeting}",
                f"Score: {result.score:.3f}",
                f"URL: {result.url}",
                f"Content: {truncate(result.content)}",
                "",
            ]
        )
    return "\n".join(lines)


def _print_stats(storage: SpeechStore) -> None:
    try:
        stats = storage.stats()
    except StorageError as exc:
        LOGGER.warning("Failed to read corpus statistics: %s", exc)
        return
    print("Database statistics:")
    print(f"  Total speeches: {stats.total_speeches}")
    print(f"  Embedded speeches: {stats.embedded_speeches}")
    print(f"  Embedded percentage: {stats.embedded_percentage:.1f}%")


def _ask(config: AppConfig, question: str, *, top_k: int, show_stats: bool) -> int:
    try:
        resources = create_pipeline(config)
    except (PipelineConfigurationError, StorageError) as exc:
        LOGGER.error("Could not initialise the pipeline: %s", exc)
        return 1
    try:
        if show_stats:
            _print_stats(resources.storage)
        try:
            outcome = resources.pipeline.answer_question(question, top_k=top_k)
        except (PlanParseError, LLMClientError, PipelineConfigurationError) as exc:
            LOGGER.error("Could not answer the question: %s", exc)
            return 1
        if not outcome.has_results:
            print("No relevant speeches found.")
            return 0
        print(format_results(outcome.results))
        print(_RULE)
        print("Answer:")
        print(_RULE)
        print(outcome.answer)
        print(_RULE)
        return 0
    finally:
        resources.close()


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    config = load_config(args.config)

    if args.command == "ask":
        question = " ".join(args.question).strip()
        if not question:
            parser.error("the 'ask' command needs a question")
        top_k = args.top_k if args.top_k is not None else config.retrieval.top_k
        if top_k < 1:
            parser.error(f"top-k must be at least 1, got {top_k}")
        return _ask(config, question, top_k=top_k, show_stats=not args.no_stats)
    if args.command == "stats":
        try:
            storage = open_storage(config)
        except StorageError as exc:
            LOGGER.error("Could not open the speech database: %s", exc)
            return 1
        try:
            _print_stats(storage)
        finally:
            storage.dispose()
        return 0
    if args.command == "ui":
        from .ui import run_ui

        storage = open_storage(config)
        try:
            run_ui(config, storage=storage, host=args.ui_host, port=args.ui_port, config_path=args.config)
        finally:
            storage.dispose()
        return 0
    parser.error(f"Unknown command {args.command}")
    return 2


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
