"""CLI entry point that enhances a documentation directory in one run."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from contextlib import AsyncExitStack
from dataclasses import replace
from typing import TYPE_CHECKING

from ragprep.adapters.github import GitHubClient, GitHubPullRequestPublisher
from ragprep.adapters.llm import GeminiClient
from ragprep.adapters.search import TavilyClient
from ragprep.agents.batch import summarize_for_log
from ragprep.agents.registry import AgentDependencies
from ragprep.agents.team import EnhancementTeam
from ragprep.config import load_config
from ragprep.core.logging_utils import generate_correlation_id, setup_logging
from ragprep.documents.discovery import discover_documents
from ragprep.domain.exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Callable

    from ragprep.config.settings import AppConfig
    from ragprep.models.enhancement import BatchResult

logger = logging.getLogger(__name__)

__all__ = ["main", "run_enhancement"]

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        prog="ragprep",
        description="Enhance Markdown documentation for retrieval with a team of AI agents",
        allow_abbrev=False,
    )
    parser.add_argument(
        "--docs-path",
        help="Directory containing the Markdown files to enhance.",
    )
    parser.add_argument(
        "--log-dir",
        help="Directory for per-run audit logs.",
    )
    parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Run without asking for confirmation.",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override the configured log level for this run.",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit structured JSON logs on stderr.",
    )
    return parser.parse_args(argv)


def _prepare_config(args: argparse.Namespace) -> AppConfig:
    """Load configuration and apply CLI overrides."""
    cfg = load_config()
    runtime = cfg.runtime
    if args.docs_path:
        runtime = runtime.model_copy(update={"docs_path": args.docs_path})
    if args.log_dir:
        runtime = runtime.model_copy(update={"log_dir": args.log_dir})
    if args.log_level:
        runtime = runtime.model_copy(update={"log_level": args.log_level})
    return replace(cfg, runtime=runtime)


def _confirm(cfg: AppConfig, document_count: int, input_func: Callable[[str], str]) -> bool:
    prompt = (
        f"Enhance {document_count} documents in {cfg.runtime.docs_path}? "
        "Proposed changes are published as a pull request when configured. [y/N] "
    )
    try:
        answer = input_func(prompt)
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


async def run_enhancement(
    cfg: AppConfig,
    *,
    assume_yes: bool = False,
    input_func: Callable[[str], str] = input,
) -> BatchResult | None:
    """Discover documents and run the enhancement team.

    Returns None when there are no documents or the user declines the
    confirmation prompt.

    Raises:
        ConfigurationError: If the run has documents but no usable agents.
    """
    correlation_id = generate_correlation_id()
    missing = cfg.missing_credentials()
    for capability, variable in missing.items():
        logger.warning(
            f"{variable} is not set; {capability} agents will fail for every document",
            extra={"correlation_id": correlation_id, "capability": capability},
        )

    documents = discover_documents(
        cfg.runtime.docs_path, reenhance_after_hours=cfg.runtime.reenhance_after_hours
    )
    if not documents:
        logger.warning(
            "no_documents_found",
            extra={"correlation_id": correlation_id, "docs_path": cfg.runtime.docs_path},
        )
        return None

    if not (assume_yes or cfg.runtime.skip_prompt):
        if not _confirm(cfg, len(documents), input_func):
            logger.info("enhancement_cancelled", extra={"correlation_id": correlation_id})
            return None

    async with AsyncExitStack() as stack:
        llm = GeminiClient.from_config(cfg.gemini) if cfg.gemini.api_key else None
        if llm is not None:
            stack.push_async_callback(llm.aclose)
        search = TavilyClient.from_config(cfg.tavily) if cfg.tavily.api_key else None
        if search is not None:
            stack.push_async_callback(search.aclose)

        publisher = None
        if cfg.github.is_ready:
            github = GitHubClient.from_config(cfg.github)
            stack.push_async_callback(github.aclose)
            publisher = GitHubPullRequestPublisher(github)

        team = EnhancementTeam(
            cfg.agents,
            AgentDependencies(llm_client=llm, search_client=search, correlation_id=correlation_id),
            log_dir=cfg.runtime.log_dir,
            publisher=publisher,
            reenhance_after_hours=cfg.runtime.reenhance_after_hours,
        )
        team.initialize()
        return await team.process_documents(documents)


def main(argv: list[str] | None = None) -> int:
    """Entry point for the ``ragprep`` console script."""
    args = parse_args(argv)
    try:
        cfg = _prepare_config(args)
    except RuntimeError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG

    setup_logging(cfg.runtime.log_level, json_output=args.json_logs)

    try:
        result = asyncio.run(run_enhancement(cfg, assume_yes=args.yes))
    except ConfigurationError as exc:
        logger.error("enhancement_not_configured", extra={"error": exc.message, **exc.details})
        print(f"Configuration error: {exc.message}", file=sys.stderr)
        return EXIT_CONFIG
    except KeyboardInterrupt:  # pragma: no cover - user cancelled
        return EXIT_FAILED

    if result is None:
        return EXIT_OK

    print(json.dumps(summarize_for_log(result), indent=2, default=str))
    return EXIT_OK if result.success else EXIT_FAILED


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
