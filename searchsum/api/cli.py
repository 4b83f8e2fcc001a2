"""
Command-line adapter for the search-fetch-summarize pipeline.

Architectural role:
- Parses positional arguments and option overrides.
- Builds `Settings` from the environment (`.env` supported) plus CLI overrides.
- Delegates the run to `searchsum.core.engine.run_pipeline`.

Usage:
    searchsum [QUERY] [QUESTION] [COUNT] [MODEL] [--no-stream] [--timeout S]
              [--abort-on-empty] [--quiet]

Response formatting:
- Streamed answer fragments are printed to stdout as they arrive.
- A summary block (URLs, timing, page counts, degraded note) follows the answer.
- Progress during aggregation goes to stderr unless `--quiet`.

Exit codes:
- 0: run reached `Done`.
- 1: run ended `Failed(kind)`; kind and stage are printed to stderr.
- 2: invalid arguments or configuration.
"""

from dotenv import load_dotenv

load_dotenv()

import argparse
import asyncio
import logging
import sys

from searchsum.core.engine import run_pipeline
from searchsum.core.settings import DEFAULT_MODEL, DEFAULT_RESULT_COUNT, Settings
from searchsum.core.types import PipelineResult


DEFAULT_QUERY = "rust programming"
DEFAULT_QUESTION_TEMPLATE = "based on the content provided what is : {query}"


# =========================================================
# UTF-8 SAFE OUTPUT
# Best-effort stdout encoding normalization for interactive terminals.
# =========================================================

if hasattr(sys.stdout, "reconfigure"):
    try:
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    except (AttributeError, ValueError, OSError):
        pass


# =========================================================
# ARGUMENTS
# =========================================================

def _positive_int(value):
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"result count must be >= 1, got {number}")
    return number


def _positive_float(value):
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a number, got {value!r}") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"timeout must be positive, got {number}")
    return number


def build_parser():
    """Return the argument parser for the four positional arguments and options."""
    parser = argparse.ArgumentParser(
        prog="searchsum",
        description="Search the web and summarize the results with a local model",
    )
    parser.add_argument("query", nargs="?", default=DEFAULT_QUERY, help="Search query")
    parser.add_argument(
        "question",
        nargs="?",
        default=None,
        help="Question for the model (default: derived from the query)",
    )
    parser.add_argument(
        "count",
        nargs="?",
        type=_positive_int,
        default=DEFAULT_RESULT_COUNT,
        help=f"Number of search results to fetch (default: {DEFAULT_RESULT_COUNT})",
    )
    parser.add_argument(
        "model",
        nargs="?",
        default=None,
        help=f"Model name (default: MODEL_NAME or {DEFAULT_MODEL})",
    )
    parser.add_argument("--no-stream", action="store_true", help="Wait for the full answer")
    parser.add_argument("--timeout", type=_positive_float, default=None, help="Overall deadline in seconds")
    parser.add_argument(
        "--abort-on-empty",
        action="store_true",
        help="Fail instead of asking the bare question when no page could be read",
    )
    parser.add_argument("--quiet", action="store_true", help="Hide the progress indicator")
    return parser


def settings_from_args(args, base=None):
    """Apply CLI overrides on top of environment-derived settings."""
    settings = base or Settings.from_env()
    changes = {}
    if args.no_stream:
        changes["stream"] = False
    if args.timeout is not None:
        changes["deadline_seconds"] = args.timeout
    if args.abort_on_empty:
        changes["all_failed_policy"] = "abort"
    return settings.replace(**changes) if changes else settings


# =========================================================
# OUTPUT
# =========================================================

def print_progress(completed, total, outcome):
    """Single-line progress indicator on stderr."""
    status = "ok" if outcome.ok else f"failed ({outcome.reason})"
    print(f"[{completed}/{total}] {outcome.source_url} {status}", file=sys.stderr, flush=True)


def print_fragment(fragment):
    print(fragment, end="", flush=True)


def print_summary(result: PipelineResult, query, question, streamed):
    """Render the final answer (unless already streamed) and the run summary."""
    if result.answer is not None:
        if streamed:
            print()
        else:
            print(result.answer.text)

    urls = result.search.urls if result.search is not None else ()
    pages = result.aggregation.succeeded if result.aggregation is not None else 0

    print("\n=== Search Results ===")
    for url in urls:
        print(url)

    print("\n=== Search Results Summary ===")
    print(f"Search Query: {query}")
    print(f"Query: {question}")
    print(f"Processing time: {result.elapsed_seconds:.2f}s")
    print(f"Pages analyzed: {pages}")

    note = result.degraded_note
    if note:
        print(f"Note: {note}")


# =========================================================
# MAIN
# =========================================================

def main(argv=None):
    """Run one pipeline and return the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = settings_from_args(args)
    except ValueError as exc:
        print(f"configuration error: {exc}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    query = args.query
    question = args.question or DEFAULT_QUESTION_TEMPLATE.format(query=query)
    model = args.model or settings.model_name

    try:
        result = asyncio.run(
            run_pipeline(
                settings,
                query,
                question,
                limit=args.count,
                model=model,
                on_fragment=print_fragment if settings.stream else None,
                on_progress=None if args.quiet else print_progress,
            )
        )
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nOperation cancelled by user.", file=sys.stderr)
        return 130

    if not result.ok:
        print(f"error: {result.failure.describe()}", file=sys.stderr)
        return 1

    print_summary(result, query, question, streamed=settings.stream)
    return 0


if __name__ == "__main__":
    sys.exit(main())
