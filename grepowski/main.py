"""CLI entrypoint: ask one question about every fragment of the given files."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from grepowski.config import ConfigError, load_config
from grepowski.ingest import ReadError
from grepowski.models import Answered, ReviewItem
from grepowski.pipeline import export_review, run_review, summarize

log = logging.getLogger("grepowski")

ANSWER_PREVIEW_CHARS = 100


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="grepowski",
        description=(
            "Split files into line-numbered fragments and ask a chat-completion "
            "model the same question about each one. Unset options fall back to "
            "GREPOWSKI_* environment variables."
        ),
    )
    parser.add_argument("question", help="Question to ask the model about each fragment.")
    parser.add_argument("files", nargs="+", help="Input files to analyze (UTF-8 text).")
    parser.add_argument(
        "-l",
        "--lines-per-block",
        type=int,
        default=None,
        help="Number of lines per block (default: 10).",
    )
    parser.add_argument(
        "-b",
        "--blocks-per-fragment",
        type=int,
        default=None,
        help="Number of blocks per fragment (default: 3).",
    )
    parser.add_argument("-m", "--model", default=None, help="Model to use for the chat completion.")
    parser.add_argument(
        "-t",
        "--temperature",
        type=float,
        default=None,
        help="Temperature for the chat completion (default: 0.2).",
    )
    parser.add_argument(
        "-u",
        "--url",
        default=None,
        help="URL of the chat completion endpoint.",
    )
    parser.add_argument("--token", default=None, help="Bearer token for the endpoint.")
    parser.add_argument("--max-tokens", type=int, default=None, help="Completion token cap.")
    parser.add_argument(
        "-c",
        "--concurrency",
        type=int,
        default=None,
        help="Maximum concurrent requests (default: 4).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        dest="timeout_s",
        help="Per-request timeout in seconds (default: 60).",
    )
    parser.add_argument("--system-prompt", default=None, help="Override the system prompt.")
    parser.add_argument(
        "--offline",
        action="store_true",
        default=None,
        help="Answer with a deterministic mock instead of calling the endpoint.",
    )
    parser.add_argument("--output", default=None, help="Optional path for a JSON export.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return parser


def _configure_logging(verbose: bool) -> None:
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.INFO,
            format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
            datefmt="%H:%M:%S",
            stream=sys.stderr,
        )


def format_item(item: ReviewItem) -> str:
    outcome = item.outcome
    if isinstance(outcome, Answered):
        answer = " ".join(outcome.text.split())
    else:
        answer = f"FAILED[{outcome.reason}] {outcome.error}"
    if len(answer) > ANSWER_PREVIEW_CHARS:
        answer = answer[: ANSWER_PREVIEW_CHARS - 3] + "..."
    return f"{item.fragment.location}\t{item.fragment.line_range}\t{answer}"


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    try:
        config = load_config(
            model=args.model,
            lines_per_block=args.lines_per_block,
            blocks_per_fragment=args.blocks_per_fragment,
            temperature=args.temperature,
            url=args.url,
            token=args.token,
            max_tokens=args.max_tokens,
            concurrency=args.concurrency,
            timeout_s=args.timeout_s,
            system_prompt=args.system_prompt,
            offline=args.offline,
        )
        items = run_review(args.files, args.question, config)
    except (ConfigError, ReadError) as exc:
        sys.stderr.write(f"ERROR: {exc}\n")
        return 2
    except KeyboardInterrupt:
        sys.stderr.write("Interrupted; pending fragments were discarded.\n")
        return 130

    for item in items:
        print(format_item(item))

    if args.output:
        path = export_review(items, args.output, question=args.question, config=config)
        log.info("Wrote %s", path)

    summary = summarize(items)
    mean = f", mean score {summary.mean_score:.3f}" if summary.mean_score is not None else ""
    print(
        f"{summary.fragments} fragments from {summary.files} files: "
        f"{summary.answered} answered, {summary.failed} failed{mean}"
    )
    return 0


def run() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    run()
