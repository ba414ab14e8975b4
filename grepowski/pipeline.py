"""End-to-end pipeline: files -> fragments -> outcomes -> ordered review items."""

from __future__ import annotations

import json
import threading
from collections.abc import Sequence
from pathlib import Path

from grepowski.config import RunConfig
from grepowski.dispatcher import OutcomeCallback, QueryDispatcher
from grepowski.ingest import load_fragments
from grepowski.llm_client import LLMClient, get_llm_client
from grepowski.models import Answered, Failed, Fragment, ReviewItem, ReviewSummary


def review_fragments(
    fragments: Sequence[Fragment],
    question: str,
    config: RunConfig,
    *,
    client: LLMClient | None = None,
    cancel_event: threading.Event | None = None,
    on_outcome: OutcomeCallback | None = None,
) -> list[ReviewItem]:
    dispatcher = QueryDispatcher(client or get_llm_client(config), config)
    aggregator = dispatcher.dispatch(
        fragments,
        question,
        cancel_event=cancel_event,
        on_outcome=on_outcome,
    )
    return aggregator.items()


def run_review(
    paths: Sequence[str | Path],
    question: str,
    config: RunConfig,
    *,
    client: LLMClient | None = None,
    cancel_event: threading.Event | None = None,
    on_outcome: OutcomeCallback | None = None,
) -> list[ReviewItem]:
    fragments = load_fragments(paths, config)
    return review_fragments(
        fragments,
        question,
        config,
        client=client,
        cancel_event=cancel_event,
        on_outcome=on_outcome,
    )


def summarize(items: Sequence[ReviewItem]) -> ReviewSummary:
    scores = [
        item.outcome.score
        for item in items
        if isinstance(item.outcome, Answered) and item.outcome.score is not None
    ]
    return ReviewSummary(
        fragments=len(items),
        answered=sum(1 for item in items if isinstance(item.outcome, Answered)),
        failed=sum(1 for item in items if isinstance(item.outcome, Failed)),
        files=len({item.fragment.file for item in items}),
        mean_score=sum(scores) / len(scores) if scores else None,
    )


def export_review(
    items: Sequence[ReviewItem],
    output_json_path: str | Path,
    *,
    question: str = "",
    config: RunConfig | None = None,
) -> Path:
    out_path = Path(output_json_path).expanduser().resolve()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "question": question,
        "model": config.model if config else None,
        "summary": summarize(items).model_dump(),
        "items": [item.model_dump(mode="json") for item in items],
    }
    out_path.write_text(json.dumps(payload, indent=2, ensure_ascii=True), encoding="utf-8")
    return out_path
