"""Concurrent per-fragment chat-completion dispatch."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed

from grepowski.aggregator import ResultAggregator
from grepowski.config import RunConfig
from grepowski.llm_client import LLMClient, RequestError
from grepowski.models import Answered, Failed, Fragment, Outcome, Query
from grepowski.prompts import build_user_prompt

log = logging.getLogger(__name__)

OutcomeCallback = Callable[[int, Fragment, Outcome], None]


class QueryDispatcher:
    """Turns every fragment into exactly one Outcome.

    Requests run on a bounded thread pool and are never retried. A failing
    fragment becomes ``Failed`` and never affects the others.
    """

    def __init__(self, client: LLMClient, config: RunConfig) -> None:
        self._client = client
        self._config = config

    def _ask(self, query: Query) -> Outcome:
        fragment = query.fragment
        prompt = build_user_prompt(
            question=query.question,
            location=fragment.location,
            line_range=fragment.line_range,
            code=fragment.text,
        )
        try:
            response = self._client.generate(prompt, system=self._config.system_prompt)
        except RequestError as exc:
            log.warning("Fragment %s failed (%s): %s", fragment.location, exc.kind, exc)
            return Failed(reason=exc.kind, error=str(exc))
        except Exception as exc:
            log.warning(
                "Fragment %s failed with %s: %s",
                fragment.location,
                exc.__class__.__name__,
                exc,
            )
            return Failed(reason="error", error=f"{exc.__class__.__name__}: {exc}")

        if not response.text.strip():
            log.warning("Fragment %s got an empty completion.", fragment.location)
            return Failed(reason="empty", error="Empty completion returned by the model.")
        return Answered(text=response.text)

    def _run_one(self, query: Query, stopped: Callable[[], bool]) -> Outcome | None:
        # Cancellation is checked before issuing; in-flight calls run to completion.
        if stopped():
            return None
        return self._ask(query)

    def dispatch(
        self,
        fragments: Sequence[Fragment],
        question: str,
        *,
        cancel_event: threading.Event | None = None,
        on_outcome: OutcomeCallback | None = None,
    ) -> ResultAggregator:
        """Query every fragment and collect outcomes into a ResultAggregator.

        If ``cancel_event`` is set (or the caller is interrupted), no new
        requests are issued and outstanding outcomes are discarded; the
        returned aggregator is then incomplete.
        """
        aggregator = ResultAggregator(fragments)
        if not fragments:
            return aggregator

        # The caller's event is only read; local aborts use a private one.
        abort = threading.Event()

        def stopped() -> bool:
            return abort.is_set() or (cancel_event is not None and cancel_event.is_set())

        workers = min(self._config.concurrency, len(fragments))
        log.info("Dispatching %d fragments with %d workers.", len(fragments), workers)

        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="grepowski")
        try:
            futures = {
                executor.submit(self._run_one, Query(fragment=fragment, question=question), stopped): idx
                for idx, fragment in enumerate(fragments)
            }
            for future in as_completed(futures):
                if stopped():
                    break
                outcome = future.result()
                if outcome is None:
                    continue
                idx = futures[future]
                aggregator.record(idx, outcome)
                if on_outcome is not None:
                    on_outcome(idx, fragments[idx], outcome)
        except BaseException:
            abort.set()
            raise
        finally:
            if stopped():
                log.warning(
                    "Run cancelled with %d/%d outcomes received; discarding the rest.",
                    aggregator.received,
                    len(aggregator),
                )
                executor.shutdown(wait=False, cancel_futures=True)
            else:
                executor.shutdown(wait=True)

        if aggregator.is_complete:
            failed = sum(1 for item in aggregator.items() if isinstance(item.outcome, Failed))
            log.info("Received %d outcomes (%d failed).", len(aggregator), failed)
        return aggregator
