"""Streamlit review portal for per-fragment answers."""

from __future__ import annotations

import logging
import shlex

import streamlit as st

from grepowski.config import ConfigError, load_config
from grepowski.ingest import ReadError, load_fragments
from grepowski.llm_client import get_llm_client
from grepowski.models import Answered, ReviewItem
from grepowski.pipeline import review_fragments, summarize

st.set_page_config(page_title="grepowski review", layout="wide")
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )
log = logging.getLogger("grepowski.portal")


def _init_state() -> None:
    st.session_state.setdefault("items", [])
    st.session_state.setdefault("question", "")
    st.session_state.setdefault("current_idx", 0)


def _render_sidebar() -> dict:
    st.sidebar.title("Run")
    paths = st.sidebar.text_area("Files (space separated, quotes allowed)", height=100)
    question = st.sidebar.text_area("Question", height=80)
    model = st.sidebar.text_input("Model")
    url = st.sidebar.text_input("Endpoint URL", value="")
    token = st.sidebar.text_input("Bearer token", value="", type="password")
    lines_per_block = st.sidebar.number_input("Lines per block", min_value=1, value=10)
    blocks_per_fragment = st.sidebar.number_input("Blocks per fragment", min_value=1, value=3)
    offline = st.sidebar.checkbox("Offline demo (no endpoint)", value=False)
    return {
        "paths": shlex.split(paths),
        "question": question.strip(),
        "overrides": {
            "model": model.strip() or None,
            "url": url.strip() or None,
            "token": token or None,
            "lines_per_block": int(lines_per_block),
            "blocks_per_fragment": int(blocks_per_fragment),
            "offline": offline or None,
        },
    }


def _run(paths: list[str], question: str, overrides: dict) -> None:
    if not question:
        st.warning("Enter a question first.")
        return
    try:
        config = load_config(**overrides)
        fragments = load_fragments(paths, config)
        client = get_llm_client(config)
    except (ConfigError, ReadError) as exc:
        st.error(str(exc))
        return

    total = len(fragments)
    progress = st.progress(0.0, text=f"0/{total}")
    done = 0

    def on_outcome(idx, fragment, outcome) -> None:
        nonlocal done
        done += 1
        progress.progress(done / total, text=f"{done}/{total} ({fragment.location})")

    log.info("Reviewing %d fragments.", total)
    st.session_state["items"] = review_fragments(
        fragments,
        question,
        config,
        client=client,
        on_outcome=on_outcome,
    )
    st.session_state["question"] = question
    st.session_state["current_idx"] = 0
    progress.empty()


def _render_summary(items: list[ReviewItem]) -> None:
    summary = summarize(items)
    cols = st.columns(4)
    cols[0].metric("Fragments", summary.fragments)
    cols[1].metric("Answered", summary.answered)
    cols[2].metric("Failed", summary.failed)
    cols[3].metric("Mean score", "-" if summary.mean_score is None else f"{summary.mean_score:.3f}")

    scores = [
        item.outcome.score
        for item in items
        if isinstance(item.outcome, Answered) and item.outcome.score is not None
    ]
    if scores:
        st.caption("Score history")
        st.line_chart(scores, height=160)


def _render_item(items: list[ReviewItem]) -> None:
    labels = [f"{item.fragment.location} ({item.fragment.line_range})" for item in items]
    idx = st.selectbox(
        "Fragment",
        options=range(len(items)),
        index=min(st.session_state["current_idx"], len(items) - 1),
        format_func=lambda i: labels[i],
    )
    st.session_state["current_idx"] = idx
    item = items[idx]

    code_col, answer_col = st.columns([3, 2])
    with code_col:
        st.code(item.fragment.text, language="text")
    with answer_col:
        outcome = item.outcome
        if isinstance(outcome, Answered):
            if outcome.score is not None:
                st.metric("Score", f"{outcome.score:.3f}")
            st.markdown(outcome.text)
        else:
            st.error(f"{outcome.reason}: {outcome.error}")


def main() -> None:
    _init_state()
    st.title("grepowski")
    params = _render_sidebar()
    if st.sidebar.button("Run", use_container_width=True):
        _run(params["paths"], params["question"], params["overrides"])

    items = st.session_state["items"]
    if not items:
        st.info("Choose files and a question, then press Run.")
        return
    st.caption(f"Question: {st.session_state['question']}")
    _render_summary(items)
    st.divider()
    _render_item(items)


if __name__ == "__main__":
    main()
