import json

import openai
import pytest

import grepowski.ingest as ingest_mod
from grepowski.main import build_parser, main


@pytest.fixture(autouse=True)
def _no_env_model(monkeypatch) -> None:
    monkeypatch.delenv("GREPOWSKI_MODEL", raising=False)
    monkeypatch.delenv("GREPOWSKI_OFFLINE", raising=False)
    monkeypatch.delenv("GREPOWSKI_LINES_PER_BLOCK", raising=False)


def test_parser_accepts_question_files_and_flags() -> None:
    args = build_parser().parse_args(["-m", "qwen", "-l", "5", "--offline", "Is it safe?", "a.py", "b.py"])
    assert args.question == "Is it safe?"
    assert args.files == ["a.py", "b.py"]
    assert args.lines_per_block == 5
    assert args.blocks_per_fragment is None
    assert args.offline is True


def test_invalid_config_fails_before_reading_files(monkeypatch, tmp_path, capsys) -> None:
    def fail_read(path):
        raise AssertionError("No file may be read with invalid configuration.")

    monkeypatch.setattr(ingest_mod, "read_lines", fail_read)
    code = main(["-m", "m", "-l", "0", "q", str(tmp_path / "a.py")])

    assert code == 2
    assert "lines_per_block" in capsys.readouterr().err


def test_missing_model_exits_non_zero(tmp_path, capsys) -> None:
    code = main(["q", str(tmp_path / "a.py")])
    assert code == 2
    assert "model" in capsys.readouterr().err


def test_unreadable_file_exits_non_zero(tmp_path, capsys) -> None:
    code = main(["-m", "m", "--offline", "q", str(tmp_path / "missing.py")])
    assert code == 2
    assert "missing.py" in capsys.readouterr().err


def test_sdk_setup_failure_exits_non_zero(monkeypatch, tmp_path, capsys) -> None:
    def broken(**kwargs):
        raise openai.OpenAIError("client setup failed")

    monkeypatch.setattr(openai, "OpenAI", broken)
    a = tmp_path / "a.py"
    a.write_text("x = 1\n", encoding="utf-8")

    assert main(["-m", "m", "q", str(a)]) == 2
    assert "client setup failed" in capsys.readouterr().err


def test_offline_run_prints_items_and_exports(tmp_path, capsys) -> None:
    a = tmp_path / "a.py"
    b = tmp_path / "b.py"
    a.write_text("print('a')\n" * 5, encoding="utf-8")
    b.write_text("print('b')\n" * 5, encoding="utf-8")
    out = tmp_path / "review.json"

    code = main(
        ["-m", "m", "-l", "10", "-b", "1", "--offline", "--output", str(out), "q", str(a), str(b)]
    )

    assert code == 0
    printed = capsys.readouterr().out.strip().splitlines()
    assert printed[0].startswith(f"{a}:1\t1-5\t")
    assert printed[1].startswith(f"{b}:1\t1-5\t")
    assert printed[-1].startswith("2 fragments from 2 files: 2 answered, 0 failed")
    assert len(json.loads(out.read_text(encoding="utf-8"))["items"]) == 2
