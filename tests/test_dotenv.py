import argparse
import os

from streamkeeper.bootstrap import run_context_from_args
from streamkeeper.env import apply_dotenv, read_dotenv


def test_read_dotenv_handles_comments_quotes_and_export(tmp_path):
    path = tmp_path / ".env"
    path.write_text(
        "# comment\n"
        "export STREAMKEEPER_PLAYLIST_ID=PLabc\n"
        "STREAMKEEPER_KEEP_COUNT='4'  # inline\n"
        "not a setting\n"
        'LOG_LEVEL="debug"\n',
        encoding="utf-8",
    )

    assert read_dotenv(path) == {
        "STREAMKEEPER_PLAYLIST_ID": "PLabc",
        "STREAMKEEPER_KEEP_COUNT": "4",
        "LOG_LEVEL": "debug",
    }


def test_apply_dotenv_never_overrides_existing(tmp_path, monkeypatch):
    monkeypatch.setenv("STREAMKEEPER_PLAYLIST_ID", "from-shell")
    path = tmp_path / ".env"
    path.write_text(
        "STREAMKEEPER_PLAYLIST_ID=from-file\nSTREAMKEEPER_KEEP_COUNT=4\n", encoding="utf-8"
    )

    try:
        applied = apply_dotenv(path)
        assert applied == ["STREAMKEEPER_KEEP_COUNT"]
        assert os.environ["STREAMKEEPER_PLAYLIST_ID"] == "from-shell"
        assert os.environ["STREAMKEEPER_KEEP_COUNT"] == "4"
    finally:
        os.environ.pop("STREAMKEEPER_KEEP_COUNT", None)


def test_missing_dotenv_is_silent(tmp_path):
    assert apply_dotenv(tmp_path / "absent.env") == []


def test_run_context_only_carries_given_flags():
    args = argparse.Namespace(command="sync", playlist="PL1", keep=0, dry_run=False, quiet=True)

    assert run_context_from_args(args) == {
        "STREAMKEEPER_COMMAND": "sync",
        "STREAMKEEPER_PLAYLIST_ID": "PL1",
        "STREAMKEEPER_KEEP_COUNT": "0",
        "STREAMKEEPER_QUIET": "1",
    }
