"""Tests for the command line front-end"""

import json

import pytest

from storyshelf.cli import build_parser, main


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    for name in ["STORYSHELF_SETTINGS", "STORYSHELF_BACKEND", "STORYSHELF_BACKEND_URL"]:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("STORYSHELF_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("STORYSHELF_TOKEN_SECRET", "cli-test-secret")
    monkeypatch.setenv("STORYSHELF_LOG_LEVEL", "WARNING")
    books = tmp_path / "books.json"
    books.write_text(json.dumps({"books": [{"id": 7, "title": "The Moon Cat", "pages": ["a", "b"]}]}))
    return tmp_path


def test_session_survives_between_invocations(workspace, capsys):
    assert main(["import-books", str(workspace / "books.json")]) == 0
    assert main(["signup", "kid@example.com", "--password", "p@ss1234", "--name", "Kid"]) == 0
    capsys.readouterr()

    assert main(["whoami"]) == 0
    assert "kid@example.com" in capsys.readouterr().out

    assert main(["favorite", "7"]) == 0
    assert main(["progress", "7", "1", "--finished"]) == 0
    assert main(["signout"]) == 0
    capsys.readouterr()

    assert main(["whoami"]) == 0
    assert "Not signed in" in capsys.readouterr().out


def test_per_user_command_without_session_exits_1(workspace, capsys):
    assert main(["favorite", "7"]) == 1
    assert "Sign in" in capsys.readouterr().out


def test_wrong_password_exits_1(workspace, capsys):
    assert main(["signup", "kid@example.com", "--password", "p@ss1234"]) == 0
    assert main(["signout"]) == 0
    capsys.readouterr()

    assert main(["signin", "kid@example.com", "--password", "nope"]) == 1
    assert "Invalid email or password" in capsys.readouterr().out


def test_invalid_settings_exit_2(workspace, monkeypatch):
    monkeypatch.setenv("STORYSHELF_BACKEND", "rest")
    assert main(["whoami"]) == 2


def test_negative_page_rejected():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["progress", "7", "-1"])
