from __future__ import annotations

import pytest

from cloudcatcher.cloud import CloudCommand, SessionApi
from cloudcatcher.display import FrameBuffer, HeadlessDisplay
from cloudcatcher.filesync import FileSync, LocalFilesystem
from cloudcatcher.shell import CommandError, Shell

TOKEN = "abcdefghijklmnopqrstuvwxyz012345"


@pytest.fixture
def env(tmp_path):
    (tmp_path / "a.txt").write_bytes(b"abc")
    (tmp_path / "sub").mkdir()
    sent = []
    fs = LocalFilesystem(tmp_path)
    api = SessionApi(TOKEN, FileSync(fs, sent.append))
    shell = Shell(FrameBuffer(HeadlessDisplay(51, 19)))
    cmd = CloudCommand(api, fs, default_extension="lua")
    return shell, cmd, sent


def rows(shell):
    return [line.rstrip() for line in shell.term.text]


def test_edit_sends_request(env):
    shell, cmd, sent = env
    cmd.run(shell, ["edit", "a.txt"])
    assert sent == [b"3002c52562c4a.txt\x00abc"]


def test_edit_alias_and_default_extension(env):
    shell, cmd, sent = env
    cmd.run(shell, ["e", "new"])
    assert sent == [b"300200000000new.lua\x00"]


def test_edit_directory(env):
    shell, cmd, sent = env
    with pytest.raises(CommandError, match="is a directory"):
        cmd.run(shell, ["edit", "sub"])
    assert sent == []


def test_edit_outside_root(env):
    shell, cmd, sent = env
    with pytest.raises(CommandError):
        cmd.run(shell, ["edit", "../x.txt"])
    assert sent == []


def test_edit_without_file(env):
    shell, cmd, sent = env
    with pytest.raises(CommandError):
        cmd.run(shell, ["edit"])


def test_token(env):
    shell, cmd, sent = env
    cmd.run(shell, ["token"])
    assert TOKEN in rows(shell)


def test_unknown_subcommand(env):
    shell, cmd, sent = env
    with pytest.raises(CommandError, match="not a cloud catcher subcommand"):
        cmd.run(shell, ["nope"])


def test_through_shell(env):
    shell, cmd, sent = env
    with shell.install("cloudcatcher", cmd, aliases=("cloud",)):
        shell.execute("cloud -t")
        shell.execute("cloud edit sub")
        assert shell.complete("cloud ") == ["edit ", "token"]
        assert shell.complete("cloud edit a.") == ["txt"]
        assert shell.complete("cloud token a.") == []
    assert TOKEN in rows(shell)
    assert "'sub' is a directory" in rows(shell)
