"""The ``cloud`` command: the session's API as seen from inside the shell."""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from typing import List

from .errors import FileAccessError, SizeLimitExceeded
from .filesync import FileSync, LocalFilesystem
from .shell import CommandError, Shell, complete_multi

log = logging.getLogger(__name__)

USAGE = """\
cloud: <subcommand> [args]
Communicate with the remote viewer
Subcommands:
  edit <file> Open a file on the remote server.
  token       Display the token for this
              connection."""

SUBCOMMANDS = [("edit", True), ("token", False)]
HELP_WORDS = frozenset({"help", "--help", "-h", "-?"})


@dataclass(slots=True)
class SessionApi:
    """What a running session exposes to the local task."""

    session_token: str
    filesync: FileSync

    def token(self) -> str:
        return self.session_token

    def edit(self, path: str) -> None:
        self.filesync.request_edit(path)


class _EditParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise CommandError(f"cloud edit: {message}")


class CloudCommand:
    description = "Talk to the remote viewer (edit, token)"

    def __init__(self, api: SessionApi, fs: LocalFilesystem, default_extension: str = ""):
        self.api = api
        self.fs = fs
        self.default_extension = default_extension
        self.edit_parser = _EditParser(prog="cloud edit", add_help=False)
        self.edit_parser.add_argument("file", nargs="?")

    def run(self, shell: Shell, args: List[str]) -> None:
        subcommand = args[0] if args else None
        if subcommand in ("edit", "e"):
            self.edit(shell, args[1:])
        elif subcommand in ("token", "-t"):
            shell.print(self.api.token())
        elif subcommand in HELP_WORDS:
            shell.print(USAGE)
        elif subcommand is None:
            raise CommandError(USAGE)
        else:
            raise CommandError(f"{subcommand!r} is not a cloud catcher subcommand, run with --h for more info")

    def resolve(self, path: str) -> str:
        """Append the default extension to a new file named without one."""
        extension = self.default_extension.lstrip(".")
        if extension and "." not in path.rsplit("/", 1)[-1] and not self.fs.exists(path):
            return f"{path}.{extension}"
        return path

    def edit(self, shell: Shell, args: List[str]) -> None:
        if args and args[0] in HELP_WORDS:
            shell.print(USAGE)
            return
        file = self.edit_parser.parse_args(args).file
        if file is None:
            raise CommandError(USAGE)

        try:
            resolved = self.resolve(file)
            if self.fs.is_dir(resolved):
                raise CommandError(f"{file!r} is a directory")
            if self.fs.is_read_only(resolved):
                if not self.fs.exists(resolved):
                    raise CommandError(f"{file!r} does not exist")
                shell.print(f"{file!r} is read only, will not be able to modify")
            self.api.edit(resolved)
        except (FileAccessError, SizeLimitExceeded) as e:
            raise CommandError(str(e)) from e
        log.debug("cloud edit %s", resolved)

    def complete(self, shell: Shell, index: int, text: str, previous: List[str]) -> List[str]:
        if index == 1:
            return complete_multi(text, SUBCOMMANDS)
        if index == 2 and previous[1] in ("edit", "e"):
            return self.fs.complete(text)
        return []
