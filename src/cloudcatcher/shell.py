"""Line-oriented shell, the interactive task mirrored to the viewer.

The shell draws a prompt on the active display and edits a line from
``char``, ``paste`` and ``key`` events, so it behaves the same whether the
keystrokes come from the viewer or from a local source. Commands can be
installed for the lifetime of a session with :meth:`Shell.install`.
"""

from __future__ import annotations

import logging
import shlex
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Protocol, Sequence, Tuple

from .constants import EV_TERMINATE
from .display import DEFAULT_FORE, Terminal, print_line, write_wrapped
from .events import Event
from .task import TaskBody

log = logging.getLogger(__name__)

KEY_BACKSPACE = 14
KEY_TAB = 15
KEY_ENTER = 28
KEY_NUMPAD_ENTER = 156

PROMPT_COLOUR = "4"
ERROR_COLOUR = "e"


class Terminated(Exception):
    pass


class CommandError(Exception):
    """Reported to the user; the shell keeps running."""

    pass


class Command(Protocol):
    description: str

    def run(self, shell: "Shell", args: List[str]) -> None: ...

    def complete(self, shell: "Shell", index: int, text: str, previous: List[str]) -> List[str]: ...


@dataclass
class Builtin:
    description: str
    handler: Callable[["Shell", List[str]], None]

    def run(self, shell: "Shell", args: List[str]) -> None:
        self.handler(shell, args)

    def complete(self, shell: "Shell", index: int, text: str, previous: List[str]) -> List[str]:
        return []


def complete_multi(text: str, options: Sequence[Tuple[str, bool]]) -> List[str]:
    """Suffixes of the options starting with ``text``.

    Options flagged True get a trailing space, so a unique match moves the
    user on to the next argument.
    """
    results = []
    for option, add_space in options:
        if len(option) + (1 if add_space else 0) > len(text) and option.startswith(text):
            suffix = option[len(text) :]
            results.append(suffix + " " if add_space else suffix)
    return results


class Shell:
    def __init__(self, term: Terminal, *, prompt: str = "> ", banner: str = "cloudcatcher shell"):
        self.term = term
        self.prompt = prompt
        self.banner = banner
        self.commands: Dict[str, Command] = {}
        self.aliases: Dict[str, str] = {}
        self.running = True
        self.exit_code = 0

        self.commands["help"] = Builtin("List the available commands", _help)
        self.commands["clear"] = Builtin("Clear the screen", _clear)
        self.commands["echo"] = Builtin("Print the arguments", _echo)
        self.commands["exit"] = Builtin("Leave the shell and end the session", _exit)

    @contextmanager
    def install(self, name: str, command: Command, aliases: Sequence[str] = ()) -> Iterator[Command]:
        """Register ``command`` (and its aliases) until the block exits."""
        if name in self.commands:
            raise ValueError(f"command already installed: {name}")
        self.commands[name] = command
        for alias in aliases:
            self.aliases[alias] = name
        log.debug("installed command %s", name)
        try:
            yield command
        finally:
            self.commands.pop(name, None)
            for alias in aliases:
                if self.aliases.get(alias) == name:
                    del self.aliases[alias]
            log.debug("removed command %s", name)

    def lookup(self, name: str) -> Optional[Command]:
        return self.commands.get(self.aliases.get(name, name))

    def print(self, text: str = "", colour: Optional[str] = None) -> None:
        if colour is not None:
            self.term.set_text_colour(colour)
        print_line(self.term, text)
        if colour is not None:
            self.term.set_text_colour(DEFAULT_FORE)

    def print_error(self, text: str) -> None:
        self.print(text, colour=ERROR_COLOUR)

    def run(self, first_event: Event) -> TaskBody:
        self.term.clear()
        self.term.set_cursor_pos(1, 1)
        self.print(self.banner, colour=PROMPT_COLOUR)

        while self.running:
            line = yield from self.read_line()
            self.execute(line)
        return self.exit_code

    def read_line(self) -> TaskBody:
        start_x, start_y = 1, 1
        line = ""
        shown = 0

        def draw_prompt() -> None:
            nonlocal start_x, start_y, shown
            self.term.set_text_colour(PROMPT_COLOUR)
            write_wrapped(self.term, self.prompt)
            self.term.set_text_colour(DEFAULT_FORE)
            start_x, start_y = self.term.get_cursor_pos()
            shown = 0

        def redraw() -> None:
            nonlocal shown
            width, _ = self.term.get_size()
            room = max(width - start_x, 1)
            visible = line[-room:] if len(line) > room else line
            self.term.set_cursor_pos(start_x, start_y)
            self.term.write(visible + " " * max(shown - len(visible), 0))
            self.term.set_cursor_pos(start_x + len(visible), start_y)
            shown = len(visible)

        draw_prompt()
        self.term.set_cursor_blink(True)

        while True:
            event = yield None
            if event.name == EV_TERMINATE:
                self.term.set_cursor_blink(False)
                raise Terminated("Terminated")

            if event.name in ("char", "paste"):
                line += str(event.args[0])
                redraw()
            elif event.name == "key":
                code = event.args[0]
                if code in (KEY_ENTER, KEY_NUMPAD_ENTER):
                    break
                if code == KEY_BACKSPACE and line:
                    line = line[:-1]
                    redraw()
                elif code == KEY_TAB:
                    line, candidates = self._complete_line(line)
                    if candidates:
                        print_line(self.term)
                        self.print("  ".join(candidates))
                        draw_prompt()
                    redraw()

        self.term.set_cursor_blink(False)
        print_line(self.term)
        return line

    def complete(self, line: str) -> List[str]:
        """Completion suffixes for the last word of ``line``."""
        parts = line.split(" ")
        index = len(parts) - 1
        if index == 0:
            names = sorted(set(self.commands) | set(self.aliases))
            return complete_multi(parts[0], [(name, True) for name in names])
        command = self.lookup(parts[0])
        if command is None:
            return []
        return command.complete(self, index, parts[-1], parts[:-1])

    def _complete_line(self, line: str) -> Tuple[str, List[str]]:
        """Apply a unique completion, or return the candidates to list."""
        options = self.complete(line)
        if len(options) == 1:
            return line + options[0], []
        word = line.split(" ")[-1]
        return line, [word + option.rstrip() for option in options]

    def execute(self, line: str) -> None:
        try:
            words = shlex.split(line)
        except ValueError as e:
            self.print_error(str(e))
            return
        if not words:
            return

        name, args = words[0], words[1:]
        command = self.lookup(name)
        if command is None:
            self.print_error(f"No such program: {name}")
            return
        try:
            command.run(self, args)
        except CommandError as e:
            self.print_error(str(e))


def _help(shell: Shell, args: List[str]) -> None:
    for name in sorted(shell.commands):
        shell.print(f"{name:<8} {shell.commands[name].description}")


def _clear(shell: Shell, args: List[str]) -> None:
    shell.term.clear()
    shell.term.set_cursor_pos(1, 1)


def _echo(shell: Shell, args: List[str]) -> None:
    shell.print(" ".join(args))


def _exit(shell: Shell, args: List[str]) -> None:
    code = 0
    if args:
        try:
            code = int(args[0])
        except ValueError:
            raise CommandError(f"exit: not a number: {args[0]}") from None
    shell.exit_code = code
    shell.running = False
