"""Interactive azsession shell.

A prompt_toolkit REPL around one AzureSession. The prompt shows the
active subscription and working directory, re-derived for every line.
Lines are dispatched to the azsession click commands, so `login`,
`use <name>`, `subscriptions --refresh` etc. all act on the same
in-memory session.
"""

import logging
import os
import shlex
from collections.abc import Callable, Iterable
from pathlib import Path

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document
from prompt_toolkit.history import FileHistory, InMemoryHistory

from azsession.session_manager import AzureSession

logger = logging.getLogger(__name__)

BUILTIN_COMMANDS = ["cd", "help", "exit", "quit"]
HISTORY_FILE = Path.home() / ".azsession" / "history"


class SubscriptionCompleter(Completer):
    """Completes command names, then cached subscription names after `use`.

    Names come from the session at completion time, so a refresh or a
    new login is picked up on the next keystroke.
    """

    def __init__(self, session: AzureSession, commands: Iterable[str]):
        self.session = session
        self.commands = sorted(set(commands) | set(BUILTIN_COMMANDS))

    def get_completions(self, document: Document, complete_event):
        text_before_cursor = document.text_before_cursor

        # First word: command names
        if " " not in text_before_cursor:
            for command in self.commands:
                if command.startswith(text_before_cursor):
                    yield Completion(text=command, start_position=-len(text_before_cursor))
            return

        command, _, partial = text_before_cursor.partition(" ")
        if command != "use":
            return

        partial = partial.lstrip()
        stripped = partial.lstrip("'\"")
        for name in sorted(self.session.subscription_names):
            if name.startswith(stripped):
                text = shlex.quote(name)
                yield Completion(
                    text=text,
                    start_position=-len(partial),
                    display=name,
                    display_meta="subscription",
                )


def change_directory(args: list[str]) -> None:
    """Shell builtin `cd`; the prompt picks the new directory up."""
    target = args[0] if args else str(Path.home())
    try:
        os.chdir(Path(target).expanduser())
    except OSError as e:
        print(f"cd: {e}")


def start_repl(
    session: AzureSession,
    dispatch: Callable[[list[str]], None],
    commands: Iterable[str],
    history_file: Path | None = HISTORY_FILE,
) -> None:
    """Run the read-eval-print loop until exit/quit/EOF.

    Args:
        session: Session shared by every dispatched command
        dispatch: Runs one parsed command line
        commands: Command names offered by the completer
        history_file: Where to keep line history (None keeps it in memory)
    """
    if history_file is not None:
        try:
            history_file.parent.mkdir(parents=True, exist_ok=True)
            history = FileHistory(str(history_file))
        except OSError as e:
            logger.debug(f"History file unavailable, using in-memory history: {e}")
            history = InMemoryHistory()
    else:
        history = InMemoryHistory()

    prompt_session = PromptSession(
        history=history,
        completer=SubscriptionCompleter(session, commands),
        complete_while_typing=True,
    )

    def message() -> str:
        return session.prompt_text()

    while True:
        try:
            line = prompt_session.prompt(message)
        except KeyboardInterrupt:
            continue
        except EOFError:
            break

        line = line.strip()
        if not line:
            continue
        if line.lower() in ("exit", "quit"):
            break

        try:
            args = shlex.split(line)
        except ValueError as e:
            print(f"Parse error: {e}")
            continue

        if args[0] == "cd":
            change_directory(args[1:])
            continue
        if args[0] == "help":
            args = ["--help"]

        dispatch(args)

    print("Goodbye!")


__all__ = ["SubscriptionCompleter", "change_directory", "start_repl"]
