"""Interactive prompt text for the active subscription.

The prompt is derived on demand from the active subscription name and
the working directory at display time. Installing it is cosmetic:
a failing hook must never interrupt login or subscription switching.
"""

import logging
import os
from collections.abc import Callable

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = "PS [Azure:\\{subscription}] {cwd}> "


def derive_prompt_text(active_subscription_name: str, cwd: str | None = None) -> str:
    """Build the prompt string for an interactive shell.

    Args:
        active_subscription_name: Display name of the active subscription
        cwd: Working directory; read from the process when None

    Returns:
        e.g. "PS [Azure:\\Dev] /home/user> "
    """
    if cwd is None:
        cwd = os.getcwd()
    return PROMPT_TEMPLATE.format(subscription=active_subscription_name, cwd=cwd)


class PromptInstaller:
    """Best-effort sink for prompt text.

    Hooks are callables taking the new prompt string. The interactive shell
    registers one; a terminal-title hook is available for plain terminals.
    """

    def __init__(self, hooks: list[Callable[[str], None]] | None = None):
        self._hooks: list[Callable[[str], None]] = list(hooks or [])

    def add_hook(self, hook: Callable[[str], None]) -> None:
        self._hooks.append(hook)

    def install(self, text: str) -> bool:
        """Hand prompt text to every hook.

        Returns:
            True if every hook accepted the text
        """
        ok = True
        for hook in self._hooks:
            try:
                hook(text)
            except Exception as e:
                ok = False
                logger.debug(f"Prompt hook {hook!r} failed: {e}")
        return ok


def terminal_title_hook(text: str) -> None:
    """Show the prompt text as the terminal window title."""
    from prompt_toolkit.shortcuts import set_title

    set_title(text.strip())


__all__ = ["PROMPT_TEMPLATE", "PromptInstaller", "derive_prompt_text", "terminal_title_hook"]
