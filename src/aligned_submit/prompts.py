"""Interactive prompts, injectable so the workflow can run headless."""
from __future__ import annotations

from typing import Protocol

import click


class PromptProvider(Protocol):
    def password(self, message: str) -> str: ...

    def confirm(self, message: str) -> bool: ...


class ConsolePromptProvider:
    """Prompts on the controlling terminal. Both calls block."""

    def password(self, message: str) -> str:
        return click.prompt(message.rstrip(": "), hide_input=True)

    def confirm(self, message: str) -> bool:
        return click.confirm(message, default=False)


class StaticPromptProvider:
    """Answers prompts from fixed values."""

    def __init__(self, password: str = "", confirm: bool = True):
        self._password = password
        self._confirm = confirm

    def password(self, message: str) -> str:
        return self._password

    def confirm(self, message: str) -> bool:
        return self._confirm
