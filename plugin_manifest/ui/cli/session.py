"""
Click-backed session — how the core talks to a terminal user.
"""

from __future__ import annotations

import click


class ClickSession:
    """Session implementation over click's echo/confirm/prompt.

    With ``err=True`` all session output (prompts included) goes to
    stderr, keeping stdout clean for ``--json``.
    """

    def __init__(self, err: bool = False):
        self.err = err

    def out(self, message: str = "") -> None:
        click.echo(message, err=self.err)

    def error(self, message: str) -> None:
        click.secho(message, fg="red", err=True)

    def ask_yes_no(self, question: str, default: bool = False) -> bool:
        return click.confirm(question, default=default, err=self.err)

    def ask(self, question: str, default: str = "") -> str:
        return click.prompt(question, default=default, show_default=bool(default), err=self.err)
