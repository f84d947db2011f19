"""
Session — the interactive I/O the core needs from its caller.

The core never prints or reads stdin directly. Anything that must talk
to the user (dependency prompts, the install plan) goes through a
``Session``. The CLI provides one backed by click; tests provide a
scripted one.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Session(Protocol):
    """Line-oriented output plus blocking questions."""

    def out(self, message: str = "") -> None: ...

    def error(self, message: str) -> None: ...

    def ask_yes_no(self, question: str, default: bool = False) -> bool: ...

    def ask(self, question: str, default: str = "") -> str: ...
