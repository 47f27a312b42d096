from collections.abc import Iterable
from typing import Protocol

import typer
from rich.console import Console


class Confirmation(Protocol):
    def ask(self, prompt: str) -> bool: ...


class TerminalConfirmation:
    """Single-keypress yes/no prompt. Anything other than y/Y is a no."""

    def __init__(self, console: Console):
        self.console = console

    def ask(self, prompt: str) -> bool:
        self.console.print(f"[yellow]{prompt} (y/N)[/yellow]")
        self.console.print("Enter 'y' to confirm: ", end="")
        reply = typer.getchar(echo=True)
        self.console.print()
        return reply in ("y", "Y")


class ScriptedConfirmation:
    """Answers prompts from a fixed sequence, denying once it runs out."""

    def __init__(self, answers: Iterable[bool]):
        self._answers = iter(answers)
        self.prompts: list[str] = []

    def ask(self, prompt: str) -> bool:
        self.prompts.append(prompt)
        return next(self._answers, False)
