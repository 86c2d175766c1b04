"""
Selection of one script when several repositories provide the same name.

The resolver never picks a candidate on its own when there is more than
one: the choice always comes from a SelectionPrompt, which is interactive
on a terminal and scripted elsewhere.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Sequence

import click

from qi.core.exceptions import InvalidSelectionError
from qi.scripts.index import ScriptEntry

logger = logging.getLogger(__name__)


class SelectionPrompt(ABC):
    """Requests a 1-based candidate number from the operator."""

    @abstractmethod
    def show(self, script_name: str, candidates: List[str]) -> None:
        """Present the numbered candidate descriptions."""
        pass

    @abstractmethod
    def ask(self, count: int) -> str:
        """Return the raw answer for a choice between 1 and ``count``."""
        pass

    def report_invalid(self, error: InvalidSelectionError) -> None:
        """Called before re-prompting after an invalid answer."""
        pass


class ClickSelectionPrompt(SelectionPrompt):
    """Interactive prompt on the terminal."""

    def show(self, script_name: str, candidates: List[str]) -> None:
        click.echo(f"Multiple scripts found with name '{script_name}':", err=True)
        for line in candidates:
            click.echo(line, err=True)
        click.echo("", err=True)

    def ask(self, count: int) -> str:
        return click.prompt(f"Select repository [1-{count}]", type=str, err=True)

    def report_invalid(self, error: InvalidSelectionError) -> None:
        click.echo(f"Please enter a number between 1 and {error.count}", err=True)


class FixedSelectionPrompt(SelectionPrompt):
    """Answers from a predetermined sequence of selections."""

    def __init__(self, answers: Iterable):
        self._answers = [str(a) for a in answers]
        self._last = None
        self.shown: List[List[str]] = []

    def show(self, script_name: str, candidates: List[str]) -> None:
        self.shown.append(list(candidates))

    def ask(self, count: int) -> str:
        if not self._answers:
            if self._last is not None:
                raise InvalidSelectionError(self._last, count)
            raise InvalidSelectionError(
                None, count, "No selection available for an ambiguous script name"
            )
        self._last = self._answers.pop(0)
        return self._last


class NonInteractivePrompt(SelectionPrompt):
    """Used when stdin is not a terminal: ambiguity is an error."""

    def show(self, script_name: str, candidates: List[str]) -> None:
        click.echo(f"Multiple scripts found with name '{script_name}':", err=True)
        for line in candidates:
            click.echo(line, err=True)

    def ask(self, count: int) -> str:
        raise InvalidSelectionError(
            None,
            count,
            f"Ambiguous script name and no terminal to prompt on; "
            f"pass --select N (1-{count})",
        )


def parse_selection(answer, count: int) -> int:
    """
    Convert a raw answer into a 0-based index.

    Raises:
        InvalidSelectionError: If the answer is not an integer in [1, count].
    """
    try:
        choice = int(str(answer).strip())
    except (TypeError, ValueError):
        raise InvalidSelectionError(answer, count)
    if not 1 <= choice <= count:
        raise InvalidSelectionError(answer, count)
    return choice - 1


class ConflictResolver:
    """
    Picks exactly one ScriptEntry from a lookup result.

    Args:
        prompt: Source of operator selections.
        repository_urls: Repository name to source URL, shown with candidates.
        max_attempts: Invalid answers tolerated before giving up.
    """

    def __init__(
        self,
        prompt: SelectionPrompt,
        repository_urls: Optional[Dict[str, str]] = None,
        max_attempts: int = 3,
    ):
        self.prompt = prompt
        self.repository_urls = repository_urls or {}
        self.max_attempts = max_attempts

    def describe(self, entries: Sequence[ScriptEntry]) -> List[str]:
        lines = []
        for number, entry in enumerate(entries, start=1):
            url = self.repository_urls.get(entry.repository_name, "unknown")
            lines.append(
                f"{number}. {entry.repository_name} ({entry.relative_path}) [{url}]"
            )
        return lines

    def resolve(self, entries: Sequence[ScriptEntry]) -> ScriptEntry:
        """
        Return the single entry, or the one the operator selects.

        Raises:
            ValueError: If ``entries`` is empty.
            InvalidSelectionError: After ``max_attempts`` invalid answers, or
                when the prompt cannot ask at all.
        """
        if not entries:
            raise ValueError("resolve() requires at least one entry")
        if len(entries) == 1:
            return entries[0]

        count = len(entries)
        self.prompt.show(entries[0].script_name, self.describe(entries))

        error = None
        for attempt in range(1, self.max_attempts + 1):
            answer = self.prompt.ask(count)
            try:
                selected = entries[parse_selection(answer, count)]
            except InvalidSelectionError as e:
                error = e
                logger.debug(f"Invalid selection {answer!r} (attempt {attempt})")
                if attempt < self.max_attempts:
                    self.prompt.report_invalid(e)
                continue
            logger.debug(
                f"Selected '{selected.script_name}' from '{selected.repository_name}'"
            )
            return selected

        raise error
