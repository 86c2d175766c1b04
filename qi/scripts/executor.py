"""
Execution of resolved scripts.

Scripts run under bash with the current environment and standard
streams, from the directory that contains them.
"""

import logging
import shutil
import subprocess
import time
from pathlib import Path
from typing import Sequence

import click

from qi.core.exceptions import ScriptError, ScriptNotFoundError
from qi.scripts.index import ScriptEntry

logger = logging.getLogger(__name__)

PREVIEW_LINES = 20


class ScriptExecutor:
    """Runs a script file and reports its exit code verbatim."""

    def __init__(self, shell: str = "bash", dry_run: bool = False):
        self.shell = shell
        self.dry_run = dry_run

    def command(self, path: Path, args: Sequence[str] = ()) -> list:
        shell = shutil.which(self.shell) or self.shell
        return [shell, str(path)] + list(args)

    def execute(self, entry: ScriptEntry, args: Sequence[str] = ()) -> int:
        """
        Run ``entry`` with ``args``.

        Returns:
            The script's exit code (0 in dry-run mode).

        Raises:
            ScriptNotFoundError: If the file disappeared since indexing.
            ScriptError: If the shell cannot be started.
        """
        path = Path(entry.absolute_path)
        if not path.is_file():
            raise ScriptNotFoundError(entry.script_name, str(path))

        cmd = self.command(path, args)
        if self.dry_run:
            self._preview(path, cmd)
            return 0

        logger.info(f"Executing {entry.script_name} from {entry.repository_name}")
        logger.debug(f"Executing: {' '.join(cmd)}")

        start = time.monotonic()
        try:
            result = subprocess.run(cmd, cwd=path.parent)
        except OSError as e:
            raise ScriptError(
                f"Cannot execute {path} with {self.shell}: {e}",
                details={"script_name": entry.script_name, "shell": self.shell},
            )
        duration = time.monotonic() - start

        if result.returncode == 0:
            logger.debug(f"Script completed successfully in {duration:.1f}s")
        else:
            logger.error(
                f"Script failed with exit code {result.returncode} (duration: {duration:.1f}s)"
            )
        return result.returncode

    def _preview(self, path: Path, cmd: list) -> None:
        click.echo(f"DRY RUN: Would execute: {' '.join(cmd)}")
        with open(path, "r", errors="replace") as f:
            lines = f.read().splitlines()
        click.echo("-" * 40)
        for number, line in enumerate(lines[:PREVIEW_LINES], start=1):
            click.echo(f"{number:6}  {line}")
        if len(lines) > PREVIEW_LINES:
            click.echo(f"... (truncated, {len(lines)} total lines)")
        click.echo("-" * 40)
