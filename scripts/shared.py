#!/usr/bin/env python3
"""Shared script utilities.

Keep scripts tiny: centralize structured logging + git invocation.
"""

from __future__ import annotations

import json
import logging
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any


def configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr)


def log_event(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    payload = {"event": event, **fields}
    logger.log(level, json.dumps(payload, sort_keys=True, default=str))


class GitCommandError(RuntimeError):
    def __init__(self, argv: list[str], returncode: int, output: str):
        self.argv = argv
        self.returncode = returncode
        self.output = output
        message = f"{' '.join(argv)} failed (exit {returncode})"
        if output:
            message = f"{message}: {output}"
        super().__init__(message)


@dataclass(frozen=True)
class GitResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class GitRunner:
    """Run git synchronously in a fixed working directory, logging every command first."""

    def __init__(
        self,
        logger: logging.Logger,
        *,
        cwd: Path,
        dry_run: bool = False,
        executable: str = "git",
    ):
        self.logger = logger
        self.cwd = cwd
        self.dry_run = dry_run
        self.executable = executable

    def run(self, *args: str, check: bool = True, mutating: bool = False) -> GitResult:
        argv = [self.executable, *args]

        if mutating and self.dry_run:
            log_event(self.logger, logging.INFO, "git_command_skipped", argv=argv, cwd=self.cwd)
            return GitResult(returncode=0, stdout="", stderr="")

        log_event(self.logger, logging.INFO, "git_command", argv=argv, cwd=self.cwd)
        completed = subprocess.run(
            argv,
            cwd=self.cwd,
            check=False,
            capture_output=True,
            text=True,
        )
        result = GitResult(
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
        if check and not result.ok:
            raise GitCommandError(argv, result.returncode, result.stderr.strip() or result.stdout.strip())
        return result

    def output(self, *args: str) -> str:
        return self.run(*args).stdout.strip()
