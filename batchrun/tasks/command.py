from __future__ import annotations

import asyncio
import os
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping

from batchrun.runner.types import SetupFailure, TaskDescriptor


@dataclass(frozen=True)
class CommandResult:
    index: int
    returncode: int
    stdout: str
    stderr: str
    duration_s: float


class CommandFailed(Exception):
    def __init__(self, result: CommandResult):
        detail = result.stderr.strip().splitlines()
        reason = detail[0] if detail else f"exit code = {result.returncode}"
        super().__init__(reason)
        self.result = result


def placeholders(index: int, total: int) -> dict[str, int]:
    return {"index": index, "number": index + 1, "total": total}


class CommandTaskFactory:
    def __init__(
        self,
        command: str,
        total: int,
        *,
        label: str = "task #{number}",
        env: Mapping[str, str] | None = None,
        working_dir: str | None = None,
    ):
        self.command = command
        self.total = total
        self.label = label
        self.env = dict(env or {})
        self.working_dir = working_dir

    def __call__(self, index: int) -> TaskDescriptor:
        values = placeholders(index, self.total)
        command = self.command.format_map(values)
        env = {
            **os.environ,
            **self.env,
            "BATCHRUN_INDEX": str(values["index"]),
            "BATCHRUN_NUMBER": str(values["number"]),
            "BATCHRUN_TOTAL": str(values["total"]),
        }

        async def work() -> CommandResult:
            return await run_command(command, index, env=env, cwd=self.working_dir)

        return TaskDescriptor(self.label.format_map(values), work)


async def run_command(
    command: str, index: int, *, env: Mapping[str, str], cwd: str | None = None
) -> CommandResult:
    start = time.monotonic()
    process = await asyncio.create_subprocess_shell(
        command,
        cwd=cwd or None,
        env=dict(env),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await process.communicate()
    duration = time.monotonic() - start

    result = CommandResult(
        index,
        process.returncode,
        stdout.decode("utf-8", errors="replace"),
        stderr.decode("utf-8", errors="replace"),
        duration,
    )
    if result.returncode != 0:
        raise CommandFailed(result)
    return result


def require_env(names: Iterable[str]) -> Callable[[], None]:
    required = list(names)

    def check() -> None:
        missing = [name for name in required if not os.environ.get(name)]
        if missing:
            raise SetupFailure(
                "Required environment variables are not set: " + ", ".join(missing)
            )

    return check
