import asyncio
import os
import re
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, List, Optional

import click

from gitopsflow.core.animation import run as run_animation
from gitopsflow.core.config import DEFAULT_SOURCE_DIR

from .models import ExecutionResult

if TYPE_CHECKING:
    from gitopsflow.model import Job


SHARED_VOLUME = "gitopsflow-shared"
SHARED_MOUNT = "/mnt/gitopsflow/share"
CONTAINER_PREFIX = "gitopsflow"


def build_script(job: "Job") -> str:
    """
    Склеивает tasks в один скрипт для sh: задачи по порядку,
    в одном процессе, первая упавшая команда валит весь Job.
    """
    return "set -e\n" + "\n".join(job.tasks) + "\n"


class BaseExecutor(ABC):
    """
    Внешний исполнитель: получает Job, запускает ровно один контейнер
    и возвращает ExecutionResult. Повторов не делает.
    """

    @abstractmethod
    async def execute(self, job: "Job") -> ExecutionResult:
        ...


class DockerExecutor(BaseExecutor):
    """
    Исполнитель поверх локального docker CLI.

    - скрипт идёт в контейнер через stdin (секреты не светятся в argv);
    - env передаётся через окружение процесса docker (-e KEY без значения);
    - workspace монтируется в source_dir, если задан;
    - при storage_enabled подключается общий именованный volume;
    - контейнер именованный: при отмене (таймаут Job'а) он удаляется
      через docker rm -f, а не только клиент docker.
    """

    def __init__(
        self,
        workspace: Optional[Path] = None,
        source_dir: str = DEFAULT_SOURCE_DIR,
        docker: str = "docker",
        show_progress: bool = False,
    ) -> None:
        self.workspace = workspace
        self.source_dir = source_dir
        self.docker = docker
        self.show_progress = show_progress

    @staticmethod
    def container_name(job: "Job") -> str:
        safe = re.sub(r"[^a-zA-Z0-9_.-]", "-", job.name)
        return f"{CONTAINER_PREFIX}-{safe}-{uuid.uuid4().hex[:8]}"

    def command(self, job: "Job", name: Optional[str] = None) -> List[str]:
        cmd = [self.docker, "run", "--rm", "-i"]
        if name is not None:
            cmd += ["--name", name]
        for key in job.env:
            cmd += ["-e", key]
        if self.workspace is not None:
            cmd += ["-v", f"{Path(self.workspace).resolve()}:{self.source_dir}"]
        if job.storage_enabled:
            cmd += ["-v", f"{SHARED_VOLUME}:{SHARED_MOUNT}"]
        cmd += ["--entrypoint", "/bin/sh", job.image, "-e", "-s"]
        return cmd

    async def _run(self, job: "Job") -> ExecutionResult:
        env = dict(os.environ)
        env.update(job.env)
        name = self.container_name(job)

        process = await asyncio.create_subprocess_exec(
            *self.command(job, name),
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            env=env,
        )
        try:
            stdout, _ = await process.communicate(build_script(job).encode("utf-8"))
        except asyncio.CancelledError:
            try:
                await self._remove_container(name)
            finally:
                if process.returncode is None:
                    process.kill()
                await process.wait()
            raise

        return ExecutionResult(
            job_name=job.name,
            exit_code=process.returncode,
            output=stdout.decode("utf-8", errors="replace"),
        )

    async def _remove_container(self, name: str) -> None:
        try:
            remover = await asyncio.create_subprocess_exec(
                self.docker, "rm", "-f", name,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            click.echo(f"Не удалось остановить контейнер {name}: {e}", err=True)
            return
        await remover.wait()

    async def execute(self, job: "Job") -> ExecutionResult:
        if self.show_progress:
            return await run_animation(self._run, job, text=f"Job {job.name} ({job.image})")
        return await self._run(job)


class DryRunExecutor(BaseExecutor):
    """
    Ничего не запускает: печатает план и считает каждый Job успешным.
    Значения env не печатаются, а значения из secrets в скрипте
    заменяются на ******.
    """

    def __init__(self, secrets: Iterable[str] = (), err: bool = False) -> None:
        self.err = err
        self.executed: List[str] = []
        self.secrets = sorted((s for s in secrets if s), key=len, reverse=True)

    def _mask(self, text: str) -> str:
        for secret in self.secrets:
            text = text.replace(secret, "******")
        return text

    async def execute(self, job: "Job") -> ExecutionResult:
        self.executed.append(job.name)
        click.echo(f"--- job {job.name} [{job.image}]", err=self.err)
        if job.env:
            click.echo(f"env: {', '.join(sorted(job.env))}", err=self.err)
        click.echo(f"storage: {'on' if job.storage_enabled else 'off'}", err=self.err)
        click.echo(self._mask(build_script(job)), err=self.err)
        return ExecutionResult(job_name=job.name, exit_code=0)
