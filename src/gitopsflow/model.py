import asyncio
from typing import Dict, List, Optional

import click
from pydantic import BaseModel, Field, PrivateAttr, field_validator

from gitopsflow.core.ci_scripts import RESERVED_ENV_PREFIX
from gitopsflow.core.services.executor import BaseExecutor, ExecutionResult
from gitopsflow.core.services.executor.exceptions import (
    GroupExecutionFailure,
    GroupReuseError,
    JobExecutionFailure,
    JobReuseError,
    JobTimeoutError,
)


class Job(BaseModel):
    """
    Единица работы: один контейнер, в котором по порядку выполняются tasks.

    Job одноразовый: его либо запускают напрямую через run(),
    либо отдают в Group - но не то и другое и не дважды.
    """

    name: str = Field(min_length=1)
    image: str = Field(min_length=1)
    tasks: List[str] = Field(default_factory=list)
    env: Dict[str, str] = Field(default_factory=dict)
    storage_enabled: bool = False
    timeout: Optional[float] = None  # секунды, None - без ограничения

    _claimed_by: Optional[str] = PrivateAttr(default=None)

    @field_validator("env")
    @classmethod
    def _no_reserved_env(cls, env: Dict[str, str]) -> Dict[str, str]:
        reserved = sorted(key for key in env if key.startswith(RESERVED_ENV_PREFIX))
        if reserved:
            raise ValueError(
                f"env keys {reserved} clash with script variables ({RESERVED_ENV_PREFIX}*)"
            )
        return env

    @property
    def claimed(self) -> bool:
        return self._claimed_by is not None

    def claim(self, owner: str) -> None:
        if self._claimed_by is not None:
            raise JobReuseError(job=self.name, owner=self._claimed_by)
        self._claimed_by = owner

    async def run(self, executor: BaseExecutor) -> ExecutionResult:
        """
        Запуск вне группы (fire-and-forget с точки зрения пайплайна).
        """
        self.claim("standalone")
        return await self._execute(executor)

    async def _execute(self, executor: BaseExecutor) -> ExecutionResult:
        if not self.tasks:
            raise JobExecutionFailure(job=self.name, reason="job has no tasks")

        try:
            if self.timeout is None:
                result = await executor.execute(self)
            else:
                result = await self._execute_with_timeout(executor)
        except JobExecutionFailure:
            raise
        except OSError as e:
            raise JobExecutionFailure(job=self.name, reason=f"executor error: {e}")

        if result.exit_code != 0:
            raise JobExecutionFailure(
                job=self.name,
                reason=f"exit code {result.exit_code}",
                exit_code=result.exit_code,
                logs=result.output_lines(),
            )
        return result

    async def _execute_with_timeout(self, executor: BaseExecutor) -> ExecutionResult:
        # не wait_for: TimeoutError самого исполнителя - это не таймаут Job'а
        task = asyncio.ensure_future(executor.execute(self))
        try:
            done, _ = await asyncio.wait({task}, timeout=self.timeout)
        except asyncio.CancelledError:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise
        if task not in done:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise JobTimeoutError(job=self.name, timeout=self.timeout)
        return task.result()


class Group(BaseModel):
    """
    Упорядоченный набор Job'ов. Одноразовый: после старта
    ни добавить задачу, ни запустить ещё раз нельзя.
    """

    jobs: List[Job] = Field(default_factory=list)

    _started: bool = PrivateAttr(default=False)
    _results: List[ExecutionResult] = PrivateAttr(default_factory=list)

    def model_post_init(self, __context) -> None:
        for job in self.jobs:
            job.claim("group")

    @property
    def results(self) -> List[ExecutionResult]:
        """
        Успешно завершившиеся задачи, в порядке завершения.
        """
        return list(self._results)

    def add(self, job: Job) -> "Group":
        if self._started:
            raise GroupReuseError("Group already started, can't add job " + job.name)
        job.claim("group")
        self.jobs.append(job)
        return self

    def _start(self) -> None:
        if self._started:
            raise GroupReuseError("Group already started")
        self._started = True

    async def run_each(self, executor: BaseExecutor, err: bool = False) -> List[ExecutionResult]:
        """
        Строго по порядку добавления, следующий - только после того,
        как предыдущий завершился. Первая ошибка останавливает группу
        и пробрасывается вызывающему.
        """
        self._start()
        for position, job in enumerate(self.jobs):
            click.echo(f"[{position + 1}/{len(self.jobs)}] Запускаем job {job.name}", err=err)
            try:
                self._results.append(await job._execute(executor))
            except JobExecutionFailure:
                skipped = [j.name for j in self.jobs[position + 1:]]
                if skipped:
                    click.echo(f"Job {job.name} упал, пропускаем: {', '.join(skipped)}", err=True)
                raise
        return self.results

    async def run_all(self, executor: BaseExecutor) -> List[ExecutionResult]:
        """
        Стартует все задачи сразу и ждёт все; ошибки не прерывают
        остальных, а собираются в GroupExecutionFailure.
        """
        self._start()
        outcomes = await asyncio.gather(
            *(job._execute(executor) for job in self.jobs),
            return_exceptions=True,
        )

        self._results.extend(o for o in outcomes if isinstance(o, ExecutionResult))
        failures = [o for o in outcomes if isinstance(o, JobExecutionFailure)]
        unexpected = [o for o in outcomes if isinstance(o, BaseException) and not isinstance(o, JobExecutionFailure)]
        if unexpected:
            raise unexpected[0]
        if failures:
            raise GroupExecutionFailure(failures=failures)
        return list(outcomes)
