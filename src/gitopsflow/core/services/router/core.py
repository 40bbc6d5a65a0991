from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

import click

from gitopsflow.core.config import Settings
from gitopsflow.core.models import Event, EventType, HandleResponse, HandleStatus, Project
from gitopsflow.core.services.executor import BaseExecutor, ExecutionResult
from gitopsflow.exception import GitOpsFlowError
from gitopsflow.model import Group, Job

from .exceptions import RouterConfigError


@dataclass
class EventContext:
    """
    Всё, что нужно обработчику одного события. Создаётся роутером
    на каждое событие и выбрасывается после обработки - общего
    изменяемого состояния между событиями нет.

    logs / warnings / jobs - то, что уйдёт в HandleResponse.
    """

    event: Event
    project: Project
    settings: Settings
    executor: BaseExecutor
    logs: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    jobs: List[str] = field(default_factory=list)
    status: HandleStatus = HandleStatus.OK
    err: bool = False  # прогресс в stderr (stdout занят JSON-ответом)

    def echo(self, message: str) -> None:
        click.echo(message, err=self.err)
        self.logs.append(message)

    def warn(self, message: str) -> None:
        click.echo(message, err=True)
        self.warnings.append(message)

    def filtered(self, reason: str) -> None:
        """
        Обработчик сознательно пропускает событие. Это не ошибка,
        но в логах должно отличаться от тихого падения.
        """
        self.status = HandleStatus.FILTERED
        self.echo(f"[FILTERED] {reason}")

    def job(self, **fields) -> Job:
        fields.setdefault("timeout", self.settings.job_timeout)
        return Job(**fields)

    async def run_each(self, *jobs: Job) -> List[ExecutionResult]:
        group = Group()
        for job in jobs:
            group.add(job)
        self.echo(f"Запускаем группу: {', '.join(job.name for job in jobs)}")
        try:
            return await group.run_each(self.executor, err=self.err)
        finally:
            self.jobs.extend(result.job_name for result in group.results)

    def response(self) -> HandleResponse:
        return HandleResponse(
            status=self.status,
            event_type=self.event.type.value,
            build_id=self.event.build_id,
            jobs=self.jobs,
            warnings=self.warnings,
            logs=self.logs,
        )


Handler = Callable[[EventContext], Awaitable[None]]


class EventRouter:
    """
    Таблица EventType -> обработчик.

    Событие без обработчика (в том числе UNKNOWN) молча игнорируется:
    вебхуки присылают много типов, которые нам не нужны. Обработчик
    вызывается не больше одного раза, повторов роутер не делает.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        executor: Optional[BaseExecutor] = None,
        err: bool = False,
    ) -> None:
        self.settings = settings or Settings()
        self.executor = executor
        self.err = err
        self._handlers: Dict[EventType, Handler] = {}

    def register(self, event_type: EventType, handler: Optional[Handler] = None):
        """
        router.register(EventType.PUSH, handle_push) или как декоратор:
        @router.register(EventType.PUSH).
        """
        event_type = EventType.parse(event_type)
        if event_type is EventType.UNKNOWN:
            raise RouterConfigError("handler for UNKNOWN events is not allowed")

        def decorator(func: Handler) -> Handler:
            if event_type in self._handlers:
                raise RouterConfigError(f"handler for {event_type.value} already registered")
            self._handlers[event_type] = func
            return func

        if handler is not None:
            return decorator(handler)
        return decorator

    def handler_for(self, event_type: EventType) -> Optional[Handler]:
        return self._handlers.get(event_type)

    def check_exhaustive(self) -> None:
        missing = [t.value for t in EventType.routable() if t not in self._handlers]
        if missing:
            raise RouterConfigError(f"no handlers for {', '.join(missing)}")

    async def dispatch(self, event: Event, project: Project) -> HandleResponse:
        handler = self._handlers.get(event.type)
        if handler is None:
            message = f"[IGNORED] no handler for event type {event.raw_type or event.type.value!r}"
            click.echo(message, err=self.err)
            return HandleResponse(
                status=HandleStatus.IGNORED,
                event_type=event.raw_type or event.type.value,
                build_id=event.build_id,
                logs=[message],
            )

        if self.executor is None:
            raise RouterConfigError("no executor configured")

        ctx = EventContext(
            event=event,
            project=project,
            settings=self.settings,
            executor=self.executor,
            err=self.err,
        )
        ctx.echo(f'[EVENT] "{event.type.value}" - build ID: {event.build_id}')
        try:
            await handler(ctx)
        except GitOpsFlowError as e:
            e.logs[:0] = ctx.logs
            raise
        return ctx.response()
