from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from pydantic import ValidationError

from gitopsflow.exception import GitOpsFlowError, MalformedEventError

from .config import Settings
from .models import Event, HandleResponse, HandleStatus, Project
from .services.builders.pipeline import default_router
from .services.executor import BaseExecutor, DockerExecutor, DryRunExecutor
from .services.git_module import GitWorkspace, LocalRepo


def load_event(data: Dict[str, Any]) -> Event:
    """
    :raises MalformedEventError: нет type/buildID или поля не того типа.
    """
    try:
        return Event.model_validate(data)
    except ValidationError as e:
        event_type = str(data.get("type", "unknown")) if isinstance(data, dict) else "unknown"
        raise MalformedEventError(event_type, "invalid event envelope", logs=[str(e)])


def load_project(data: Dict[str, Any]) -> Project:
    try:
        return Project.model_validate(data)
    except ValidationError as e:
        raise GitOpsFlowError(description="Invalid project definition", logs=[str(e)])


class GitOpsFlowCore:
    """
    Точка входа: событие + проект -> HandleResponse.

    Ошибки ядра (GitOpsFlowError) превращаются в status="error"
    с накопленными логами; остальные статусы выставляет роутер.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        executor: Optional[BaseExecutor] = None,
        dry_run: bool = False,
        show_progress: bool = False,
        progress_err: bool = False,
    ) -> None:
        self.settings = settings or Settings.from_env()
        self.executor = executor
        self.dry_run = dry_run
        self.show_progress = show_progress
        self.progress_err = progress_err
        self.git = GitWorkspace()

    def make_executor(self, workspace: Optional[Path] = None, secrets: Iterable[str] = ()) -> BaseExecutor:
        if self.executor is not None:
            return self.executor
        if self.dry_run:
            return DryRunExecutor(secrets=secrets, err=self.progress_err)
        return DockerExecutor(
            workspace=workspace,
            source_dir=self.settings.source_dir,
            show_progress=self.show_progress,
        )

    async def handle(
        self,
        event: Event,
        project: Project,
        workspace: Optional[Path] = None,
        clone: bool = False,
    ) -> HandleResponse:
        local: Optional[LocalRepo] = None
        logs = []
        try:
            if clone:
                local = await self.git.clone(project.repo.clone_url, event.revision.commit or None)
            elif workspace is not None:
                local = await self.git.from_existing_path(workspace)
            if local is not None:
                logs.extend(local.logs)

            router = default_router(
                self.settings,
                self.make_executor(local.repo_path if local else None, project.secrets.values()),
                err=self.progress_err,
            )
            response = await router.dispatch(event, project)
            response.logs[:0] = logs
            return response

        except GitOpsFlowError as e:
            return HandleResponse(
                status=HandleStatus.ERROR,
                event_type=event.raw_type or event.type.value,
                build_id=event.build_id,
                logs=logs + e.logs,
                error=e.description,
            )
        finally:
            if local is not None:
                local.cleanup()
