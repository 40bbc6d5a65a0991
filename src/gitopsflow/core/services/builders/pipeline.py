from typing import Dict, Optional

from gitopsflow.core.ci_scripts import (
    make_deploy_script,
    make_gitops_tasks,
    make_workdir_script,
)
from gitopsflow.core.config import HUB_IMAGE, KUBECTL_IMAGE, ImageDeletePolicy, Settings
from gitopsflow.core.models import (
    EventType,
    ImagePushPayload,
    PullRequestPayload,
    PushPayload,
)
from gitopsflow.core.services.executor import BaseExecutor
from gitopsflow.core.services.router import EventContext, EventRouter
from gitopsflow.exception import MalformedEventError

from .notify import (
    NotificationKind,
    commit_artifact,
    image_artifact,
    make_notification_job,
    pull_request_artifact,
)


BRANCH_REF_PREFIX = "refs/heads/"
HUB_SECRETS = ("GITHUB_USERNAME", "GITHUB_TOKEN")


def branch_from_ref(ref: str) -> Optional[str]:
    """
    refs/heads/master -> master. Для тегов и прочих ref'ов - None.
    """
    if not ref.startswith(BRANCH_REF_PREFIX):
        return None
    return ref[len(BRANCH_REF_PREFIX):]


async def handle_image_push(ctx: EventContext) -> None:
    """
    Новый образ в registry -> PR в репозиторий с манифестами
    (креды, identity, патч манифеста, коммит, push, pull request),
    затем уведомление. Уведомление уходит только если GitOps-джоб успешен.
    """
    event, project, settings = ctx.event, ctx.project, ctx.settings

    payload = event.parse_payload(ImagePushPayload)
    action = payload.image_data.action
    image = payload.image_data.tag

    ctx.echo(f"image action: {action}")
    ctx.echo(f"image: {image}")

    if action.upper() == "DELETE":
        if settings.image_delete_policy is ImageDeletePolicy.IGNORE:
            ctx.filtered(f"image {image} was deleted, image_delete_policy=ignore")
            return
        ctx.warn(
            f"Образ {image} удалён из registry (DELETE), но image_delete_policy=update: "
            "запускаем тот же пайплайн, что и для INSERT."
        )

    secrets: Dict[str, str] = {key: project.secret(key) for key in HUB_SECRETS}

    infra_job = ctx.job(
        name="update-infra-config-pr-prod",
        image=HUB_IMAGE,
        tasks=make_gitops_tasks(
            secrets=secrets,
            image=image,
            build_id=event.build_id,
            clone_url=project.repo.clone_url,
            source_dir=settings.source_dir,
            manifest_path=settings.manifest_path,
            container=settings.container_name,
            identity={"email": settings.bot_email, "name": settings.bot_name},
        ),
        storage_enabled=False,
    )

    slack_job = make_notification_job(
        NotificationKind.INFRA_UPDATE,
        project,
        image_artifact(image),
        event.build_id,
        name="slack-notify-update-infra-prod",
        timeout=settings.job_timeout,
    )

    await ctx.run_each(infra_job, slack_job)


async def handle_pull_request(ctx: EventContext) -> None:
    """
    Открыт PR -> только уведомление, без GitOps-действий.
    """
    payload = ctx.event.parse_payload(PullRequestPayload)
    pr = payload.pull_request
    ctx.echo(f"pull request: {pr.html_url}")

    slack_job = make_notification_job(
        NotificationKind.PENDING_APPROVAL,
        ctx.project,
        pull_request_artifact(pr.title, pr.html_url),
        ctx.event.build_id,
        name="slack-notify-pr-prod",
        timeout=ctx.settings.job_timeout,
    )

    await ctx.run_each(slack_job)


async def handle_push(ctx: EventContext) -> None:
    """
    Push в ветку деплоя -> kubectl apply манифестов и уведомление.
    Push в любую другую ветку (или тег) отфильтровывается.
    """
    event, project, settings = ctx.event, ctx.project, ctx.settings

    payload = event.parse_payload(PushPayload)
    branch = branch_from_ref(payload.ref)
    ctx.echo(f"branch: {branch}")

    if branch is None:
        ctx.filtered(f"ref {payload.ref} is not a branch")
        return
    if branch != settings.deploy_branch:
        ctx.filtered(f"branch {branch} is not the deploy branch {settings.deploy_branch}")
        return

    commit = event.revision.commit
    if not commit:
        raise MalformedEventError(event.type.value, "revision.commit is empty")

    deploy_job = ctx.job(
        name="deploy-to-prod",
        image=KUBECTL_IMAGE,
        tasks=[
            make_workdir_script(settings.source_dir),
            make_deploy_script(settings.manifests_dir),
        ],
        storage_enabled=False,
    )

    slack_job = make_notification_job(
        NotificationKind.DEPLOY_SUCCESS,
        project,
        commit_artifact(project, commit),
        event.build_id,
        name="slack-notify-deploy-prod",
        timeout=settings.job_timeout,
    )

    await ctx.run_each(deploy_job, slack_job)


async def handle_error(ctx: EventContext) -> None:
    # только лог, никаких job'ов
    ctx.echo(f'[EVENT] "error" event: {ctx.event.model_dump_json(by_alias=True)}')


DEFAULT_HANDLERS = {
    EventType.IMAGE_PUSH: handle_image_push,
    EventType.PULL_REQUEST: handle_pull_request,
    EventType.PUSH: handle_push,
    EventType.ERROR: handle_error,
}


def default_router(
    settings: Optional[Settings] = None,
    executor: Optional[BaseExecutor] = None,
    err: bool = False,
) -> EventRouter:
    """
    Роутер со всеми штатными обработчиками. Проверяет, что каждый
    известный тип события покрыт.
    """
    router = EventRouter(settings=settings, executor=executor, err=err)
    for event_type, handler in DEFAULT_HANDLERS.items():
        router.register(event_type, handler)
    router.check_exhaustive()
    return router
