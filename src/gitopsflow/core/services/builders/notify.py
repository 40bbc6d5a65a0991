from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from gitopsflow.core.config import SLACK_NOTIFY_IMAGE
from gitopsflow.core.models import Project
from gitopsflow.model import Job


class NotificationKind(str, Enum):
    INFRA_UPDATE = "infra_update"
    PENDING_APPROVAL = "pending_approval"
    DEPLOY_SUCCESS = "deploy_success"


# (заголовок, цвет) - цвета фиксированы, по ним в канале различают события
NOTIFICATION_STYLES: Dict[NotificationKind, Tuple[str, str]] = {
    NotificationKind.INFRA_UPDATE: ("Infra Config Update", "#89ddff"),
    NotificationKind.PENDING_APPROVAL: ("PR Awaiting Approval", "#ffcb6b"),
    NotificationKind.DEPLOY_SUCCESS: ("Deploy Production", "#c3e88d"),
}

SHORT_SHA_LENGTH = 7


@dataclass(frozen=True)
class Artifact:
    """
    Вторая строка уведомления: что именно произошло.
    kind  - подпись строки ("Docker image", "PR", "Commit");
    url   - ссылка;
    label - текст ссылки.
    """

    kind: str
    url: str
    label: str


def _escape(text: str) -> str:
    # управляющие символы разметки Slack
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def link(url: str, label: str) -> str:
    return f"<{_escape(url).replace('|', '%7C')}|{_escape(label)}>"


def project_url(project: Project) -> str:
    return f"https://{project.name}"


def build_url(project: Project, build_id: str) -> str:
    return f"{project.secret('KASHTI_URL')}/#!/build/{build_id}"


def image_artifact(image: str) -> Artifact:
    return Artifact(kind="Docker image", url=f"https://{image}", label=image)


def pull_request_artifact(title: str, html_url: str) -> Artifact:
    return Artifact(kind="PR", url=html_url, label=title)


def commit_artifact(project: Project, commit: str) -> Artifact:
    return Artifact(
        kind="Commit",
        url=f"https://{project.name}/commit/{commit}",
        label=commit[:SHORT_SHA_LENGTH],
    )


def make_notification_message(project: Project, artifact: Artifact, build_id: str) -> str:
    return "\n".join(
        [
            f"Project {link(project_url(project), project.name)}",
            f"{artifact.kind} {link(artifact.url, artifact.label)}",
            f"Build {link(build_url(project, build_id), build_id)}",
        ]
    )


def make_notification_job(
    kind: NotificationKind,
    project: Project,
    artifact: Artifact,
    build_id: str,
    name: str,
    timeout: Optional[float] = None,
) -> Job:
    """
    Job уведомления в Slack через образ slack-notify.
    Всё содержимое уходит через env, в скрипт ничего не подставляется.
    """
    title, color = NOTIFICATION_STYLES[kind]
    return Job(
        name=name,
        image=SLACK_NOTIFY_IMAGE,
        tasks=["/slack-notify"],
        env={
            "SLACK_WEBHOOK": project.secret("SLACK_WEBHOOK"),
            "SLACK_TITLE": title,
            "SLACK_MESSAGE": make_notification_message(project, artifact, build_id),
            "SLACK_COLOR": color,
        },
        storage_enabled=False,
        timeout=timeout,
    )
