from typing import List, Optional

import click


class CLIException(Exception):
    def __init__(self, *args, description: str = "Something happend...", logs: Optional[List[str]] = None):
        click.echo(description, err=True)
        super().__init__(description, *args)
        self.description = description
        self.logs: List[str] = logs or []


class GitOpsFlowError(CLIException):
    """
    Базовое исключение ядра: всё, что должно дойти до роутера/CLI
    и превратиться в status="error".
    """

    def __init__(self, *args, description: str = "Something happend when handling event", logs: Optional[List[str]] = None):
        super().__init__(*args, description=description, logs=logs)


class MalformedEventError(GitOpsFlowError):
    """
    В payload события нет ожидаемых полей (или это не JSON).
    """

    def __init__(self, event_type: str, reason: str, logs: Optional[List[str]] = None, *args) -> None:
        description = f"Malformed '{event_type}' event: {reason}"
        super().__init__(*args, description=description, logs=logs)
        self.event_type = event_type
        self.reason = reason


class MissingSecretError(GitOpsFlowError):
    """
    В secrets проекта нет ключа, без которого план не собрать.
    """

    def __init__(self, project: str, key: str, *args) -> None:
        description = f"Project {project} has no secret {key}"
        super().__init__(*args, description=description)
        self.project = project
        self.key = key
