from typing import List, Optional

from gitopsflow.exception import GitOpsFlowError


class GitExceptions(GitOpsFlowError):
    """
    Базовое исключение для подготовки рабочей копии репозитория.

    Дополнительно хранит логи (steps), накопленные во время операции.
    """

    def __init__(
        self,
        *args,
        description: str = "Something happend when work with Git",
        logs: Optional[List[str]] = None,
    ) -> None:
        super().__init__(*args, description=description, logs=logs)


class GitCloneError(GitExceptions):
    """
    Не удалось склонировать репозиторий проекта или переключиться на ревизию.
    """

    def __init__(
        self,
        repository: str,
        revision: Optional[str],
        logs: Optional[List[str]] = None,
        *args,
    ) -> None:
        description = f"Error to clone repository {repository} at revision {revision or 'HEAD'}"
        super().__init__(*args, description=description, logs=logs)
        self.repository = repository
        self.revision = revision


class GitLocalPathError(GitExceptions):
    """
    Указанный локальный путь нельзя использовать как рабочую копию.
    """

    def __init__(
        self,
        path: str,
        logs: Optional[List[str]] = None,
        *args,
    ) -> None:
        description = f"Error to use local workspace path {path}"
        super().__init__(*args, description=description, logs=logs)
        self.path = path
