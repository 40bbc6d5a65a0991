import asyncio
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional

from git import (
    Repo as GitRepo,
    GitCommandError,
    InvalidGitRepositoryError,
    NoSuchPathError,
)

from gitopsflow.core.config import BASE_TEMP_DIR

from .exceptions import GitCloneError, GitLocalPathError
from .models import LocalRepo
from .utils import PathLike, ensure_base_temp_dir


class GitWorkspace:
    """
    Готовит рабочую копию проекта для монтирования в контейнеры:

    - clone(clone_url, revision)   - клон во временную папку (GitPython)
                                     и checkout нужного коммита;
    - from_existing_path(path)     - уже существующая директория.

    Сам git-протокол не реализуем - всё делает GitPython/git.
    """

    def __init__(self, base_dir: PathLike = BASE_TEMP_DIR) -> None:
        self.base_dir = base_dir

    def _clone(self, clone_url: str, revision: Optional[str]) -> LocalRepo:
        logs: List[str] = []

        base_temp = ensure_base_temp_dir(self.base_dir)
        temp_root = Path(tempfile.mkdtemp(prefix="workspace_", dir=base_temp))
        repo_dir = temp_root / "repo"

        logs.append(f"Создаём временную папку: {temp_root}")
        logs.append(f"Клонируем репозиторий {clone_url!r} в {repo_dir}")

        repo_obj: Optional[GitRepo] = None
        try:
            if revision:
                repo_obj = GitRepo.clone_from(clone_url, repo_dir)
                repo_obj.git.checkout(revision)
                logs.append(f"Переключились на ревизию {revision}")
            else:
                repo_obj = GitRepo.clone_from(clone_url, repo_dir, depth=1)
            logs.append(f"Репозиторий успешно клонирован в {repo_dir}")
        except GitCommandError as e:
            logs.append("GitPython: ошибка при выполнении git.")
            logs.append(str(e))
            shutil.rmtree(temp_root, ignore_errors=True)
            raise GitCloneError(repository=clone_url, revision=revision, logs=logs)
        finally:
            if repo_obj is not None:
                repo_obj.close()

        return LocalRepo(
            root_dir=temp_root,
            repo_path=repo_dir,
            revision=revision,
            logs=logs,
            is_temporary=True,
        )

    async def clone(self, clone_url: str, revision: Optional[str] = None) -> LocalRepo:
        """
        :param clone_url: URL репозитория (https/ssh или локальный путь).
        :param revision:  Коммит для checkout; без него - неглубокий клон HEAD.
        :raises GitCloneError: при ошибках git.
        """
        return await asyncio.to_thread(self._clone, clone_url, revision)

    async def from_existing_path(self, path: PathLike) -> LocalRepo:
        """
        Использует существующую директорию как рабочую копию, ничего не копируя.

        :raises GitLocalPathError: путь не существует или это не директория.
        """
        logs: List[str] = []

        repo_path = Path(path)
        logs.append(f"Используем существующий путь как рабочую копию: {repo_path}")

        if not repo_path.exists():
            logs.append("Ошибка: указанный путь не существует.")
            raise GitLocalPathError(path=str(repo_path), logs=logs)
        if not repo_path.is_dir():
            logs.append("Ошибка: указанный путь не является директорией.")
            raise GitLocalPathError(path=str(repo_path), logs=logs)

        revision: Optional[str] = None
        try:
            repo_obj = GitRepo(repo_path)
        except (InvalidGitRepositoryError, NoSuchPathError):
            logs.append("Это не git-репозиторий - используем как обычную папку проекта.")
        else:
            try:
                revision = repo_obj.head.commit.hexsha
                logs.append(f"Текущая ревизия: {revision}")
            except ValueError:
                logs.append("В репозитории ещё нет коммитов.")
            finally:
                repo_obj.close()

        return LocalRepo(
            root_dir=repo_path,
            repo_path=repo_path,
            revision=revision,
            logs=logs,
            is_temporary=False,
        )
