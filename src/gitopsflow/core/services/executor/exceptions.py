from typing import List, Optional

from gitopsflow.exception import GitOpsFlowError


class ExecutionError(GitOpsFlowError):
    """
    Базовое исключение для запуска Job'ов и групп.
    """

    def __init__(
        self,
        *args,
        description: str = "Something happend when running jobs",
        logs: Optional[List[str]] = None,
    ) -> None:
        super().__init__(*args, description=description, logs=logs)


class JobExecutionFailure(ExecutionError):
    """
    Контейнер завершился с ненулевым кодом или исполнитель не смог его запустить.
    """

    def __init__(
        self,
        job: str,
        reason: str,
        exit_code: Optional[int] = None,
        logs: Optional[List[str]] = None,
        *args,
    ) -> None:
        description = f"Job {job} failed: {reason}"
        super().__init__(*args, description=description, logs=logs)
        self.job = job
        self.reason = reason
        self.exit_code = exit_code


class JobTimeoutError(JobExecutionFailure):
    def __init__(self, job: str, timeout: Optional[float], *args) -> None:
        super().__init__(job, f"timed out after {timeout}s", None, None, *args)
        self.timeout = timeout


class JobReuseError(ExecutionError):
    """
    Повторная отправка одного и того же Job'а на выполнение.
    """

    def __init__(self, job: str, owner: str, *args) -> None:
        description = f"Job {job} was already submitted ({owner})"
        super().__init__(*args, description=description)
        self.job = job
        self.owner = owner


class GroupReuseError(ExecutionError):
    def __init__(self, description: str = "Group already started", *args) -> None:
        super().__init__(*args, description=description)


class GroupExecutionFailure(ExecutionError):
    """
    run_all: все задачи доработали, часть упала.
    """

    def __init__(self, failures: List[JobExecutionFailure], *args) -> None:
        names = ", ".join(f.job for f in failures)
        description = f"{len(failures)} job(s) failed: {names}"
        logs: List[str] = []
        for failure in failures:
            logs.append(failure.description)
            logs.extend(failure.logs)
        super().__init__(*args, description=description, logs=logs)
        self.failures = failures
