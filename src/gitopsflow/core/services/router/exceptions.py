from gitopsflow.exception import GitOpsFlowError


class RouterConfigError(GitOpsFlowError):
    """
    Таблица обработчиков собрана неправильно: дубль, UNKNOWN
    или для известного типа события нет обработчика.
    """

    def __init__(self, reason: str, *args) -> None:
        super().__init__(*args, description=f"Event router misconfigured: {reason}")
        self.reason = reason
