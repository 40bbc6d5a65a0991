from typing import List, Optional

from gitopsflow.exception import GitOpsFlowError


class ManifestPatchError(GitOpsFlowError):
    """
    Манифест не удалось распарсить или в нём нет нужного контейнера.
    """

    def __init__(
        self,
        container: str,
        reason: str,
        logs: Optional[List[str]] = None,
        *args,
    ) -> None:
        description = f"Error to patch container {container}: {reason}"
        super().__init__(*args, description=description, logs=logs)
        self.container = container
        self.reason = reason
