from enum import Enum
from pathlib import Path
import os
from tempfile import gettempdir
from typing import Optional

from pydantic import BaseModel

"""
Настройки ядра.

Рабочий каталог для временных клонов - системный /tmp/gitopsflow (или аналог
на Windows), переопределяется переменной окружения GITOPSFLOW_WORKDIR.
Остальное собирается в Settings.from_env().
"""

BASE_TEMP_DIR = Path(
    os.getenv("GITOPSFLOW_WORKDIR", gettempdir())
) / "gitopsflow"

DEFAULT_DEPLOY_BRANCH = "master"
DEFAULT_SOURCE_DIR = "/src"
DEFAULT_MANIFEST_PATH = "kubernetes/deployment.yaml"
DEFAULT_MANIFESTS_DIR = "kubernetes"
DEFAULT_CONTAINER_NAME = "gitops-hello-world-brigade"

BOT_EMAIL = "gitops-bot@crowdynews.com"
BOT_NAME = "GitOps Bot"

HUB_IMAGE = "gcr.io/hightowerlabs/hub"
KUBECTL_IMAGE = "gcr.io/cloud-builders/kubectl"
SLACK_NOTIFY_IMAGE = "technosophos/slack-notify"


class ImageDeletePolicy(str, Enum):
    # update: DELETE из registry запускает тот же пайплайн, что и INSERT
    UPDATE = "update"
    IGNORE = "ignore"


class Settings(BaseModel):
    deploy_branch: str = DEFAULT_DEPLOY_BRANCH
    image_delete_policy: ImageDeletePolicy = ImageDeletePolicy.UPDATE
    source_dir: str = DEFAULT_SOURCE_DIR
    manifest_path: str = DEFAULT_MANIFEST_PATH
    manifests_dir: str = DEFAULT_MANIFESTS_DIR
    container_name: str = DEFAULT_CONTAINER_NAME
    bot_email: str = BOT_EMAIL
    bot_name: str = BOT_NAME
    job_timeout: Optional[float] = None

    @classmethod
    def from_env(cls) -> "Settings":
        timeout = os.getenv("GITOPSFLOW_JOB_TIMEOUT")
        return cls(
            deploy_branch=os.getenv("GITOPSFLOW_DEPLOY_BRANCH", DEFAULT_DEPLOY_BRANCH),
            image_delete_policy=os.getenv("GITOPSFLOW_ON_IMAGE_DELETE", ImageDeletePolicy.UPDATE.value),
            source_dir=os.getenv("GITOPSFLOW_SOURCE_DIR", DEFAULT_SOURCE_DIR),
            job_timeout=float(timeout) if timeout else None,
        )
