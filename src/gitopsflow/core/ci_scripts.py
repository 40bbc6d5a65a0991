# core/ci_scripts.py
from __future__ import annotations

from typing import Dict, List, Mapping

import yaml

from gitopsflow.core.config import (
    BOT_EMAIL,
    BOT_NAME,
    DEFAULT_CONTAINER_NAME,
    DEFAULT_MANIFEST_PATH,
)
from gitopsflow.core.services.manifest import render_image_patch


HEREDOC_DELIMITER = "GITOPS_EOF"

# Префикс переменных, которые выставляют сами фрагменты.
# Job.env с таким префиксом запрещён (см. model.Job).
RESERVED_ENV_PREFIX = "GITOPS_"

BRANCH_PREFIX = "update-deployment-"
HUB_CONFIG_PATH = "$HOME/.config/hub"
HUB_CREDENTIAL_HELPER = "/usr/local/bin/hub-credential-helper"
PATCH_FILE = "patch.yaml"
PATCHED_FILE = "gitops-patched.yaml"


# =========================
# Heredoc-safe кодирование
# =========================

def _delimiter_for(body: str) -> str:
    """
    Подбирает разделитель heredoc, которого нет в теле.
    GITOPS_EOF, GITOPS_EOF1, GITOPS_EOF2 ... - первый, не встречающийся
    в body даже как подстрока.
    """
    delimiter = HEREDOC_DELIMITER
    suffix = 0
    while delimiter in body:
        suffix += 1
        delimiter = f"{HEREDOC_DELIMITER}{suffix}"
    return delimiter


def heredoc(command: str, body: str) -> str:
    """
    Отдаёт body на stdin команды через heredoc с кавычками вокруг
    разделителя: шелл не раскрывает $, `, \\ внутри тела, а тело
    не может закрыть heredoc раньше времени.

    command - доверенная часть (пишется только внутри этого модуля).
    """
    delimiter = _delimiter_for(body)
    return f"{command} << '{delimiter}'\n{body}\n{delimiter}"


def heredoc_assign(variable: str, value: str) -> str:
    """
    Присваивает недоверенное значение переменной шелла через heredoc.
    Дальше значение используется только как "$VARIABLE" - в позицию
    команды оно никогда не попадает.

    Завершающие переводы строк значения отбрасываются (так работает $(...)).
    """
    if not variable.startswith(RESERVED_ENV_PREFIX):
        raise ValueError(f"Script variable must start with {RESERVED_ENV_PREFIX}: {variable}")
    return f'{variable}="$({heredoc("cat", value)}\n)"'


def _fragment(*parts: str) -> str:
    return "\n" + "\n".join(parts) + "\n"


def branch_name(build_id: str) -> str:
    """
    update-deployment-<build_id>. Уникальность ветки целиком
    на совести уникальности build_id.
    """
    return f"{BRANCH_PREFIX}{build_id}"


def make_commit_message(image: str, build_id: str) -> str:
    """
    Текст коммита и PR: первая строка - заголовок, дальше образ и build ID.
    """
    return (
        "Update hello world REST API\n"
        "\n"
        "This commit updates the deployment container image to:\n"
        f"  {image}\n"
        "\n"
        "Build ID:\n"
        f"  {build_id}"
    )


# ===========
# hub / GitHub
# ===========

def make_credentials_script(secrets: Mapping[str, str]) -> str:
    """
    Пишет ~/.config/hub из пары GITHUB_USERNAME / GITHUB_TOKEN.
    YAML собирается через PyYAML, поэтому значения экранированы
    и на уровне YAML, а не только шелла.
    """
    config = {
        "github.com": [
            {
                "protocol": "https",
                "user": str(secrets["GITHUB_USERNAME"]),
                "oauth_token": str(secrets["GITHUB_TOKEN"]),
            }
        ]
    }
    body = yaml.safe_dump(config, default_flow_style=False, sort_keys=False).rstrip("\n")
    return _fragment(
        'mkdir -p "$HOME/.config"',
        heredoc(f'cat > "{HUB_CONFIG_PATH}"', body),
    )


def make_identity_script(
    email: str = BOT_EMAIL,
    name: str = BOT_NAME,
    helper: str = HUB_CREDENTIAL_HELPER,
) -> str:
    """
    Автор коммитов и credential helper для hub.
    """
    return _fragment(
        heredoc_assign("GITOPS_HELPER", helper),
        heredoc_assign("GITOPS_EMAIL", email),
        heredoc_assign("GITOPS_NAME", name),
        'hub config --global credential.https://github.com.helper "$GITOPS_HELPER"',
        "hub config --global hub.protocol https",
        'hub config --global user.email "$GITOPS_EMAIL"',
        'hub config --global user.name "$GITOPS_NAME"',
    )


def make_commit_image_script(
    image: str,
    build_id: str,
    manifest_path: str = DEFAULT_MANIFEST_PATH,
    container: str = DEFAULT_CONTAINER_NAME,
) -> str:
    """
    Патчит образ контейнера в манифесте (strategic merge по имени
    контейнера через kubectl patch --local, а не замена текста),
    создаёт ветку update-deployment-<build_id> и коммитит манифест.
    """
    patch = yaml.safe_dump(
        render_image_patch(container, image),
        default_flow_style=False,
        sort_keys=False,
    ).rstrip("\n")

    return _fragment(
        heredoc_assign("GITOPS_MANIFEST", manifest_path),
        heredoc_assign("GITOPS_BRANCH", branch_name(build_id)),
        heredoc(f"cat > {PATCH_FILE}", patch),
        "",
        "kubectl patch --local -o yaml \\",
        '  -f "$GITOPS_MANIFEST" \\',
        f'  -p "$(cat {PATCH_FILE})" \\',
        f"  > {PATCHED_FILE}",
        "",
        f'mv {PATCHED_FILE} "$GITOPS_MANIFEST"',
        "",
        'git checkout -b "$GITOPS_BRANCH"',
        "",
        'hub add "$GITOPS_MANIFEST"',
        "",
        heredoc("hub commit -F-", make_commit_message(image, build_id)),
    )


def make_push_script(clone_url: str, build_id: str) -> str:
    """
    Добавляет remote origin и пушит ветку, созданную make_commit_image_script.
    """
    return _fragment(
        heredoc_assign("GITOPS_CLONE_URL", clone_url),
        heredoc_assign("GITOPS_BRANCH", branch_name(build_id)),
        'hub remote add origin "$GITOPS_CLONE_URL"',
        "",
        'hub push origin "$GITOPS_BRANCH"',
    )


def make_pull_request_script(image: str, build_id: str) -> str:
    return _fragment(
        heredoc("hub pull-request -F-", make_commit_message(image, build_id)),
    )


# ========
# kubectl
# ========

def make_workdir_script(source_dir: str) -> str:
    """
    Переход в каталог с исходниками проекта внутри контейнера.
    """
    return _fragment(
        heredoc_assign("GITOPS_SOURCE_DIR", source_dir),
        'cd "$GITOPS_SOURCE_DIR"',
    )


def make_deploy_script(manifests_dir: str) -> str:
    return _fragment(
        heredoc_assign("GITOPS_MANIFESTS_DIR", manifests_dir),
        'kubectl apply --recursive -f "$GITOPS_MANIFESTS_DIR"',
    )


def make_gitops_tasks(
    secrets: Mapping[str, str],
    image: str,
    build_id: str,
    clone_url: str,
    source_dir: str,
    manifest_path: str = DEFAULT_MANIFEST_PATH,
    container: str = DEFAULT_CONTAINER_NAME,
    identity: Dict[str, str] | None = None,
) -> List[str]:
    """
    Полный список задач GitOps-джоба: креды, identity, cd в исходники,
    патч+коммит, push, pull request.
    """
    identity = identity or {}
    return [
        make_credentials_script(secrets),
        make_identity_script(**identity),
        make_workdir_script(source_dir),
        make_commit_image_script(image, build_id, manifest_path, container),
        make_push_script(clone_url, build_id),
        make_pull_request_script(image, build_id),
    ]
