from pathlib import Path
from typing import IO, Optional

import click
from pydantic import ValidationError

from gitopsflow import settings
from gitopsflow.core.config import DEFAULT_CONTAINER_NAME, Settings
from gitopsflow.core.core import GitOpsFlowCore, load_event, load_project
from gitopsflow.core.models import HandleStatus
from gitopsflow.core.services.manifest import ManifestPatchError, apply_image_patch
from gitopsflow.exception import GitOpsFlowError
from gitopsflow.utils import async_click, read_json


@click.group()
def main():
    """GitOps-оркестратор: событие вебхука -> пайплайн контейнерных job'ов."""


@main.command()
@click.argument("event_file", type=click.File("r", encoding="utf-8"))
@click.argument("project_file", type=click.File("r", encoding="utf-8"))
@click.option("--dry-run", is_flag=True, help="Только напечатать план, ничего не запускать")
@click.option(
    "--workspace",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Готовая рабочая копия проекта, монтируется в контейнеры",
)
@click.option("--clone", is_flag=True, help="Склонировать репозиторий проекта на ревизию события")
@click.option("--json", "as_json", is_flag=True, help="Вывести ответ как JSON")
@async_click
async def handle(
    event_file: IO[str],
    project_file: IO[str],
    dry_run: bool,
    workspace: Optional[Path],
    clone: bool,
    as_json: bool,
):
    """Обработать одно событие EVENT_FILE для проекта PROJECT_FILE."""
    if clone and workspace is not None:
        raise click.UsageError("--clone и --workspace взаимоисключающие")

    if not as_json:
        click.echo(settings.LOGO + "\n")

    try:
        event = load_event(read_json(event_file))
        project = load_project(read_json(project_file))
    except GitOpsFlowError as e:
        raise click.ClickException(e.description)

    try:
        config = Settings.from_env()
    except (ValidationError, ValueError) as e:
        raise click.ClickException(f"Некорректные переменные окружения GITOPSFLOW_*: {e}")

    core = GitOpsFlowCore(
        settings=config,
        dry_run=dry_run,
        show_progress=not as_json,
        progress_err=as_json,
    )
    response = await core.handle(event, project, workspace=workspace, clone=clone)

    if as_json:
        click.echo(response.model_dump_json(indent=2))
    else:
        for warning in response.warnings:
            click.echo(f"⚠ {warning}", err=True)
        click.echo(f"Статус: {response.status.value}; job'ы: {', '.join(response.jobs) or '-'}")

    if response.status is HandleStatus.ERROR:
        raise click.ClickException(response.error or "event handling failed")


@main.command("patch-manifest")
@click.argument("manifest", type=click.File("r", encoding="utf-8"))
@click.option("--image", required=True, help="Новый образ контейнера")
@click.option("--container", default=DEFAULT_CONTAINER_NAME, show_default=True, help="Имя контейнера в манифесте")
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), help="Куда сохранить результат")
def patch_manifest(manifest: IO[str], image: str, container: str, output: Optional[Path]):
    """Заменить образ одного контейнера в манифесте (strategic merge по имени)."""
    try:
        patched = apply_image_patch(manifest.read(), container, image)
    except ManifestPatchError as e:
        raise click.ClickException(e.description)

    if output is None:
        click.echo(patched, nl=False)
        return

    try:
        output.write_text(patched, encoding="utf-8")
    except OSError as e:
        raise click.ClickException(f"Не удалось сохранить манифест в '{output}': {e}")
    click.echo(f"Манифест сохранён в файл: {output}", err=True)


if __name__ == "__main__":
    main()
