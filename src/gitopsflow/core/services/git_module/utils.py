import os
import shutil
import stat
from pathlib import Path
from typing import Union


PathLike = Union[str, Path]


def remove_tree(path: Path) -> None:
    """
    rmtree, который справляется с read-only файлами
    (.git/objects/pack на Windows): снимает флаг и пробует ещё раз.
    """
    try:
        shutil.rmtree(path)
    except PermissionError:
        for item in path.rglob("*"):
            os.chmod(item, stat.S_IWRITE | stat.S_IREAD | stat.S_IEXEC)
        shutil.rmtree(path)


def ensure_base_temp_dir(path: PathLike) -> Path:
    """
    Гарантирует, что BASE_TEMP_DIR существует, и возвращает его как Path.
    """
    base = Path(path)
    base.mkdir(parents=True, exist_ok=True)
    return base
