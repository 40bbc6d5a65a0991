from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .utils import remove_tree


@dataclass
class LocalRepo:
    """
    Рабочая копия, которая монтируется в контейнеры как каталог исходников.

    root_dir     - временная директория клона (или сам путь, если он уже был);
    repo_path    - корень проекта, который уходит в контейнер;
    revision     - коммит, на который переключились (None - HEAD по умолчанию);
    logs         - текстовые логи шагов подготовки;
    is_temporary - если True, cleanup() удалит root_dir.
    """

    root_dir: Path
    repo_path: Path
    revision: Optional[str] = None
    logs: List[str] = field(default_factory=list)
    is_temporary: bool = True

    def cleanup(self) -> None:
        """
        Удаляет временный клон. Существующие локальные пути не трогает.
        """
        if self.is_temporary and self.root_dir.exists():
            remove_tree(self.root_dir)
