from dataclasses import dataclass
from typing import List


@dataclass
class ExecutionResult:
    """
    Итог одного запуска контейнера.

    job_name  - имя Job'а, который запускали;
    exit_code - код выхода скрипта (0 - успех);
    output    - объединённый stdout/stderr.
    """

    job_name: str
    exit_code: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def output_lines(self) -> List[str]:
        return self.output.splitlines()
