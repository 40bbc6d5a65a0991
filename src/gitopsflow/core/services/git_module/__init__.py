from .core import GitWorkspace
from .models import LocalRepo

from .exceptions import (
    GitExceptions,
    GitCloneError,
    GitLocalPathError,
)

__all__ = [
    "GitWorkspace",
    "LocalRepo",
    "GitExceptions",
    "GitCloneError",
    "GitLocalPathError",
]
