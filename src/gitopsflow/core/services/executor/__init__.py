from .core import BaseExecutor, DockerExecutor, DryRunExecutor, build_script
from .models import ExecutionResult

from .exceptions import (
    ExecutionError,
    JobExecutionFailure,
    JobTimeoutError,
    JobReuseError,
    GroupReuseError,
    GroupExecutionFailure,
)

__all__ = [
    "BaseExecutor",
    "DockerExecutor",
    "DryRunExecutor",
    "ExecutionResult",
    "build_script",
    "ExecutionError",
    "JobExecutionFailure",
    "JobTimeoutError",
    "JobReuseError",
    "GroupReuseError",
    "GroupExecutionFailure",
]
