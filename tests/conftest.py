import asyncio
import json
import re
from typing import Iterable, List

import pytest

from gitopsflow.core.config import Settings
from gitopsflow.core.models import Event, Project
from gitopsflow.core.services.executor import BaseExecutor, ExecutionResult


HEREDOC_START = re.compile(r"<< '(GITOPS_EOF\d*)'$")


def command_lines(script: str) -> List[str]:
    """
    Строки скрипта, которые шелл разбирает как команды: тела heredoc
    выкидываются, разделители нормализуются.
    """
    lines: List[str] = []
    delimiter = None
    for line in script.split("\n"):
        if delimiter is not None:
            if line == delimiter:
                lines.append("GITOPS_EOF")
                delimiter = None
            continue
        match = HEREDOC_START.search(line)
        if match:
            delimiter = match.group(1)
            line = line[: match.start(1)] + "GITOPS_EOF" + line[match.end(1):]
        lines.append(line)
    assert delimiter is None, "unterminated heredoc"
    return lines


def heredoc_bodies(script: str) -> List[str]:
    bodies: List[str] = []
    current = None
    delimiter = None
    for line in script.split("\n"):
        if delimiter is not None:
            if line == delimiter:
                bodies.append("\n".join(current))
                delimiter = None
            else:
                current.append(line)
            continue
        match = HEREDOC_START.search(line)
        if match:
            delimiter = match.group(1)
            current = []
    return bodies


class RecordingExecutor(BaseExecutor):
    """
    Ничего не запускает: запоминает порядок вызовов и валит job'ы из fail.
    """

    def __init__(self, fail: Iterable[str] = (), delay: float = 0.0):
        self.fail = set(fail)
        self.delay = delay
        self.calls: List[str] = []
        self.jobs = []
        self.active = 0
        self.max_active = 0

    async def execute(self, job) -> ExecutionResult:
        self.calls.append(job.name)
        self.jobs.append(job)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
        if job.name in self.fail:
            return ExecutionResult(job_name=job.name, exit_code=1, output="boom\nexit 1")
        return ExecutionResult(job_name=job.name, exit_code=0, output="ok")


@pytest.fixture
def executor():
    return RecordingExecutor()


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def project():
    return Project.model_validate(
        {
            "name": "github.com/crowdynews/gitops-hello-world",
            "repo": {"cloneURL": "https://github.com/crowdynews/gitops-hello-world-infra.git"},
            "secrets": {
                "GITHUB_USERNAME": "gitops-bot",
                "GITHUB_TOKEN": "s3cr3t",
                "SLACK_WEBHOOK": "https://hooks.slack.com/services/T/B/X",
                "KASHTI_URL": "https://kashti.example.com",
            },
        }
    )


@pytest.fixture
def make_event():
    def _make(event_type: str, payload, build_id: str = "01build", commit: str = "0123456789abcdef"):
        return Event.model_validate(
            {
                "type": event_type,
                "buildID": build_id,
                "revision": {"commit": commit},
                "payload": json.dumps(payload) if not isinstance(payload, str) else payload,
            }
        )

    return _make
