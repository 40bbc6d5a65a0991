import pytest
from pydantic import ValidationError

from gitopsflow.core.services.executor import (
    ExecutionResult,
    GroupExecutionFailure,
    GroupReuseError,
    JobExecutionFailure,
    JobReuseError,
    JobTimeoutError,
)
from gitopsflow.model import Group, Job

from conftest import RecordingExecutor


def make_job(name, **kwargs):
    kwargs.setdefault("image", "alpine:3")
    kwargs.setdefault("tasks", ["echo ok"])
    return Job(name=name, **kwargs)


def test_job_requires_name():
    with pytest.raises(ValidationError):
        Job(name="", image="alpine:3", tasks=["true"])


def test_job_rejects_reserved_env():
    with pytest.raises(ValidationError):
        make_job("a", env={"GITOPS_BRANCH": "main"})


def test_job_defaults():
    job = make_job("a")
    assert job.storage_enabled is False
    assert job.env == {}
    assert job.timeout is None


@pytest.mark.asyncio
async def test_job_without_tasks_fails(executor):
    with pytest.raises(JobExecutionFailure):
        await Job(name="empty", image="alpine:3").run(executor)
    assert executor.calls == []


@pytest.mark.asyncio
async def test_job_runs_once(executor):
    job = make_job("a")
    result = await job.run(executor)

    assert result == ExecutionResult(job_name="a", exit_code=0, output="ok")
    with pytest.raises(JobReuseError):
        await job.run(executor)
    assert executor.calls == ["a"]


@pytest.mark.asyncio
async def test_grouped_job_cannot_run_standalone(executor):
    job = make_job("notify")
    Group().add(job)

    with pytest.raises(JobReuseError):
        await job.run(executor)
    with pytest.raises(JobReuseError):
        Group().add(job)
    assert executor.calls == []


@pytest.mark.asyncio
async def test_failed_job_surfaces_output():
    with pytest.raises(JobExecutionFailure) as info:
        await make_job("a").run(RecordingExecutor(fail=["a"]))

    assert info.value.exit_code == 1
    assert info.value.logs == ["boom", "exit 1"]


@pytest.mark.asyncio
async def test_job_timeout():
    with pytest.raises(JobTimeoutError):
        await make_job("slow", timeout=0.01).run(RecordingExecutor(delay=1))


class SocketTimeoutExecutor(RecordingExecutor):
    async def execute(self, job):
        raise TimeoutError("read timed out")


@pytest.mark.asyncio
@pytest.mark.parametrize("timeout", [None, 5])
async def test_executor_timeout_is_not_a_job_timeout(timeout):
    with pytest.raises(JobExecutionFailure) as info:
        await make_job("a", timeout=timeout).run(SocketTimeoutExecutor())

    assert not isinstance(info.value, JobTimeoutError)
    assert info.value.reason == "executor error: read timed out"


@pytest.mark.asyncio
async def test_run_each_keeps_order_one_at_a_time():
    executor = RecordingExecutor(delay=0.01)
    group = Group()
    for name in ["first", "second", "third"]:
        group.add(make_job(name))

    results = await group.run_each(executor)

    assert [r.job_name for r in results] == ["first", "second", "third"]
    assert executor.calls == ["first", "second", "third"]
    assert executor.max_active == 1


@pytest.mark.asyncio
async def test_run_each_halts_on_failure():
    executor = RecordingExecutor(fail=["second"])
    group = Group(jobs=[make_job("first"), make_job("second"), make_job("third")])

    with pytest.raises(JobExecutionFailure) as info:
        await group.run_each(executor)

    assert info.value.job == "second"
    assert executor.calls == ["first", "second"]
    assert [r.job_name for r in group.results] == ["first"]


@pytest.mark.asyncio
async def test_run_all_collects_every_failure():
    executor = RecordingExecutor(fail=["a", "c"], delay=0.01)
    group = Group(jobs=[make_job("a"), make_job("b"), make_job("c")])

    with pytest.raises(GroupExecutionFailure) as info:
        await group.run_all(executor)

    assert sorted(f.job for f in info.value.failures) == ["a", "c"]
    assert sorted(executor.calls) == ["a", "b", "c"]
    assert executor.max_active == 3
    assert [r.job_name for r in group.results] == ["b"]


@pytest.mark.asyncio
async def test_run_all_success(executor):
    group = Group(jobs=[make_job("a"), make_job("b")])
    results = await group.run_all(executor)
    assert [r.job_name for r in results] == ["a", "b"]


@pytest.mark.asyncio
async def test_group_is_single_use(executor):
    group = Group().add(make_job("a"))
    await group.run_each(executor)

    with pytest.raises(GroupReuseError):
        await group.run_each(executor)
    with pytest.raises(GroupReuseError):
        await group.run_all(executor)
    with pytest.raises(GroupReuseError):
        group.add(make_job("b"))
    assert executor.calls == ["a"]


@pytest.mark.asyncio
async def test_executor_os_error_becomes_job_failure():
    class BrokenExecutor(RecordingExecutor):
        async def execute(self, job):
            raise FileNotFoundError("docker")

    with pytest.raises(JobExecutionFailure) as info:
        await make_job("a").run(BrokenExecutor())
    assert "docker" in info.value.reason

