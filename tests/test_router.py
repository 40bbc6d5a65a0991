import pytest

from gitopsflow.core.models import Event, EventType, HandleStatus
from gitopsflow.core.services.builders.pipeline import DEFAULT_HANDLERS, default_router
from gitopsflow.core.services.router import EventRouter, RouterConfigError


def test_event_type_parsing():
    assert EventType.parse("push") is EventType.PUSH
    assert EventType.parse("gcr_image_push") is EventType.IMAGE_PUSH
    assert EventType.parse("issue_comment") is EventType.UNKNOWN
    assert EventType.UNKNOWN not in EventType.routable()


def test_event_keeps_raw_type():
    event = Event.model_validate({"type": "deployment_status", "buildID": "b1"})
    assert event.type is EventType.UNKNOWN
    assert event.raw_type == "deployment_status"


@pytest.mark.asyncio
async def test_unknown_event_has_no_side_effects(make_event, project, settings, executor):
    router = default_router(settings, executor)

    response = await router.dispatch(make_event("issue_comment", {"ref": "refs/heads/master"}), project)

    assert response.status is HandleStatus.IGNORED
    assert response.event_type == "issue_comment"
    assert response.jobs == []
    assert executor.calls == []


@pytest.mark.asyncio
async def test_unregistered_known_type_is_ignored(make_event, project, settings, executor):
    router = EventRouter(settings, executor)

    response = await router.dispatch(make_event("push", {"ref": "refs/heads/master"}), project)

    assert response.status is HandleStatus.IGNORED
    assert executor.calls == []


@pytest.mark.asyncio
async def test_handler_called_once_with_fresh_context(make_event, project, settings, executor):
    router = EventRouter(settings, executor)
    contexts = []

    @router.register(EventType.ERROR)
    async def on_error(ctx):
        contexts.append(ctx)
        ctx.echo("seen")

    first = await router.dispatch(make_event("error", {}), project)
    second = await router.dispatch(make_event("error", {}), project)

    assert len(contexts) == 2
    assert contexts[0] is not contexts[1]
    assert first.status is HandleStatus.OK
    assert first.logs[-1] == "seen"
    assert second.logs.count("seen") == 1


def test_check_exhaustive_reports_missing(settings, executor):
    router = EventRouter(settings, executor)
    router.register(EventType.PUSH, DEFAULT_HANDLERS[EventType.PUSH])

    with pytest.raises(RouterConfigError) as info:
        router.check_exhaustive()
    assert info.value.reason == "no handlers for image_push, pull_request, error"


def test_default_router_covers_every_event_type(settings, executor):
    router = default_router(settings, executor)
    for event_type in EventType.routable():
        assert router.handler_for(event_type) is not None
    assert router.handler_for(EventType.UNKNOWN) is None


def test_register_rejects_unknown_and_duplicates(settings, executor):
    router = EventRouter(settings, executor)
    with pytest.raises(RouterConfigError):
        router.register(EventType.UNKNOWN, DEFAULT_HANDLERS[EventType.PUSH])

    router.register(EventType.PUSH, DEFAULT_HANDLERS[EventType.PUSH])
    with pytest.raises(RouterConfigError):
        router.register("push", DEFAULT_HANDLERS[EventType.PUSH])


@pytest.mark.asyncio
async def test_dispatch_without_executor_fails(make_event, project, settings):
    router = default_router(settings)
    with pytest.raises(RouterConfigError):
        await router.dispatch(make_event("error", {}), project)
