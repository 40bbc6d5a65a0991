from .core import EventContext, EventRouter, Handler

from .exceptions import RouterConfigError

__all__ = [
    "EventContext",
    "EventRouter",
    "Handler",
    "RouterConfigError",
]
