import os
import pkgutil
from collections.abc import Awaitable, Callable
from importlib import import_module
from typing import Any

from fastapi import APIRouter
from pydantic import ValidationError

from halotalk.exceptions import MalformedEventError, UnknownEventError
from halotalk.logging import logger
from halotalk.managers.chat_broadcaster import ChatBroadcaster
from halotalk.schemas.events import EventEnvelope

EventHandlerType = Callable[[ChatBroadcaster, str, Any], Awaitable[None]]


class EventRouter:
    """
    Router for WebSocket chat events.

    Maps event names to handler coroutines. Handlers normalize the client
    payload and hand it to the ChatBroadcaster.
    """

    def __init__(self):
        self.handlers_registry: dict[str, EventHandlerType] = {}

    def register(self, *events: str):
        """
        Decorator registering a handler for one or more event names.

        Registering the same function twice is a no-op (module reloads);
        registering a different function for a taken event name raises
        ValueError.
        """

        def decorator(func: EventHandlerType):
            for event in events:
                if event in self.handlers_registry:
                    if self.handlers_registry[event] != func:
                        raise ValueError(
                            f"Different handler already registered for event {event!r}"
                        )
                    continue

                self.handlers_registry[event] = func
                logger.info(
                    f"Register {func.__module__}.{func.__name__} for event: {event!r}"
                )

            return func

        return decorator

    @staticmethod
    def parse(data: Any) -> EventEnvelope:
        """
        Validate a decoded frame as an event envelope.

        Raises:
            MalformedEventError: If the frame is not an object with a string
                ``event`` field.
        """
        if not isinstance(data, dict):
            raise MalformedEventError(
                f"Expected a JSON object, got {type(data).__name__}"
            )
        try:
            return EventEnvelope.model_validate(data, strict=True)
        except ValidationError as e:
            raise MalformedEventError(str(e)) from e

    async def handle_event(
        self,
        broadcaster: ChatBroadcaster,
        connection_id: str,
        envelope: EventEnvelope,
    ) -> None:
        """
        Dispatch one event from a connection to its handler.

        Raises:
            UnknownEventError: If no handler is registered for the event.
        """
        handler = self.handlers_registry.get(envelope.event)
        if handler is None:
            raise UnknownEventError(envelope.event)

        await handler(broadcaster, connection_id, envelope.data)


event_router = EventRouter()


# Track registered modules to prevent duplicate logging
_registered_http_modules: set[str] = set()
_registered_ws_modules: set[str] = set()


def collect_subrouters() -> APIRouter:
    """
    Collects the HTTP and WebSocket routers of the application.

    Every module in `api/http` and `api/ws/consumers` exposes a `router`;
    they are all included in one main `APIRouter`.
    """
    main_router: APIRouter = APIRouter()

    app_dir = os.path.dirname(__file__)
    app_name = os.path.basename(app_dir)

    for _, module, _ in pkgutil.iter_modules([f"{app_dir}/api/http"]):
        api = import_module(f".{module}", package=f"{app_name}.api.http")
        main_router.include_router(api.router)

        if module not in _registered_http_modules:
            logger.info(f'Register "{module}" api')
            _registered_http_modules.add(module)

    for _, module, _ in pkgutil.iter_modules([f"{app_dir}/api/ws/consumers"]):
        ws_consumer = import_module(
            f".{module}", package=f"{app_name}.api.ws.consumers"
        )
        main_router.include_router(ws_consumer.router)

        if module not in _registered_ws_modules:
            logger.info(f'Register "{module}" websocket consumer')
            _registered_ws_modules.add(module)

    return main_router
