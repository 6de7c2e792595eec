"""FastAPI application — HTTP surface over a single monitoring session.

The presentation layer (a browser UI, a desktop shell, a test) drives the
session through these endpoints and polls ``GET /session`` for the
current emotion, metrics, countdown and popup state.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Callable

import structlog
from fastapi import FastAPI, HTTPException, Query, Request

from emotion_monitor import __version__
from emotion_monitor.config import Settings, get_settings
from emotion_monitor.models import Notification, SessionSnapshot
from emotion_monitor.notifications.handlers import (
    MemoryHandler,
    NotificationDispatcher,
    create_dispatcher,
)
from emotion_monitor.session.controller import SessionController

logger = structlog.get_logger(__name__)

ControllerFactory = Callable[[Settings, NotificationDispatcher], SessionController]


def build_local_controller(
    settings: Settings, dispatcher: NotificationDispatcher
) -> SessionController:
    """Controller wired to this machine's camera/microphone and Face++."""
    from emotion_monitor.classifier.facepp import create_classifier
    from emotion_monitor.media.local import LocalMediaDevices

    return SessionController.from_settings(
        settings,
        LocalMediaDevices(),
        create_classifier(settings),
        dispatcher=dispatcher,
    )


def create_app(controller_factory: ControllerFactory | None = None) -> FastAPI:
    """Build the API.  *controller_factory* defaults to local devices."""
    factory = controller_factory or build_local_controller

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        dispatcher = create_dispatcher(settings)
        controller = factory(settings, dispatcher)
        app.state.controller = controller
        app.state.dispatcher = dispatcher
        logger.info("server.ready", handlers=dispatcher.handler_names)
        try:
            yield
        finally:
            controller.dispose()
            await controller.drain()
            await controller.inference.close()
            logger.info("server.shutdown")

    app = FastAPI(
        title="Emotion Monitor",
        version=__version__,
        description="Camera-driven emotion sampling with wellbeing metrics.",
        lifespan=lifespan,
    )

    def _controller(request: Request) -> SessionController:
        return request.app.state.controller

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": __version__}

    @app.get("/session", response_model=SessionSnapshot)
    async def get_session(request: Request):
        return _controller(request).snapshot()

    @app.post("/session/start", response_model=SessionSnapshot)
    async def start_session(request: Request):
        controller = _controller(request)
        if not await controller.start():
            raise HTTPException(
                403, "Both camera and microphone access are required for emotion detection."
            )
        return controller.snapshot()

    @app.post("/session/stop", response_model=SessionSnapshot)
    async def stop_session(request: Request):
        controller = _controller(request)
        controller.stop()
        return controller.snapshot()

    @app.post("/session/capture")
    async def capture_now(request: Request):
        """Trigger an immediate capture.  ``null`` when the attempt was skipped."""
        controller = _controller(request)
        if not controller.is_analyzing:
            raise HTTPException(409, "Session is not analyzing.")
        return await controller.capture_frame()

    @app.post("/popup/dismiss", response_model=SessionSnapshot)
    async def dismiss_popup(request: Request):
        controller = _controller(request)
        controller.dismiss_popup()
        return controller.snapshot()

    @app.get("/notifications", response_model=list[Notification])
    async def recent_notifications(request: Request, limit: int = Query(20, ge=1, le=200)):
        handler = request.app.state.dispatcher.get_handler(MemoryHandler.name)
        if not isinstance(handler, MemoryHandler):
            return []
        return handler.recent(limit)

    return app


app = create_app()
