"""Application entrypoint — start the API server or run a headless session."""

from __future__ import annotations

import argparse
import asyncio
import sys

import structlog
import uvicorn

from emotion_monitor.config import Settings, get_settings
from emotion_monitor.logger import setup_logging

logger = structlog.get_logger(__name__)


async def run_headless(settings: Settings, duration: float, report_every: float = 5.0) -> int:
    """Run one session against local devices, logging periodic snapshots."""
    from emotion_monitor.api.server import build_local_controller
    from emotion_monitor.notifications.handlers import create_dispatcher

    controller = build_local_controller(settings, create_dispatcher(settings))
    try:
        if not await controller.start():
            return 1
        loop = asyncio.get_running_loop()
        deadline = loop.time() + duration
        while loop.time() < deadline:
            await asyncio.sleep(min(report_every, max(0.0, deadline - loop.time())))
            snap = controller.snapshot()
            logger.info(
                "session.snapshot",
                emotion=snap.current_emotion,
                dominant=snap.dominant_emotion,
                stress=snap.metrics.stress,
                engagement=snap.metrics.engagement,
                focus=snap.metrics.focus,
                countdown=snap.countdown,
                popup=snap.popup.emotion if snap.popup.visible else None,
            )
        return 0
    finally:
        controller.dispose()
        await controller.drain()
        await controller.inference.close()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="emotion-monitor",
        description="Camera-driven emotion monitoring with wellbeing metrics.",
    )
    sub = parser.add_subparsers(dest="command")

    # ── serve ─────────────────────────────────────────────────
    serve_parser = sub.add_parser("serve", help="Start the API server.")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)
    serve_parser.add_argument("--reload", action="store_true")

    # ── run ───────────────────────────────────────────────────
    run_parser = sub.add_parser("run", help="Run a headless session with local devices.")
    run_parser.add_argument("--duration", type=float, default=60.0, help="Seconds to run.")
    run_parser.add_argument("--report-every", type=float, default=5.0)

    args = parser.parse_args(argv)
    settings = get_settings()
    setup_logging(settings.monitor_log_level)

    if args.command == "serve":
        uvicorn.run(
            "emotion_monitor.api.server:app",
            host=args.host or settings.api_host,
            port=args.port or settings.api_port,
            reload=args.reload,
        )
    elif args.command == "run":
        try:
            code = asyncio.run(run_headless(settings, args.duration, args.report_every))
        except KeyboardInterrupt:
            code = 130
        sys.exit(code)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
