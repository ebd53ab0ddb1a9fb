"""
Rendering Engine Monitor - Main Entry Point.

Runs the engine monitoring service (and optionally its dashboard) against an
engine manager created by a factory you point it at.

Usage:
    # Monitor engines created by myapp.engines.build_manager()
    python -m render_monitor.main --engine-manager myapp.engines:build_manager

    # Without the HTTP dashboard
    python -m render_monitor.main --engine-manager myapp.engines:build_manager --no-dashboard

Environment:
    LOG_LEVEL                       Logging level (default INFO)
    ENGINE_MANAGER                  Factory path, same as --engine-manager
    MONITOR_*                       Monitoring settings, see MonitorConfig.from_env()
    DASHBOARD_HOST / DASHBOARD_PORT Dashboard bind address (default 127.0.0.1:9060)
    DASHBOARD_API_KEY               Optional API key for the dashboard
    TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID
                                    Enables Telegram delivery of alerts
"""

from __future__ import annotations

import argparse
import asyncio
import importlib
import logging
import os
import signal
import sys
import threading
from pathlib import Path
from typing import Any, Optional

# Configure logging before imports
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

from render_monitor.monitoring import (  # noqa: E402
    EngineMonitoringService,
    MonitorConfig,
    TelegramNotifier,
    create_app,
)


def load_env_file(path: str = ".env") -> None:
    """Load environment variables from .env file if it exists."""
    env_path = Path(path)
    if env_path.exists():
        logger.info(f"Loading environment from {env_path}")
        with open(env_path) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, _, value = line.partition("=")
                    value = value.strip().strip('"').strip("'")
                    os.environ.setdefault(key.strip(), value)


def load_engine_manager(path: str) -> Any:
    """
    Build an engine manager from a "module:factory" path.

    The factory is called with no arguments. A non-callable attribute is
    used as the manager itself.
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Engine manager path must look like 'module:factory', got {path!r}")

    target = getattr(importlib.import_module(module_name), attr)
    return target() if callable(target) else target


class MonitorApp:
    """
    Wires the monitoring service, notifier and dashboard together and
    keeps them running until a shutdown signal arrives.
    """

    def __init__(
        self,
        service: EngineMonitoringService,
        dashboard_enabled: bool = True,
        dashboard_host: str = "127.0.0.1",
        dashboard_port: int = 9060,
    ) -> None:
        self._service = service
        self._dashboard_enabled = dashboard_enabled
        self._dashboard_host = dashboard_host
        self._dashboard_port = dashboard_port

        self._shutdown_event = asyncio.Event()
        self._flask_server = None
        self._dashboard_thread: Optional[threading.Thread] = None

    async def run(self) -> None:
        """Start everything and block until shutdown is requested."""
        self._install_signal_handlers()

        await self._service.start()
        if self._dashboard_enabled:
            self._start_dashboard()

        try:
            await self._shutdown_event.wait()
        finally:
            self._stop_dashboard()
            await self._service.stop()

    def request_shutdown(self) -> None:
        self._shutdown_event.set()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()

        def handle_signal(sig: signal.Signals) -> None:
            logger.info(f"Received {sig.name}, shutting down...")
            self._shutdown_event.set()

        try:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    def _start_dashboard(self) -> None:
        """Start the Flask dashboard in a background thread."""
        from werkzeug.serving import make_server

        app = create_app(self._service)
        self._flask_server = make_server(
            host=self._dashboard_host,
            port=self._dashboard_port,
            app=app,
            threaded=True,
        )

        def run_flask() -> None:
            try:
                self._flask_server.serve_forever()
            except Exception as e:
                logger.error(f"Dashboard failed: {e}")

        logger.info(f"Dashboard: http://{self._dashboard_host}:{self._dashboard_port}")
        self._dashboard_thread = threading.Thread(target=run_flask, daemon=True)
        self._dashboard_thread.start()

    def _stop_dashboard(self) -> None:
        """Stop the Flask dashboard gracefully."""
        if self._flask_server:
            self._flask_server.shutdown()
            self._flask_server.server_close()
            self._flask_server = None

        if self._dashboard_thread:
            self._dashboard_thread.join(timeout=5)
            if self._dashboard_thread.is_alive():
                logger.warning("Dashboard thread did not stop cleanly")
            self._dashboard_thread = None


def build_notifier() -> Optional[TelegramNotifier]:
    """Telegram notifier if credentials are configured."""
    token = os.environ.get("TELEGRAM_BOT_TOKEN")
    chat_id = os.environ.get("TELEGRAM_CHAT_ID")
    if not token or not chat_id:
        return None
    return TelegramNotifier(bot_token=token, chat_id=chat_id)


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Rendering Engine Monitor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--engine-manager",
        default=os.environ.get("ENGINE_MANAGER"),
        help="Engine manager factory as 'module:callable'",
    )
    parser.add_argument(
        "--no-dashboard",
        action="store_true",
        help="Don't start the HTTP dashboard",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level",
    )
    return parser.parse_args(argv)


async def main_async(args: argparse.Namespace) -> int:
    """Async main function."""
    if not args.engine_manager:
        logger.error("An engine manager is required (--engine-manager or ENGINE_MANAGER)")
        return 1

    try:
        engine_manager = load_engine_manager(args.engine_manager)
    except Exception as e:
        logger.error(f"Could not load engine manager {args.engine_manager}: {e}")
        return 1

    service = EngineMonitoringService(
        engine_manager,
        config=MonitorConfig.from_env(),
        notifier=build_notifier(),
    )

    app = MonitorApp(
        service,
        dashboard_enabled=not args.no_dashboard,
        dashboard_host=os.environ.get("DASHBOARD_HOST", "127.0.0.1"),
        dashboard_port=int(os.environ.get("DASHBOARD_PORT", "9060")),
    )

    try:
        await app.run()
        return 0
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    load_env_file()

    args = parse_args(argv)

    if args.log_level:
        logging.getLogger().setLevel(getattr(logging, args.log_level))

    try:
        return asyncio.run(main_async(args))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
