"""Application object wiring every Driveflow component together."""

from __future__ import annotations

import asyncio
import signal
import threading
from pathlib import Path
from types import FrameType

from .automation import ActionDispatcher, EventGate, ExecutionCoordinator
from .core import CooldownTracker, DriveflowConfig, RecentTokenSet, get_logger, setup_logging
from .core.event_server import EventServer
from .delivery import NotionRecordWriter, SlackChannelPoster, WebhookMessenger
from .scheduler import BaseResumeScheduler, create_resume_scheduler
from .storage import DatabaseManager, WorkflowStore

logger = get_logger("app")


class DriveflowApp:
    """Owns the data store, delivery clients, resume scheduler, gate and server.

    Example:
        ```python
        from driveflow import DriveflowApp

        app = DriveflowApp.from_config("driveflow.yaml")
        app.start()  # blocks until SIGINT/SIGTERM
        ```
    """

    def __init__(
        self,
        config: DriveflowConfig,
        *,
        resume_scheduler: BaseResumeScheduler | None = None,
    ) -> None:
        self.config = config
        setup_logging(config.logging)

        self.database = DatabaseManager.from_config(config.database)
        self.database.create_tables()
        self.store = WorkflowStore(self.database)

        self.messenger = WebhookMessenger(config.delivery)
        self.slack = SlackChannelPoster(config.delivery)
        self.notion = NotionRecordWriter(config.delivery)
        self.resume_scheduler = resume_scheduler or create_resume_scheduler(config)

        self.dispatcher = ActionDispatcher.create(
            self.messenger, self.slack, self.notion, self.resume_scheduler
        )
        self.coordinator = ExecutionCoordinator(
            self.store,
            self.dispatcher,
            scheduler=self.resume_scheduler,
            default_wait_seconds=config.scheduler.wait_delay_seconds,
        )
        self.gate = EventGate(
            self.store,
            self.coordinator,
            RecentTokenSet(config.gate.dedup_capacity),
            CooldownTracker(config.gate.cooldown_seconds, config.gate.cooldown_capacity),
        )
        self.event_server = EventServer(config.event_server, self.gate, self.store)

        self._running = False
        self._shutdown_event = threading.Event()
        self._signal_handlers: dict[int, signal.Handlers] = {}

    @classmethod
    def from_config(cls, config_path: str | Path) -> DriveflowApp:
        """Create the app from a YAML or JSON configuration file."""
        config_path = Path(config_path).expanduser()
        if config_path.suffix not in [".yaml", ".yml", ".json"]:
            raise ValueError(f"Unsupported config file format: {config_path.suffix}")

        if config_path.suffix == ".json":
            config = DriveflowConfig.from_json(config_path)
        else:
            config = DriveflowConfig.from_yaml(config_path)
        return cls(config)

    @classmethod
    def from_env(cls) -> DriveflowApp:
        """Create the app from ``DRIVEFLOW_``-prefixed environment variables."""
        return cls(DriveflowConfig())

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------
    def _setup_signal_handlers(self) -> None:
        def signal_handler(sig: int, frame: FrameType | None) -> None:
            logger.info("Received signal %s, initiating shutdown", sig)
            self._shutdown_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                self._signal_handlers[sig] = signal.getsignal(sig)
                signal.signal(sig, signal_handler)
            except (OSError, ValueError) as exc:
                logger.warning("Unable to register handler for signal %s: %s", sig, exc)

    def _restore_signal_handlers(self) -> None:
        for sig, handler in self._signal_handlers.items():
            try:
                signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
            except (OSError, ValueError) as exc:
                logger.debug("Unable to restore handler for signal %s: %s", sig, exc)
        self._signal_handlers.clear()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self, block: bool = True) -> None:
        """Start the resume scheduler and the event server.

        Args:
            block: Wait for a shutdown signal before returning
        """
        if self._running:
            logger.warning("Driveflow is already running")
            return

        logger.info("Starting Driveflow...")
        self._shutdown_event.clear()
        try:
            self.resume_scheduler.start()
            self.event_server.start()
            self._running = True
        except Exception as exc:
            logger.error("Error starting Driveflow: %s", exc, exc_info=True)
            self.stop()
            raise

        if not block:
            return

        self._setup_signal_handlers()
        try:
            while not self._shutdown_event.wait(timeout=1.0):
                pass
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received; signalling shutdown")
        finally:
            self._restore_signal_handlers()
            self.stop()

    def stop(self) -> None:
        """Stop the server and scheduler and release resources."""
        self._shutdown_event.set()
        logger.info("Stopping Driveflow...")
        self.event_server.stop()
        try:
            asyncio.run(self._aclose())
        except Exception as exc:
            logger.warning("Error while releasing resources: %s", exc)
        self.database.dispose()
        self._running = False
        logger.info("Driveflow stopped")

    async def _aclose(self) -> None:
        await self.resume_scheduler.shutdown()
        for client in (self.messenger, self.slack, self.notion):
            await client.aclose()


__all__ = ["DriveflowApp"]
