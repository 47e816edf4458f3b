"""System Initializer - process-scoped resources with an explicit lifecycle."""

from typing import Optional
import logging

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from fleetmon.config.loader import AccessPointTableLoader
from fleetmon.config.settings import Settings, get_settings
from fleetmon.db.init_db import check_database_health, init_database
from fleetmon.db.session import create_db_engine, create_session_factory, session_scope
from fleetmon.services.location_resolver import AccessPointResolver
from fleetmon.services.scheduler import RecurringTask
from fleetmon.services.status_lifecycle import StatusLifecycleEngine, StatusThresholds, SweepReport

logger = logging.getLogger(__name__)


class SystemInitializer:
    """Owns the engine, session factory, AP resolver and the sweep scheduler.

    Components receive these explicitly; nothing here is a module global.
    """

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize SystemInitializer.

        Args:
            settings: Settings to use. If None, reads the environment.
        """
        self.settings = settings or get_settings()
        self.thresholds = StatusThresholds.from_settings(self.settings)
        self.db_engine: Optional[Engine] = None
        self.session_factory: Optional[sessionmaker] = None
        self.ap_loader: Optional[AccessPointTableLoader] = None
        self.ap_resolver: Optional[AccessPointResolver] = None
        self.sweeper: Optional[RecurringTask] = None

    @property
    def initialized(self) -> bool:
        return self.db_engine is not None

    def initialize(self) -> "SystemInitializer":
        """Create the database schema, load the AP table and build the scheduler.

        Raises:
            RuntimeError: If the database is unreachable or the AP table is invalid
        """
        if self.initialized:
            return self

        logger.info("Starting system initialization")

        self.db_engine = create_db_engine(self.settings.database_url)
        if not check_database_health(self.db_engine):
            self.db_engine.dispose()
            self.db_engine = None
            raise RuntimeError("Database connection failed")
        init_database(self.db_engine)
        self.session_factory = create_session_factory(self.db_engine)

        self.ap_loader = AccessPointTableLoader(self.settings.access_point_table)
        errors = self.ap_loader.validate()
        if errors:
            error_msg = "\n".join(errors)
            logger.error(f"Access point table validation failed:\n{error_msg}")
            raise RuntimeError(error_msg)
        self.ap_resolver = AccessPointResolver.from_loader(self.ap_loader)

        self.sweeper = RecurringTask(
            self.run_sweep,
            interval=self.settings.sweep_interval_seconds,
            name="StatusSweep"
        )

        logger.info(f"System initialization completed ({self.db_engine.url.render_as_string(hide_password=True)})")
        return self

    def new_session(self) -> Session:
        if self.session_factory is None:
            raise RuntimeError("System is not initialized")
        return self.session_factory()

    def run_sweep(self) -> SweepReport:
        """One lifecycle sweep in its own session."""
        logger.info("Running scheduled device status sweep")
        with session_scope(self.session_factory) as session:
            return StatusLifecycleEngine(session, self.thresholds).sweep()

    def start_scheduler(self) -> None:
        if not self.settings.sweep_enabled:
            logger.info("Status sweep disabled by configuration")
            return
        self.sweeper.start()

    def shutdown(self) -> None:
        """Stop the scheduler and release the database engine."""
        if self.sweeper is not None:
            self.sweeper.stop(timeout=self.settings.sweep_interval_seconds)
        if self.db_engine is not None:
            self.db_engine.dispose()
            self.db_engine = None
            self.session_factory = None
        logger.info("System shutdown completed")
