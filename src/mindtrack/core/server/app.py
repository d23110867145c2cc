"""MindTrack wellbeing MCP server — application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastmcp import FastMCP

from mindtrack.core.config.settings import get_settings
from mindtrack.core.storage.database import WellbeingDatabase
from mindtrack.core.storage.encryption import EncryptionError, FieldEncryptor
from mindtrack.core.storage.repository import WellbeingRepository
from mindtrack.domains.wellbeing.domain_logic.catalog import (
    DEFAULT_CATALOG_DIR,
    AssessmentCatalog,
    load_default_catalog,
)
from mindtrack.domains.wellbeing.domain_logic.recurrence import resolve_timezone
from mindtrack.domains.wellbeing.domain_logic.validation import MoodScale
from mindtrack.domains.wellbeing.notifiers import ReminderNotifier
from mindtrack.domains.wellbeing.notifiers.logging_notifier import LoggingNotifier
from mindtrack.domains.wellbeing.resources.catalog import register_catalog_resources
from mindtrack.domains.wellbeing.tools.assessment_tools import (
    register_assessment_catalog_tools,
)

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def create_app(
    *,
    repository_override: WellbeingRepository | None = None,
    catalog_override: AssessmentCatalog | None = None,
    notifier_override: ReminderNotifier | None = None,
    reminder_sweep: bool | None = None,
) -> FastMCP:
    """Create and configure the MindTrack MCP server.

    This is the main application factory. It:
    1. Loads and checks the assessment catalog (fatal on a bad catalog)
    2. Initializes the encrypted record store, when a key is configured
    3. Creates the reminder sweep and its notifier
    4. Registers all tools and resources

    Args:
        reminder_sweep: Run the background sweep while the server is up.
            Defaults to the ``reminder_sweep_enabled`` setting.
    """
    settings = get_settings()

    # --- Assessment catalog ---
    if catalog_override is not None:
        catalog = catalog_override
    else:
        catalog_dir = settings.catalog_dir or DEFAULT_CATALOG_DIR
        catalog = load_default_catalog(catalog_dir)
        logger.info("Loaded %d assessment types from %s", len(catalog), catalog_dir)

    mood_scale = MoodScale(settings.mood_scale_min, settings.mood_scale_max)
    tz = resolve_timezone(settings.local_timezone)

    # --- Initialize encrypted storage (record store) ---
    repository: WellbeingRepository | None = None
    if repository_override is not None:
        repository = repository_override
    elif settings.encryption_key:
        try:
            encryptor = FieldEncryptor(settings.encryption_key)
            database = WellbeingDatabase(settings.db_path)
            database.initialize()
            repository = WellbeingRepository(database, encryptor)
            logger.info(
                "Record store initialized: %s (schema v%d)",
                settings.db_path,
                database.get_schema_version(),
            )
        except EncryptionError as exc:
            logger.error("Failed to initialize storage: %s", exc)
            logger.warning("Continuing without persistence; records will not be stored")
    else:
        logger.warning(
            "No ENCRYPTION_KEY configured; running without persistence. "
            "Set ENCRYPTION_KEY to enable the record store."
        )

    # --- Reminder sweep (requires storage) ---
    sweeper = None
    if repository is not None:
        from mindtrack.domains.wellbeing.domain_logic.reminder_sweep import ReminderSweeper

        notifier = notifier_override if notifier_override is not None else LoggingNotifier()
        sweeper = ReminderSweeper(repository, catalog, notifier, tz=tz)

    run_sweep = settings.reminder_sweep_enabled if reminder_sweep is None else reminder_sweep

    @asynccontextmanager
    async def lifespan(server: FastMCP) -> AsyncIterator[None]:
        if sweeper is None or not run_sweep:
            yield
            return
        stop = threading.Event()
        thread = threading.Thread(
            target=sweeper.run_forever,
            args=(stop, settings.reminder_sweep_interval_seconds),
            name="reminder-sweep",
            daemon=True,
        )
        thread.start()
        try:
            yield
        finally:
            stop.set()
            thread.join(timeout=5)

    # --- Server instance ---
    server = FastMCP(
        "MindTrack Wellbeing",
        instructions=(
            "Local, single-user wellbeing journal. Scores standard mental-health "
            "questionnaires (PHQ-9, GAD-7, CES-D, OASIS), records mood check-ins "
            "with activity tags, summarizes trends, and keeps assessment reminders. "
            "Scores are screening aids, not a diagnosis."
        ),
        lifespan=lifespan,
    )

    # --- Register tools ---
    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        return {
            "status": "ok",
            "server": "MindTrack Wellbeing",
            "version": VERSION,
            "assessment_types": catalog.codes(),
            "mood_scale": {"min": mood_scale.min_rating, "max": mood_scale.max_rating},
            "storage_enabled": repository is not None,
            "reminder_sweep": sweeper is not None and run_sweep,
        }

    register_assessment_catalog_tools(server, catalog)

    # --- Register record tools (requires storage) ---
    if repository is not None and sweeper is not None:
        from mindtrack.domains.wellbeing.domain_logic.trend_analyzer import TrendAnalyzer
        from mindtrack.domains.wellbeing.tools.assessment_tools import register_assessment_tools
        from mindtrack.domains.wellbeing.tools.mood_tools import register_mood_tools
        from mindtrack.domains.wellbeing.tools.schedule_tools import register_schedule_tools
        from mindtrack.domains.wellbeing.tools.trend_tools import register_trend_tools

        register_assessment_tools(server, catalog, repository, tz)
        register_mood_tools(server, repository, mood_scale, tz)
        register_trend_tools(server, TrendAnalyzer(repository, catalog))
        register_schedule_tools(server, repository, catalog, sweeper, tz)
        logger.info("Storage-backed tools registered")

    # --- Register resources ---
    register_catalog_resources(server, catalog)

    return server


# Module-level instance for FastMCP discovery ("...app.py:mcp").
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
