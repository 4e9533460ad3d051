"""Build the job store and talk catalog for the configured backend."""

import logging
from typing import Callable, Tuple

from tedtalks.config import Settings
from tedtalks.storage.job_store import ImportJobStore
from tedtalks.talks.repository import TalkRepository

logger = logging.getLogger(__name__)


def build_storage(
    app_settings: Settings,
) -> Tuple[ImportJobStore, TalkRepository, Callable[[], None]]:
    """Return (job_store, talk_repository, close_fn). Caller must call close_fn when done."""
    if app_settings.storage_backend == "supabase":
        from tedtalks.storage.supabase_store import (
            SupabaseImportJobStore,
            SupabaseTalkRepository,
            get_supabase,
        )

        client = get_supabase(
            app_settings.supabase_url, app_settings.supabase_service_role_key
        )
        logger.info("Using Supabase storage at %s", app_settings.supabase_url)
        return SupabaseImportJobStore(client), SupabaseTalkRepository(client), lambda: None

    from tedtalks.storage.sql import SqlImportJobStore, SqlTalkRepository, create_db_engine

    engine = create_db_engine(app_settings.database_url)
    logger.info("Using SQL storage (%s)", engine.url.render_as_string(hide_password=True))
    return SqlImportJobStore(engine), SqlTalkRepository(engine), engine.dispose
