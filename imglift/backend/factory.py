"""
Factory for creating storage backend components.
"""

import logging
from pathlib import Path
from typing import Optional

import requests

from config_manager import StorageConfig, SupabaseConfig

from .local import (
    LocalAuthProvider,
    LocalImageHistoryStore,
    LocalImageStorage,
    LocalShortUrlStore,
    LocalUsageStore,
    LocalVisitStore,
)
from .supabase import (
    SupabaseAuthProvider,
    SupabaseClient,
    SupabaseImageHistoryStore,
    SupabaseImageStorage,
    SupabaseShortUrlStore,
    SupabaseUsageStore,
    SupabaseVisitStore,
)

logger = logging.getLogger(__name__)

BACKENDS = ("local", "supabase")


def create_backend_module(
    storage_config: StorageConfig,
    supabase_config: SupabaseConfig,
    site_url: str,
    base_dir: Optional[Path] = None,
    session: Optional[requests.Session] = None,
) -> dict:
    """
    Create the storage backend selected by ``storage_config.backend``.

    Args:
        storage_config: Storage settings (backend name, data dir, local tokens)
        supabase_config: Supabase settings, used by the supabase backend
        site_url: Public base URL, used for local object URLs
        base_dir: Directory that a relative ``data_dir`` is resolved against
        session: Optional requests session for the Supabase client

    Returns:
        Dictionary with:
        - name: Backend name
        - auth: AuthProvider
        - usage_store: UsageStore
        - visit_store: VisitStore
        - history_store: ImageHistoryStore
        - short_url_store: ShortUrlStore
        - image_storage: ImageStorage
    """
    backend = storage_config.backend
    if backend not in BACKENDS:
        raise ValueError(f"Unknown storage backend '{backend}', expected one of {BACKENDS}")

    if backend == "supabase":
        client = SupabaseClient(supabase_config, session=session)
        if not client.is_configured:
            logger.warning("Supabase backend selected but SUPABASE_URL/SUPABASE_ANON_KEY are not set")
        elif not supabase_config.service_role_key:
            logger.warning("SUPABASE_SERVICE_ROLE_KEY not set - using anon key. RLS policies may block inserts.")
        return {
            "name": backend,
            "client": client,
            "auth": SupabaseAuthProvider(client),
            "usage_store": SupabaseUsageStore(client),
            "visit_store": SupabaseVisitStore(client),
            "history_store": SupabaseImageHistoryStore(client),
            "short_url_store": SupabaseShortUrlStore(client),
            "image_storage": SupabaseImageStorage(client, supabase_config.images_bucket),
        }

    data_dir = Path(storage_config.data_dir)
    if base_dir is not None and not data_dir.is_absolute():
        data_dir = base_dir / data_dir
    data_dir.mkdir(parents=True, exist_ok=True)
    logger.info(f"Using local storage backend at {data_dir}")

    return {
        "name": backend,
        "client": None,
        "auth": LocalAuthProvider(storage_config.local_auth_tokens),
        "usage_store": LocalUsageStore(data_dir),
        "visit_store": LocalVisitStore(data_dir),
        "history_store": LocalImageHistoryStore(data_dir),
        "short_url_store": LocalShortUrlStore(data_dir),
        "image_storage": LocalImageStorage(data_dir / "objects" / supabase_config.images_bucket, site_url),
    }
