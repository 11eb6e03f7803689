"""
Store connection for the quote services

Every service reaches the quotes/quote_items tables (and the
apply_quote_batch function) through get_supabase(). Settings come from the
environment, or from a .env file next to the process.
"""

import logging
import os
from functools import lru_cache
from typing import Tuple

from dotenv import load_dotenv
from supabase import Client, create_client
from supabase.lib.client_options import ClientOptions

load_dotenv()

logger = logging.getLogger(__name__)

REQUIRED_SETTINGS = ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY")


def _connection_settings() -> Tuple[str, str, str]:
    """(url, service key, schema); names every missing variable."""
    missing = [name for name in REQUIRED_SETTINGS if not os.getenv(name)]
    if missing:
        raise RuntimeError(f"Quote store is not configured, missing: {', '.join(missing)}")
    return (
        os.environ["SUPABASE_URL"],
        os.environ["SUPABASE_SERVICE_ROLE_KEY"],
        os.getenv("SUPABASE_SCHEMA") or "public",
    )


@lru_cache()
def get_supabase() -> Client:
    """Shared client for the quote tables"""
    url, key, schema = _connection_settings()
    logger.info(f"Connecting to quote store {url} (schema {schema})")
    return create_client(url, key, options=ClientOptions(schema=schema))


def reset_supabase() -> None:
    """Drop the cached client, so the next call reads the environment again."""
    get_supabase.cache_clear()
