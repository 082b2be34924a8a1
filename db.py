"""Supabase client and data-source selection. The choice is cached via Streamlit."""
import logging
import os

import streamlit as st
from dotenv import load_dotenv
from supabase import Client, create_client

from drivetest.data_source import DataSource
from drivetest.database import SupabaseDataSource
from drivetest.errors import ConfigurationError
from drivetest.fixtures import FixtureDataSource

load_dotenv()

logger = logging.getLogger(__name__)

DATA_SOURCE_ENV = "DRIVETEST_DATA_SOURCE"
SUPABASE = "supabase"
FIXTURE = "fixture"
PLACEHOLDER_MARKERS = ("your_supabase", "your-project")


def has_supabase_credentials() -> bool:
    url = os.environ.get("SUPABASE_URL")
    key = os.environ.get("SUPABASE_KEY")
    if not url or not key:
        return False
    return not any(marker in url for marker in PLACEHOLDER_MARKERS)


def _env_client() -> Client:
    url = os.environ.get("SUPABASE_URL")
    key = os.environ.get("SUPABASE_KEY")
    if not url or not key:
        raise ConfigurationError("SUPABASE_URL and SUPABASE_KEY must be set")
    return create_client(url, key)


def get_supabase_uncached() -> Client:
    """For CLI/scripts (no Streamlit context)."""
    return _env_client()


def resolve_data_source_kind() -> str:
    """
    DRIVETEST_DATA_SOURCE=supabase|fixture wins when set; otherwise Supabase is
    used when real credentials are present, fixtures when they are not.
    """
    choice = (os.environ.get(DATA_SOURCE_ENV) or "").strip().lower()
    if choice in (SUPABASE, FIXTURE):
        return choice
    if choice:
        raise ConfigurationError(f"{DATA_SOURCE_ENV} must be '{SUPABASE}' or '{FIXTURE}', got {choice!r}")
    if has_supabase_credentials():
        return SUPABASE
    logger.warning("No Supabase credentials found; using in-memory sample data")
    return FIXTURE


def build_data_source(kind: str, client_factory=get_supabase_uncached) -> DataSource:
    if kind == SUPABASE:
        return SupabaseDataSource(client_factory())
    if kind == FIXTURE:
        return FixtureDataSource()
    raise ConfigurationError(f"Unknown data source: {kind!r}")


@st.cache_resource
def get_data_source_kind() -> str:
    """Decided once per Streamlit process."""
    kind = resolve_data_source_kind()
    logger.info(f"Using {kind} data source")
    return kind


def get_data_source() -> DataSource:
    """
    One data source per browser session: each holds its own Supabase client so a
    signed-in user's auth token never leaks into another session.
    """
    if "data_source" not in st.session_state:
        st.session_state["data_source"] = build_data_source(get_data_source_kind())
    return st.session_state["data_source"]
