"""
Core application modules.
Contains configuration, logging, caching, metrics and the database connection.
"""
from .config import Settings, get_settings
from .database import get_supabase_client

__all__ = ["Settings", "get_settings", "get_supabase_client"]
