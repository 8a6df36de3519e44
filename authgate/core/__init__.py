"""Core module - configuration, database, security primitives"""

from .database import Base, Database
from .settings import Settings, load_settings

__all__ = ["Settings", "load_settings", "Base", "Database"]
