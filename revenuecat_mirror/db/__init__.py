"""
Database Module
===============

Provides database session management and base model.
"""

from revenuecat_mirror.db.base import Base
from revenuecat_mirror.db.session import close_db, get_db, init_db

__all__ = ["Base", "get_db", "init_db", "close_db"]
