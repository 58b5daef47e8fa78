"""
Database module for the ride tracking backend.

This module provides SQLite/PostgreSQL integration using SQLAlchemy.
"""

from .database import (
    get_db,
    init_engine,
    create_tables,
    Base,
    is_database_available,
)
from .models import (
    RouteModel,
    BusModel,
    ScheduledRideModel,
)
from . import crud, schemas

__all__ = [
    "get_db",
    "init_engine",
    "create_tables",
    "Base",
    "is_database_available",
    "RouteModel",
    "BusModel",
    "ScheduledRideModel",
    "crud",
    "schemas",
]
