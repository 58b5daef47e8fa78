"""
Configuration module for the ride tracking backend.

Centralizes all configuration settings including feature flags,
database URLs, geofencing and realtime fan-out settings.
"""

import os
from typing import Any, List, Optional


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes", "on")


class Config:
    """Application configuration loaded from environment variables."""

    # Feature Flags
    WEBSOCKET_ENABLED: bool = _env_flag("WEBSOCKET_ENABLED", "true")
    REDIS_RELAY_ENABLED: bool = _env_flag("REDIS_RELAY_ENABLED", "false")
    AUTH_ENFORCED: bool = _env_flag("AUTH_ENFORCED", "true")

    # Database Configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./ride_tracking.db")
    SQLALCHEMY_ECHO: bool = _env_flag("SQLALCHEMY_ECHO", "false")

    # Redis Configuration (cross-process event relay)
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    REDIS_CHANNEL: str = os.getenv("REDIS_CHANNEL", "ride_events")

    # Geofencing
    GEOFENCE_RADIUS_METERS: float = float(os.getenv("GEOFENCE_RADIUS_METERS", "50"))

    # WebSocket Configuration
    WS_HEARTBEAT_INTERVAL: int = int(os.getenv("WS_HEARTBEAT_INTERVAL", "30"))

    # HTTP
    CORS_ORIGINS: List[str] = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "*").split(",")
        if origin.strip()
    ]
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    @classmethod
    def resolve_geofence_radius(cls, route: Optional[Any] = None) -> float:
        """Radius for a route: its own override when set, else the global default."""
        override = getattr(route, "geofence_radius_meters", None) if route is not None else None
        if override is not None and override > 0:
            return float(override)
        return cls.GEOFENCE_RADIUS_METERS

    @classmethod
    def get_config_dict(cls) -> dict:
        """Return configuration as dictionary (for debugging)."""
        return {
            "WEBSOCKET_ENABLED": cls.WEBSOCKET_ENABLED,
            "REDIS_RELAY_ENABLED": cls.REDIS_RELAY_ENABLED,
            "AUTH_ENFORCED": cls.AUTH_ENFORCED,
            "REDIS_URL": cls.REDIS_URL.replace("//", "//***@") if "@" in cls.REDIS_URL else cls.REDIS_URL,
            "DATABASE_URL": cls.DATABASE_URL.split("@")[-1],
            "GEOFENCE_RADIUS_METERS": cls.GEOFENCE_RADIUS_METERS,
            "WS_HEARTBEAT_INTERVAL": cls.WS_HEARTBEAT_INTERVAL,
            "LOG_LEVEL": cls.LOG_LEVEL,
        }


# Global configuration instance
config = Config()
