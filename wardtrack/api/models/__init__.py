"""API response models."""

from wardtrack.api.models.health import DatabaseHealth, HealthResponse, MirrorHealth

__all__ = ["DatabaseHealth", "HealthResponse", "MirrorHealth"]
