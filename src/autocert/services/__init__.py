"""Application services."""

from autocert.services.lifecycle import LifecycleOrchestrator

__all__ = ["LifecycleOrchestrator"]
