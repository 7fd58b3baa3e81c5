"""
Tendril Diagram Backend - editor service, persistence, HTTP API, CLI and agent tools.
"""

from .diagram_manager import DiagramManager
from .persistence import InMemoryPersistence, JsonFilePersistence, PersistencePort

__all__ = [
    "DiagramManager",
    "InMemoryPersistence",
    "JsonFilePersistence",
    "PersistencePort",
]
