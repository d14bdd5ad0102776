"""Collaborator interfaces and their implementations."""

from payrecon.stores.base import PayrollSources
from payrecon.stores.memory import in_memory_sources

__all__ = ["PayrollSources", "in_memory_sources"]
