"""WorldPort driver implementations."""

from mason.drivers.memory import MemoryWorld

__all__ = ["MemoryWorld"]
