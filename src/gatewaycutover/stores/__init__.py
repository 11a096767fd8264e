"""
State stores for the migration document.

- StateStore: Abstract base with the shared write retry policy
- FileStateStore: Atomic JSON file
- InMemoryStateStore: In-process document for tests
"""

from gatewaycutover.stores.file import FileStateStore
from gatewaycutover.stores.in_memory import InMemoryStateStore
from gatewaycutover.stores.interface import StateStore

__all__ = [
    "StateStore",
    "FileStateStore",
    "InMemoryStateStore",
]
