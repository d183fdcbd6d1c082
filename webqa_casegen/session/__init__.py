from .store import InMemoryTTLStore, KeyValueStore, SessionStore

__all__ = ["InMemoryTTLStore", "KeyValueStore", "SessionStore"]
