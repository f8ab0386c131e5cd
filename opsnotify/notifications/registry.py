"""Connection registry — which users hold live push connections."""

from __future__ import annotations

from opsnotify.core.locks import StripedLock


class ConnectionRegistry:
    """Tracks ``user_id → {connection_id, ...}``.

    A user is online iff its set is non-empty; the last ``unregister``
    removes the entry so no empty sets linger. Mutations for one user are
    serialised on that user's lock stripe.
    """

    def __init__(self, stripes: int = 64) -> None:
        self._connections: dict[int, set[str]] = {}
        self._locks = StripedLock(stripes)

    def register(self, user_id: int, connection_id: str) -> None:
        with self._locks.for_key(user_id):
            self._connections.setdefault(user_id, set()).add(connection_id)

    def unregister(self, user_id: int, connection_id: str) -> bool:
        """Drop one connection. Returns False if it was not registered."""
        with self._locks.for_key(user_id):
            connections = self._connections.get(user_id)
            if connections is None or connection_id not in connections:
                return False
            connections.discard(connection_id)
            if not connections:
                del self._connections[user_id]
            return True

    def is_online(self, user_id: int) -> bool:
        with self._locks.for_key(user_id):
            return user_id in self._connections

    def connection_count(self, user_id: int) -> int:
        with self._locks.for_key(user_id):
            return len(self._connections.get(user_id, ()))

    def connections(self, user_id: int) -> frozenset[str]:
        with self._locks.for_key(user_id):
            return frozenset(self._connections.get(user_id, ()))

    def online_users(self) -> set[int]:
        """Snapshot of users with at least one live connection."""
        return set(self._connections)
