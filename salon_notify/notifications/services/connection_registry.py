"""
In-memory registry of joined WebSocket connections.

Every joined connection is a member of its tenant room and, when it carries a
staff identity, of that staff member's room. The staff rooms are the index
used for targeted delivery. All methods are synchronous so that, on a single
event loop, registry mutations never interleave with each other.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Set

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def tenant_room(tenant_id: str) -> str:
    return f"tenant_{tenant_id}"


def staff_room(staff_id: str) -> str:
    return f"staff_{staff_id}"


@dataclass
class Connection:
    connection_id: str
    tenant_id: str
    staff_id: Optional[str] = None
    role: Optional[str] = None
    connected_at: datetime = field(default_factory=utcnow)
    last_activity_at: datetime = field(default_factory=utcnow)

    @property
    def rooms(self) -> List[str]:
        rooms = [tenant_room(self.tenant_id)]
        if self.staff_id:
            rooms.append(staff_room(self.staff_id))
        return rooms


class ConnectionRegistry:
    def __init__(self, clock: Clock = utcnow) -> None:
        self._clock = clock
        self._connections: Dict[str, Connection] = {}
        self._rooms: Dict[str, Set[str]] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def get(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def register(
        self,
        connection_id: str,
        tenant_id: str,
        staff_id: Optional[str] = None,
        role: Optional[str] = None,
    ) -> Connection:
        """Record a joined connection and put it in its rooms.

        Joining again with the same connection id replaces the previous
        registration, so a connection is never in two tenants at once.
        """
        if connection_id in self._connections:
            self.leave(connection_id, "rejoin")

        now = self._clock()
        connection = Connection(
            connection_id=connection_id,
            tenant_id=tenant_id,
            staff_id=staff_id,
            role=role,
            connected_at=now,
            last_activity_at=now,
        )
        self._connections[connection_id] = connection
        for room in connection.rooms:
            self._rooms.setdefault(room, set()).add(connection_id)
        return connection

    def record_activity(self, connection_id: str) -> bool:
        connection = self._connections.get(connection_id)
        if connection is None:
            return False
        connection.last_activity_at = self._clock()
        return True

    def leave(self, connection_id: str, reason: str) -> Optional[Connection]:
        connection = self._connections.pop(connection_id, None)
        if connection is None:
            return None

        for room in connection.rooms:
            members = self._rooms.get(room)
            if members is None:
                continue
            members.discard(connection_id)
            if not members:
                del self._rooms[room]

        logger.info(
            f"Connection {connection_id} left (reason: {reason}, staff: {connection.staff_id})",
            extra={
                "connection_id": connection_id,
                "tenant_id": connection.tenant_id,
                "staff_id": connection.staff_id,
                "reason": reason,
            },
        )
        return connection

    def room_members(self, room: str) -> Set[str]:
        return set(self._rooms.get(room, ()))

    def connections_for_staff(self, staff_id: str) -> Set[str]:
        return self.room_members(staff_room(staff_id))

    def connections_for_tenant(self, tenant_id: str) -> Set[str]:
        return self.room_members(tenant_room(tenant_id))

    def snapshot(self) -> List[Connection]:
        return list(self._connections.values())

    def stats(self) -> dict:
        tenant_connections: Dict[str, int] = {}
        staff_connections: Dict[str, int] = {}

        for connection in self._connections.values():
            tenant_connections[connection.tenant_id] = (
                tenant_connections.get(connection.tenant_id, 0) + 1
            )
            if connection.staff_id:
                staff_connections[connection.staff_id] = (
                    staff_connections.get(connection.staff_id, 0) + 1
                )

        return {
            "total_connections": len(self._connections),
            "tenant_connections": tenant_connections,
            "staff_connections": staff_connections,
        }
