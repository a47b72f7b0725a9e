import logging
from typing import Any, Dict, Optional

from fastapi import WebSocket
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)


class WebSocketTransport:
    """Maps connection ids to live sockets and pushes ``{event, data}`` frames.

    Every send is best-effort: a socket that fails to accept a frame is
    detached and the failure is reported through the return value only.
    """

    def __init__(self) -> None:
        self._sockets: Dict[str, WebSocket] = {}

    def __len__(self) -> int:
        return len(self._sockets)

    def attach(self, connection_id: str, websocket: WebSocket) -> None:
        self._sockets[connection_id] = websocket

    def detach(self, connection_id: str) -> Optional[WebSocket]:
        return self._sockets.pop(connection_id, None)

    async def emit(self, connection_id: str, event: str, data: Any = None) -> bool:
        websocket = self._sockets.get(connection_id)
        if websocket is None:
            logger.info(f"Skipping '{event}' for {connection_id}: socket is gone")
            return False

        try:
            await websocket.send_json({"event": event, "data": data})
            return True
        except Exception as e:
            logger.info(
                f"Failed to emit '{event}' to {connection_id}: {e}",
                extra={"connection_id": connection_id, "event": event},
            )
            self.detach(connection_id)
            return False

    async def disconnect(self, connection_id: str, reason: str) -> bool:
        websocket = self.detach(connection_id)
        if websocket is None:
            return False

        if websocket.application_state == WebSocketState.DISCONNECTED:
            return False

        try:
            await websocket.close(code=1000, reason=reason)
            return True
        except RuntimeError as e:
            logger.debug(f"Socket {connection_id} already closed: {e}")
            return False
