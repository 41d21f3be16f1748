"""
WebSocket fan-out for vehicle rooms.

Delivery is best effort: frames are pushed to whatever sockets are open and
nothing is acknowledged or retried.
"""

import logging
from collections import defaultdict
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks open sockets per vehicle room."""

    def __init__(self):
        self.rooms: Dict[str, Set[WebSocket]] = defaultdict(set)

    async def connect(self, vehicle_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        self.rooms[vehicle_id].add(websocket)
        logger.info(f"Vehicle {vehicle_id} joined its room ({self.connection_count} sockets)")

    def disconnect(self, vehicle_id: str, websocket: WebSocket) -> None:
        room = self.rooms.get(vehicle_id)
        if room is None:
            return
        room.discard(websocket)
        if not room:
            del self.rooms[vehicle_id]
        logger.info(f"Vehicle {vehicle_id} left its room ({self.connection_count} sockets)")

    @property
    def connection_count(self) -> int:
        return sum(len(room) for room in self.rooms.values())

    async def send_to_vehicle(self, vehicle_id: str, event: str, payload: Any) -> int:
        """Push an event to every socket in a vehicle's room."""
        sockets = list(self.rooms.get(vehicle_id, ()))
        return await self._send(sockets, event, payload, vehicle_id)

    async def broadcast(
        self, event: str, payload: Any, exclude: Optional[WebSocket] = None
    ) -> int:
        sockets = [
            (vehicle_id, ws)
            for vehicle_id, room in self.rooms.items()
            for ws in room
            if ws is not exclude
        ]
        sent = 0
        for vehicle_id, ws in sockets:
            sent += await self._send([ws], event, payload, vehicle_id)
        return sent

    async def _send(self, sockets, event: str, payload: Any, vehicle_id: str) -> int:
        frame = {"type": event, "data": jsonable_encoder(payload, by_alias=True)}
        sent = 0
        for ws in sockets:
            try:
                await ws.send_json(frame)
                sent += 1
            except Exception as e:
                logger.warning(f"Dropping socket for vehicle {vehicle_id}: {e}")
                self.disconnect(vehicle_id, ws)
        return sent
