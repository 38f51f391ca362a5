import logging
from typing import Dict

from fastapi import WebSocket

logger = logging.getLogger(__name__)

BALANCE_UPDATE = "BALANCE_UPDATE"
TRANSACTION_UPDATE = "TRANSACTION_UPDATE"


class LiveUpdateManager:
    """One live connection per user; the newest connection wins."""

    def __init__(self):
        self.connections: Dict[int, WebSocket] = {}  # user_id -> ws

    async def connect(self, websocket: WebSocket, user_id: int):
        await websocket.accept()
        self.connections[user_id] = websocket

    def disconnect(self, websocket: WebSocket, user_id: int):
        # a reconnect may already have replaced this socket
        if self.connections.get(user_id) is websocket:
            del self.connections[user_id]

    def is_connected(self, user_id: int) -> bool:
        return user_id in self.connections

    async def notify(self, user_id: int, message: dict):
        ws = self.connections.get(user_id)
        if ws is None:
            return
        try:
            await ws.send_json(message)
        except Exception as e:
            logger.info("Dropping live connection for user %s: %s", user_id, e)
            self.disconnect(ws, user_id)

    async def balance_update(self, user_id: int, wallet_id: int, balance: str):
        await self.notify(user_id, {
            "type": BALANCE_UPDATE,
            "walletId": wallet_id,
            "balance": balance,
        })

    async def transaction_update(self, user_id: int, transaction_id: int):
        await self.notify(user_id, {
            "type": TRANSACTION_UPDATE,
            "transactionId": transaction_id,
        })
