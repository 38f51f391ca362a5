from unittest.mock import AsyncMock

import pytest
from starlette.websockets import WebSocketDisconnect

from amanah.live import LiveUpdateManager


@pytest.mark.asyncio
async def test_notify_without_connection_is_dropped():
    live = LiveUpdateManager()
    await live.balance_update(1, 10, "1.5")
    assert not live.is_connected(1)


@pytest.mark.asyncio
async def test_newest_connection_wins():
    live = LiveUpdateManager()
    first, second = AsyncMock(), AsyncMock()
    await live.connect(first, 1)
    await live.connect(second, 1)

    # closing the replaced socket must not unregister the new one
    live.disconnect(first, 1)
    await live.transaction_update(1, 7)

    first.send_json.assert_not_awaited()
    second.send_json.assert_awaited_once_with({"type": "TRANSACTION_UPDATE", "transactionId": 7})


@pytest.mark.asyncio
async def test_send_failure_drops_connection():
    live = LiveUpdateManager()
    ws = AsyncMock()
    ws.send_json.side_effect = RuntimeError("closed")
    await live.connect(ws, 1)

    await live.balance_update(1, 10, "2")

    assert not live.is_connected(1)


def test_websocket_requires_authentication(client):
    client.cookies.clear()
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()


def test_transfer_pushes_updates_to_recipient(client, alice, bob):
    token = bob["headers"]["Authorization"].split(" ")[1]
    with client.websocket_connect(f"/ws?token={token}") as ws:
        resp = client.post("/api/transactions/send", json={"recipient": "bob", "amount": "1"},
                           headers=alice["headers"])
        assert resp.status_code == 200, resp.text

        balance = ws.receive_json()
        assert balance["type"] == "BALANCE_UPDATE"
        assert balance["balance"] == "1"

        assert ws.receive_json()["type"] == "TRANSACTION_UPDATE"
