"""Tests for pushing editor state to connected canvases."""

import asyncio
import json

from fastapi.testclient import TestClient

from tendril_backend.diagram_manager import DiagramManager
from tendril_backend.main import app
from tendril_backend.websocket_manager import StateBroadcaster


class FakeSocket:
    def __init__(self, fail=False):
        self.fail = fail
        self.accepted = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(text)


class TestStateBroadcaster:
    def test_publish_sends_full_state(self):
        """Every open socket gets one diagram_updated message; failed ones are dropped."""
        state = DiagramManager().get_state()
        hub = StateBroadcaster()
        healthy, broken = FakeSocket(), FakeSocket(fail=True)

        async def scenario():
            await hub.connect(healthy)
            await hub.connect(broken)
            await hub.publish(state)

        asyncio.run(scenario())

        assert healthy.accepted
        message = json.loads(healthy.sent[0])
        assert message["type"] == "diagram_updated"
        assert message["diagram_id"] == state["diagram"]["id"]
        assert message["state"]["navigation"]["depth"] == 0
        assert hub.connection_count == 1

    def test_disconnect(self):
        hub = StateBroadcaster()
        socket = FakeSocket()

        async def scenario():
            await hub.connect(socket)
            await hub.disconnect(socket)
            await hub.publish(DiagramManager().get_state())

        asyncio.run(scenario())
        assert hub.connection_count == 0
        assert socket.sent == []


def test_ping_endpoint():
    client = TestClient(app)
    with client.websocket_connect("/ws") as websocket:
        websocket.send_text("ping")
        assert websocket.receive_json() == {"type": "pong"}
