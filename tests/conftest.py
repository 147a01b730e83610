import asyncio
import json
from unittest.mock import MagicMock

import numpy as np
import pytest
from websockets.exceptions import ConnectionClosedError
from websockets.protocol import State

from telemetry_publisher.readings import ReadingGenerator


class FakeWebSocket:
    """Stands in for a server connection: records sends, answers pings on demand."""

    def __init__(self, answer_pings=True):
        self.state = State.OPEN
        self.remote_address = ("127.0.0.1", 50000)
        self.transport = MagicMock()
        self.answer_pings = answer_pings
        self.fail_sends = False
        self.fail_pings = False
        self.sent = []
        self.pings = 0

    async def send(self, data):
        if self.fail_sends or self.state is not State.OPEN:
            raise ConnectionClosedError(None, None)
        self.sent.append(json.loads(data))

    async def ping(self):
        self.pings += 1
        if self.fail_pings:
            raise ConnectionClosedError(None, None)
        waiter = asyncio.get_running_loop().create_future()
        if self.answer_pings:
            waiter.set_result(0.001)
        return waiter

    @property
    def telemetry(self):
        return [m for m in self.sent if m.get("type") != "hello"]


@pytest.fixture
def fake_ws():
    return FakeWebSocket()


@pytest.fixture
def generator():
    return ReadingGenerator(np.random.default_rng(1234))


@pytest.fixture
def make_ws():
    return FakeWebSocket
