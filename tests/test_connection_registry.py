"""Unit tests for the connection registry: replace-on-register and identity-based removal."""
import asyncio
import random

from starlette.websockets import WebSocketState


class FakeWebSocket:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail
        self.application_state = WebSocketState.CONNECTED
        self.client_state = WebSocketState.CONNECTED

    async def send_json(self, obj):
        if self.fail:
            raise RuntimeError("socket gone")
        self.sent.append(obj)


def _conn(fail: bool = False):
    from collegebuddy.core.websocket.manager import Connection
    return Connection(FakeWebSocket(fail=fail))


def test_register_and_lookup():
    from collegebuddy.core.websocket.manager import ConnectionRegistry

    async def scenario():
        registry = ConnectionRegistry()
        a = _conn()
        assert await registry.register("u1", a) is None
        assert await registry.lookup("u1") is a
        assert await registry.lookup("u2") is None
        assert registry.is_connected("u1")
        assert await registry.get_connected_user_ids() == ["u1"]

    asyncio.run(scenario())


def test_new_connection_replaces_previous():
    from collegebuddy.core.websocket.manager import ConnectionRegistry

    async def scenario():
        registry = ConnectionRegistry()
        old, new = _conn(), _conn()
        await registry.register("u1", old)
        replaced = await registry.register("u1", new)
        assert replaced is old
        assert await registry.lookup("u1") is new
        assert await registry.get_connected_user_ids() == ["u1"]

    asyncio.run(scenario())


def test_unregister_superseded_connection_keeps_newer_entry():
    from collegebuddy.core.websocket.manager import ConnectionRegistry

    async def scenario():
        registry = ConnectionRegistry()
        old, new = _conn(), _conn()
        await registry.register("u1", old)
        await registry.register("u1", new)
        # old connection's close arrives after the reconnect
        assert await registry.unregister(old) is None
        assert await registry.lookup("u1") is new
        assert await registry.unregister(new) == "u1"
        assert await registry.lookup("u1") is None

    asyncio.run(scenario())


def test_unregister_unknown_connection_is_noop():
    from collegebuddy.core.websocket.manager import ConnectionRegistry

    async def scenario():
        registry = ConnectionRegistry()
        await registry.register("u1", _conn())
        assert await registry.unregister(_conn()) is None
        assert registry.is_connected("u1")

    asyncio.run(scenario())


def test_random_register_unregister_sequences_match_reference():
    from collegebuddy.core.websocket.manager import ConnectionRegistry

    async def scenario(seed):
        rng = random.Random(seed)
        registry = ConnectionRegistry()
        users = ["a", "b", "c"]
        latest = {}  # user -> most recently registered connection
        removed = set()
        pool = []
        for _ in range(60):
            if pool and rng.random() < 0.4:
                conn = rng.choice(pool)
                await registry.unregister(conn)
                removed.add(conn)
            else:
                user = rng.choice(users)
                conn = _conn()
                pool.append(conn)
                await registry.register(user, conn)
                latest[user] = conn
        for user in users:
            expected = latest.get(user)
            if expected is not None and expected in removed:
                expected = None
            assert await registry.lookup(user) is expected

    for seed in range(25):
        asyncio.run(scenario(seed))


def test_send_to_user_absent_or_closed_is_false():
    from collegebuddy.core.websocket.manager import ConnectionRegistry

    async def scenario():
        registry = ConnectionRegistry()
        assert await registry.send_to_user("nobody", {"type": "x"}) is False
        conn = _conn()
        await registry.register("u1", conn)
        assert await registry.send_to_user("u1", {"type": "x"}) is True
        assert conn.websocket.sent == [{"type": "x"}]
        conn.websocket.client_state = WebSocketState.DISCONNECTED
        assert await registry.send_to_user("u1", {"type": "y"}) is False
        assert conn.websocket.sent == [{"type": "x"}]

    asyncio.run(scenario())


def test_connection_send_failure_marks_closed():
    async def scenario():
        conn = _conn(fail=True)
        assert conn.is_open
        assert await conn.send_event({"type": "x"}) is False
        assert conn.closed is True
        assert await conn.send_event({"type": "x"}) is False

    asyncio.run(scenario())


def test_connection_send_after_mark_closed_is_noop():
    async def scenario():
        conn = _conn()
        conn.mark_closed()
        assert await conn.send_event({"type": "x"}) is False
        assert conn.websocket.sent == []

    asyncio.run(scenario())
