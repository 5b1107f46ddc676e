import unittest
from unittest.mock import patch

from dreidel.core.security import create_access_token
from dreidel.realtime import socket_server as ws
from dreidel.realtime.broadcast import BroadcastGateway
from dreidel.realtime.connection_registry import ConnectionRegistry
from dreidel.realtime.event_router import EventRouter
from dreidel.services.game_table import GameTable, SpinOutcome


class SocketFlowTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.emitted: list[tuple[str, object, str | None]] = []
        self.table = GameTable()
        self.registry = ConnectionRegistry(self.table)
        self.gateway = BroadcastGateway(ws.sio, self.registry)
        self.router = EventRouter(self.table, self.gateway, reset_delay_seconds=60)
        self.patches = []

        async def fake_emit(event, payload=None, room=None):
            self.emitted.append((event, payload, room))

        self.patches.append(patch.object(ws.sio, "emit", new=fake_emit))
        self.patches.append(patch.object(ws, "game_table", new=self.table))
        self.patches.append(patch.object(ws, "registry", new=self.registry))
        self.patches.append(patch.object(ws, "gateway", new=self.gateway))
        self.patches.append(patch.object(ws, "router", new=self.router))
        self.patches.append(patch.object(ws, "_is_socket_connect_allowed", return_value=True))
        self.patches.append(patch.object(ws, "_is_socket_event_allowed", return_value=True))
        for patcher in self.patches:
            patcher.start()

    async def asyncTearDown(self) -> None:
        await self.router.shutdown()
        for patcher in reversed(self.patches):
            patcher.stop()

    async def _connect(self, sid: str, user_id: str, name: str) -> bool:
        token = create_access_token(user_id, name)
        return await ws.connect(sid, {"REMOTE_ADDR": "127.0.0.1"}, {"token": f"Bearer {token}"})

    def _events(self, name: str) -> list[tuple[object, str | None]]:
        return [(payload, room) for event, payload, room in self.emitted if event == name]

    async def test_unauthenticated_connection_is_refused(self) -> None:
        connected = await ws.connect("sid-anon", {"REMOTE_ADDR": "127.0.0.1"}, None)
        bad_token = await ws.connect("sid-bad", {"REMOTE_ADDR": "127.0.0.1"}, {"token": "garbage"})

        self.assertFalse(connected)
        self.assertFalse(bad_token)
        self.assertEqual(self.table.turn_order, [])
        self.assertEqual(self.registry.connection_ids(), [])
        self.assertEqual(self.emitted, [])

    async def test_cookie_token_is_accepted(self) -> None:
        token = create_access_token("u9", "Cookie")
        environ = {
            "REMOTE_ADDR": "127.0.0.1",
            "HTTP_COOKIE": f"{ws.settings.session_cookie_name}={token}; theme=dark",
        }
        self.assertTrue(await ws.connect("sid-cookie", environ, None))
        self.assertEqual(self.table.players["u9"].name, "Cookie")

    async def test_connect_seats_player_and_broadcasts(self) -> None:
        self.assertTrue(await self._connect("sid-1", "u1", "Alice"))
        self.assertTrue(await self._connect("sid-2", "u2", "Bob"))

        self.assertEqual(self.table.turn_order, ["u1", "u2"])
        self.assertEqual(self.table.pot, 2)
        system_events = self._events("system")
        self.assertTrue(any(payload["user_id"] == "u1" and room == "sid-1" for payload, room in system_events))

        latest_states = [payload for payload, room in self._events("gameState") if room == "sid-1"]
        self.assertEqual(latest_states[-1]["currentTurn"], "u1")
        self.assertEqual(set(latest_states[-1]["players"]), {"u1", "u2"})

    async def test_spin_flow_and_silent_out_of_turn_ack(self) -> None:
        await self._connect("sid-1", "u1", "Alice")
        await self._connect("sid-2", "u2", "Bob")
        self.emitted.clear()

        rejected = await ws.spin("sid-2")
        self.assertEqual(rejected, {"ok": False})
        self.assertEqual(self.emitted, [])

        original_spin = self.table.spin
        with patch.object(
            self.table,
            "spin",
            side_effect=lambda requester_id: original_spin(requester_id, SpinOutcome.GIMEL),
        ):
            accepted = await ws.spin("sid-1")

        self.assertEqual(accepted, {"ok": True})
        states = self._events("gameState")
        self.assertEqual(sorted(room for _payload, room in states), ["sid-1", "sid-2"])
        payload = states[0][0]
        self.assertEqual(payload["pot"], 0)
        self.assertEqual(payload["players"]["u1"]["coins"], 12)
        self.assertEqual(payload["currentTurn"], "u2")
        self.assertEqual(payload["lastSpin"], {"player": "Alice", "result": "Gimel"})

    async def test_unknown_sid_is_unauthorized(self) -> None:
        self.assertEqual(await ws.spin("sid-ghost"), {"ok": False, "error": "unauthorized"})
        self.assertEqual(await ws.sync_state("sid-ghost"), {"ok": False, "error": "unauthorized"})

    async def test_unknown_event_is_ignored(self) -> None:
        await self._connect("sid-1", "u1", "Alice")
        self.emitted.clear()

        await ws.any_event("dance", "sid-1")
        await ws.any_event("dance", "sid-1", {"user_id": "u1"})
        await ws.any_event("dance", "sid-1", {"user_id": "u1"}, "extra", 3)

        self.assertEqual(self.emitted, [])
        self.assertEqual(self.table.last_spin, None)

    async def test_intents_accept_extra_arguments(self) -> None:
        await self._connect("sid-1", "u1", "Alice")
        await self._connect("sid-2", "u2", "Bob")

        self.assertEqual(await ws.spin("sid-2", {"user_id": "u1"}, "extra"), {"ok": False})
        self.assertEqual(await ws.spin("sid-1", {}, "extra"), {"ok": True})
        self.assertEqual(await ws.restart("sid-2", None, None), {"ok": True})
        self.assertTrue((await ws.sync_state("sid-1", {}, 1))["ok"])

    async def test_disconnect_mid_turn_hands_turn_over(self) -> None:
        await self._connect("sid-1", "u1", "Alice")
        await self._connect("sid-2", "u2", "Bob")
        self.emitted.clear()

        await ws.disconnect("sid-1", "transport close")

        self.assertNotIn("u1", self.table.players)
        states = self._events("gameState")
        self.assertEqual([room for _payload, room in states], ["sid-2"])
        self.assertEqual(states[0][0]["currentTurn"], "u2")

    async def test_restart_from_any_player(self) -> None:
        await self._connect("sid-1", "u1", "Alice")
        await self._connect("sid-2", "u2", "Bob")
        self.table.players["u1"].coins = 1

        self.assertEqual(await ws.restart("sid-2"), {"ok": True})
        self.assertEqual(self.table.players["u1"].coins, 10)
        self.assertEqual(self.table.epoch, 1)

    async def test_sync_state_answers_caller_only(self) -> None:
        await self._connect("sid-1", "u1", "Alice")
        await self._connect("sid-2", "u2", "Bob")
        self.emitted.clear()

        ack = await ws.sync_state("sid-2")

        self.assertTrue(ack["ok"])
        self.assertEqual(ack["state"]["pot"], 2)
        self.assertEqual([room for _payload, room in self._events("gameState")], ["sid-2"])

    async def test_rate_limited_intent(self) -> None:
        await self._connect("sid-1", "u1", "Alice")
        with patch.object(ws, "_is_socket_event_allowed", return_value=False):
            ack = await ws.spin("sid-1")

        self.assertEqual(ack, {"ok": False, "error": "rate limit exceeded"})
        self.assertEqual(self.table.last_spin, None)
        self.assertTrue(self._events("rate_limited"))


if __name__ == "__main__":
    unittest.main()
