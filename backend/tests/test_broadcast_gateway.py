import unittest
from unittest.mock import AsyncMock

from dreidel.core.security import Identity
from dreidel.realtime.broadcast import BroadcastGateway, serialize_snapshot
from dreidel.realtime.connection_registry import ConnectionRegistry
from dreidel.services.game_table import GameTable, SpinOutcome


class BroadcastGatewayTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.table = GameTable()
        self.registry = ConnectionRegistry(self.table)
        self.registry.on_connect(Identity("u1", "Alice"), "sid-1")
        self.registry.on_connect(Identity("u2", "Bob"), "sid-2")
        self.registry.on_connect(Identity("u3", "Cara"), "sid-3")
        self.emitted: list[tuple[str, dict, str]] = []

        async def fake_emit(event, payload=None, room=None):
            if room == "sid-2":
                raise ConnectionError("socket closed")
            self.emitted.append((event, payload, room))

        self.server = AsyncMock()
        self.server.emit = fake_emit
        self.gateway = BroadcastGateway(self.server, self.registry)

    def test_snapshot_payload_shape(self) -> None:
        self.table.spin("u1", SpinOutcome.HEY)
        payload = serialize_snapshot(self.table.snapshot())

        self.assertEqual(payload["pot"], 1)
        self.assertEqual(payload["currentTurn"], "u2")
        self.assertEqual(payload["status"], "in_progress")
        self.assertEqual(payload["lastSpin"], {"player": "Alice", "result": "Hey"})
        self.assertEqual(payload["players"]["u1"], {"id": "u1", "name": "Alice", "coins": 12})

    def test_fresh_table_has_no_last_spin(self) -> None:
        payload = serialize_snapshot(self.table.snapshot())
        self.assertIsNone(payload["lastSpin"])

    async def test_failed_connection_does_not_block_others(self) -> None:
        delivered = await self.gateway.broadcast_state(self.table.snapshot())

        self.assertEqual(delivered, 2)
        self.assertEqual(sorted(room for _event, _payload, room in self.emitted), ["sid-1", "sid-3"])
        self.assertTrue(all(event == "gameState" for event, _payload, _room in self.emitted))

    async def test_game_over_notice(self) -> None:
        await self.gateway.broadcast_game_over("Alice")
        self.assertIn(("gameOver", {"winner": "Alice"}, "sid-1"), self.emitted)

    async def test_send_state_targets_one_connection(self) -> None:
        self.assertTrue(await self.gateway.send_state("sid-3", self.table.snapshot()))
        self.assertFalse(await self.gateway.send_state("sid-2", self.table.snapshot()))
        self.assertEqual([room for _event, _payload, room in self.emitted], ["sid-3"])


if __name__ == "__main__":
    unittest.main()
