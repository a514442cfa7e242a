"""Tests for the pairing directory and the connection registry."""

import pytest

from registry.errors import DuplicateCodeError, UnknownCodeError, ValidationError
from registry.models import SourceStatus
from registry.pairing import PairingDirectory


# ── Pairing directory ─────────────────────────────────────────────


class TestPairingDirectory:
    def test_bind_and_resolve(self):
        directory = PairingDirectory()
        directory.bind("ABC123", "durable-1")
        assert directory.resolve("ABC123") == "durable-1"
        assert "ABC123" in directory
        assert len(directory) == 1

    def test_resolve_unknown(self):
        with pytest.raises(UnknownCodeError):
            PairingDirectory().resolve("nope")

    def test_bind_twice_fails(self):
        directory = PairingDirectory()
        directory.bind("ABC123", "durable-1")
        with pytest.raises(DuplicateCodeError):
            directory.bind("ABC123", "durable-2")
        assert directory.resolve("ABC123") == "durable-1"


# ── Durable registration ──────────────────────────────────────────


class TestRegisterDurable:
    async def test_register_then_pair_returns_same_id(self, registry):
        for i, code in enumerate(["AAA111", "BBB222", "CCC333"]):
            durable_id = await registry.register_durable(f"PC-{i}", code)
            assert await registry.pair(code) == durable_id

    async def test_new_record_is_offline(self, registry):
        durable_id = await registry.register_durable("Lab-PC", "ABC123")
        entries = await registry.list_all()
        assert len(entries) == 1
        assert entries[0].id == durable_id
        assert entries[0].name == "Lab-PC"
        assert entries[0].status == SourceStatus.OFFLINE
        assert entries[0].last_seen is None

    async def test_duplicate_code(self, registry):
        await registry.register_durable("Lab-PC", "ABC123")
        with pytest.raises(DuplicateCodeError):
            await registry.register_durable("Other-PC", "ABC123")
        assert registry.registered_count == 1

    @pytest.mark.parametrize("name,code", [("", "ABC123"), ("Lab-PC", ""), (None, None), ("  ", "X")])
    async def test_missing_fields(self, registry, name, code):
        with pytest.raises(ValidationError):
            await registry.register_durable(name, code)

    async def test_pair_unknown_code(self, registry):
        with pytest.raises(UnknownCodeError):
            await registry.pair("missing")
        with pytest.raises(UnknownCodeError):
            await registry.pair("")


# ── Live registration ─────────────────────────────────────────────


class TestRegister:
    async def test_without_code_uses_session_id(self, registry):
        identity = await registry.register("sess-1", "Desk", {"webcam": True}, address="10.0.0.5")
        assert identity == "sess-1"
        source = registry.get_live("sess-1")
        assert source.display_name == "Desk"
        assert source.capabilities == {"webcam": True}
        assert not source.is_durable

        entries = await registry.list_all()
        assert [(e.id, e.ip, e.status) for e in entries] == [("sess-1", "10.0.0.5", SourceStatus.ONLINE)]

    async def test_code_reconciles_to_durable_id(self, registry):
        durable_id = await registry.register_durable("Lab-PC", "ABC123")
        identity = await registry.register("sess-1", "hostname", pairing_code="ABC123")

        assert identity == durable_id
        assert registry.identity_for_session("sess-1") == durable_id
        assert registry.session_for(durable_id) == "sess-1"
        # The durable name wins over the one the computer sent
        assert registry.get_live(durable_id).display_name == "Lab-PC"

        entries = await registry.list_all()
        assert len(entries) == 1
        assert entries[0].status == SourceStatus.ONLINE
        assert entries[0].name == "Lab-PC"

    async def test_unknown_code_falls_back_to_session(self, registry):
        identity = await registry.register("sess-1", "Desk", pairing_code="WRONG")
        assert identity == "sess-1"

    async def test_reregistering_same_code_does_not_grow(self, registry):
        durable_id = await registry.register_durable("Lab-PC", "ABC123")
        await registry.register("sess-1", "Lab-PC", pairing_code="ABC123")
        await registry.remove("sess-1")
        identity = await registry.register("sess-2", "Lab-PC", pairing_code="ABC123")

        assert identity == durable_id
        assert registry.registered_count == 1
        assert len(await registry.list_all()) == 1

    async def test_new_session_supersedes_old(self, registry):
        durable_id = await registry.register_durable("Lab-PC", "ABC123")
        await registry.register("sess-1", "Lab-PC", pairing_code="ABC123")
        await registry.register("sess-2", "Lab-PC", pairing_code="ABC123")

        assert registry.session_for(durable_id) == "sess-2"
        assert registry.identity_for_session("sess-1") is None

        # The superseded session going away must not take the new one with it
        assert await registry.remove("sess-1") is None
        assert registry.get_live(durable_id) is not None
        assert registry.online_count == 1

    async def test_change_notification(self, registry):
        calls = []

        async def on_change():
            calls.append(1)

        registry.on_change(on_change)
        await registry.register("sess-1", "Desk")
        await registry.remove("sess-1")
        await registry.remove("sess-1")
        assert len(calls) == 2

    async def test_failing_callback_is_contained(self, registry):
        async def broken():
            raise RuntimeError("boom")

        registry.on_change(broken)
        assert await registry.register("sess-1", "Desk") == "sess-1"


class TestTouchAndRemove:
    async def test_touch_updates_last_seen(self, registry, clock):
        await registry.register("sess-1", "Desk")
        clock.advance(10)
        registry.touch("sess-1")
        assert registry.get_live("sess-1").last_seen == clock.now

    def test_touch_unknown_is_noop(self, registry):
        registry.touch("ghost")
        registry.touch_session("ghost")

    async def test_remove_marks_durable_offline(self, registry, clock):
        durable_id = await registry.register_durable("Lab-PC", "ABC123")
        await registry.register("sess-1", "Lab-PC", pairing_code="ABC123")
        clock.advance(5)

        removed = await registry.remove("sess-1")
        assert removed.identity == durable_id

        entries = await registry.list_all()
        assert len(entries) == 1
        assert entries[0].status == SourceStatus.OFFLINE
        assert entries[0].last_seen.timestamp() == pytest.approx(clock.now)

    async def test_remove_ephemeral_leaves_no_trace(self, registry):
        await registry.register("sess-1", "Desk")
        await registry.remove("sess-1")
        assert await registry.list_all() == []


class TestListAll:
    async def test_never_online_and_offline_for_same_id(self, registry):
        await registry.register_durable("Lab-PC", "ABC123")
        await registry.register_durable("Office", "XYZ789")
        await registry.register("sess-1", "x", pairing_code="ABC123")
        await registry.register("sess-2", "Laptop")

        entries = await registry.list_all()
        ids = [e.id for e in entries]
        assert len(ids) == len(set(ids)) == 3
        statuses = {e.name: e.status for e in entries}
        assert statuses == {
            "Lab-PC": SourceStatus.ONLINE,
            "Office": SourceStatus.OFFLINE,
            "Laptop": SourceStatus.ONLINE,
        }

    async def test_wire_format(self, registry):
        await registry.register("sess-1", "Desk", address="10.0.0.5")
        row = (await registry.list_all())[0].to_wire()
        assert set(row) == {"id", "name", "ip", "status", "lastSeen", "capabilities"}
        assert row["status"] == "online"
        assert isinstance(row["lastSeen"], str)
