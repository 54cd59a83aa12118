import pytest
from yieldsync.access import ANYONE, CapabilityGate, ReentrancyGuard
from yieldsync.errors import ReentrancyError, UnauthorizedCallerError


class TestCapabilityGate:
    def test_grant_and_require(self):
        gate = CapabilityGate()
        gate.grant("admin", "ops")

        gate.require("admin", "ops")
        with pytest.raises(UnauthorizedCallerError) as exc_info:
            gate.require("admin", "mallory")

        assert exc_info.value.caller == "mallory"
        assert exc_info.value.capability == "admin"

    def test_unknown_capability_denied(self):
        assert CapabilityGate().holds("admin", "ops") is False

    def test_wildcard(self):
        gate = CapabilityGate()
        gate.grant("harvest", ANYONE)
        assert gate.holds("harvest", "whoever")

    def test_revoke(self):
        gate = CapabilityGate()
        gate.grant("admin", "ops", "backup")
        gate.revoke("admin", "backup")

        assert gate.holds("admin", "ops")
        assert not gate.holds("admin", "backup")

    def test_replace(self):
        gate = CapabilityGate()
        gate.grant("vault", "old")
        gate.replace("vault", ["new"])

        assert gate.holds("vault", "new")
        assert not gate.holds("vault", "old")


class TestReentrancyGuard:
    @pytest.mark.asyncio
    async def test_nested_entry_rejected(self):
        guard = ReentrancyGuard()

        async with guard.enter("harvest"):
            assert guard.locked
            assert guard.active_operation == "harvest"
            with pytest.raises(ReentrancyError) as exc_info:
                async with guard.enter("withdraw"):
                    pass
            assert exc_info.value.active_operation == "harvest"
            assert guard.active_operation == "harvest"

        assert not guard.locked

    @pytest.mark.asyncio
    async def test_released_on_error(self):
        guard = ReentrancyGuard()

        with pytest.raises(RuntimeError):
            async with guard.enter("deposit"):
                raise RuntimeError("boom")

        assert guard.active_operation is None
