"""
Tests para agent/activation.py — Registro de números con el bot silenciado.
"""

from concurrent.futures import ThreadPoolExecutor

from agent.activation import ActivationRegistry


class TestActivationRegistry:
    def test_unknown_identity_is_inactive(self, registry):
        assert registry.is_active("15551234567") is False

    def test_set_active_then_is_active(self, registry):
        registry.set_active("15551234567", True)
        assert registry.is_active("15551234567") is True

    def test_set_inactive(self, registry):
        registry.set_active("15551234567", True)
        registry.set_active("15551234567", False)
        assert registry.is_active("15551234567") is False

    def test_set_active_is_idempotent(self, registry):
        assert registry.set_active("15551234567", True) is True
        assert registry.set_active("15551234567", True) is False
        assert registry.snapshot() == frozenset({"15551234567"})

    def test_deactivating_unknown_is_noop(self, registry):
        assert registry.set_active("15551234567", False) is False
        assert registry.snapshot() == frozenset()

    def test_identities_are_independent(self, registry):
        registry.set_active("15551234567", True)
        assert registry.is_active("15557654321") is False


class TestActivationConcurrency:
    def test_concurrent_toggles_lose_no_updates(self):
        """200 toggles concurrentes sobre identidades distintas quedan todos."""
        registry = ActivationRegistry()
        identities = [f"1555000{i:04d}" for i in range(200)]

        with ThreadPoolExecutor(max_workers=16) as pool:
            list(pool.map(lambda i: registry.set_active(i, True), identities))

        assert registry.snapshot() == frozenset(identities)

    def test_reads_during_writes(self):
        registry = ActivationRegistry()
        registry.set_active("15551234567", True)

        def flip(n):
            registry.set_active(f"1666{n:07d}", n % 2 == 0)
            return registry.is_active("15551234567")

        with ThreadPoolExecutor(max_workers=8) as pool:
            assert all(pool.map(flip, range(100)))
