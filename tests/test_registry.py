# tests/test_registry.py
"""
Registry Tests - Feed Registration, Lookup and Removal

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- ratesync.application.registry (RateRegistry)
- tests.conftest (identities and fixtures)
"""
import pytest

from ratesync.domain.errors import (
    AuthorizationError,
    ConfigurationError,
    DuplicateRegistrationError,
    NotFoundError,
)
from ratesync.domain.models import Category
from tests.conftest import ADMIN, DEST, PROVIDER, RECEIVER


def _register(registry, name="X", category="RATE", receiver=RECEIVER, caller=ADMIN, source="src-a"):
    return registry.register(caller, name, source, category, DEST, receiver, PROVIDER)


class TestRegister:
    def test_register_and_lookup(self, registry):
        entry = _register(registry, category="EXCHANGE_RATE")

        assert registry.lookup("X") == entry
        assert entry.category is Category.EXCHANGE_RATE
        assert entry.destination_id == DEST
        assert entry.destination_receiver == RECEIVER
        assert len(registry) == 1
        assert "X" in registry

    def test_handles_are_canonical(self, registry):
        entry = registry.register(ADMIN, "X", "SRC-A", "RATE", str(DEST), "0x" + "AB" * 20, PROVIDER)
        assert entry.source_ref == "src-a"
        assert entry.destination_receiver == "0x" + "ab" * 20
        assert entry.destination_id == DEST

    def test_duplicate_keeps_original(self, registry):
        _register(registry, source="src-a")
        with pytest.raises(DuplicateRegistrationError):
            _register(registry, source="src-b")

        assert registry.lookup("X").source_ref == "src-a"
        assert len(registry) == 1

    def test_invalid_category_leaves_registry_unchanged(self, registry):
        with pytest.raises(ConfigurationError):
            _register(registry, category="PRICE")
        assert len(registry) == 0
        assert "X" not in registry

    def test_zero_address_rejected(self, registry):
        with pytest.raises(ConfigurationError):
            _register(registry, receiver="0x" + "0" * 40)
        assert len(registry) == 0

    @pytest.mark.parametrize("name", ["", "   ", None, " X ", "X "])
    def test_invalid_name(self, registry, name):
        with pytest.raises(ConfigurationError):
            _register(registry, name=name)

    def test_non_admin_rejected(self, registry):
        with pytest.raises(AuthorizationError) as exc_info:
            _register(registry, caller="mallory")
        assert exc_info.value.reason == "not_admin"
        assert len(registry) == 0

    def test_admin_match_is_case_insensitive(self, registry):
        _register(registry, caller=ADMIN.upper())
        assert "X" in registry


class TestListAndRemove:
    def test_list_in_registration_order(self, registry):
        for name in ("b", "a", "c"):
            _register(registry, name=name)
        assert registry.list() == ["b", "a", "c"]

    def test_list_is_a_copy(self, registry):
        _register(registry)
        names = registry.list()
        names.append("Y")
        assert registry.list() == ["X"]

    def test_deregister(self, registry):
        _register(registry)
        removed = registry.deregister(ADMIN, "X")

        assert removed.name == "X"
        assert len(registry) == 0
        with pytest.raises(NotFoundError):
            registry.lookup("X")

    def test_deregister_unknown(self, registry):
        with pytest.raises(NotFoundError):
            registry.deregister(ADMIN, "nope")

    def test_deregister_requires_admin(self, registry):
        _register(registry)
        with pytest.raises(AuthorizationError):
            registry.deregister("mallory", "X")
        assert "X" in registry

    def test_name_can_be_registered_again_after_removal(self, registry):
        _register(registry, source="src-a")
        registry.deregister(ADMIN, "X")
        entry = _register(registry, source="src-b")
        assert entry.source_ref == "src-b"
