"""
Tests for the method catalog and service state variants
"""

import pytest

from services.relay_catalog import (
    MethodCatalog,
    Provisioned,
    Unprovisioned,
    build_method_catalog,
    service_state_from_fields,
)


class TestMethodCatalog:

    def test_default_catalog(self):
        catalog = build_method_catalog()
        assert catalog.service_types == ("SS", "SSR")
        assert catalog.default_type == "SS"
        assert catalog.default_method == "aes-256-cfb"
        assert catalog.allows("SS", "chacha20-ietf-poly1305")
        assert catalog.allows("SSR", "chacha20-ietf")
        assert not catalog.allows("SS", "chacha20")
        assert not catalog.has_type("VMESS")
        assert catalog.methods_for("VMESS") == ()

    def test_catalog_is_immutable(self):
        catalog = build_method_catalog()
        with pytest.raises(TypeError):
            catalog.methods["SS"] = ("rc4-md5",)
        with pytest.raises(AttributeError):
            catalog.default_type = "SSR"

    def test_source_mapping_changes_do_not_leak(self):
        source = {"SS": ["aes-256-cfb"]}
        catalog = MethodCatalog(methods=source)
        source["SS"].append("rc4-md5")
        assert not catalog.allows("SS", "rc4-md5")

    def test_default_method_must_belong_to_default_type(self):
        with pytest.raises(ValueError):
            MethodCatalog(methods={"SS": ("aes-128-gcm",)})


class TestServiceState:

    def test_empty_service_id_is_unprovisioned(self):
        assert service_state_from_fields(None, None, None, None, None) == Unprovisioned()
        assert service_state_from_fields("", "SS", 5001, "pw", "aes-256-cfb").provisioned is False

    def test_provisioned_carries_descriptor(self):
        state = service_state_from_fields("abc", "SS", 5001, "pw", "aes-256-cfb")
        assert isinstance(state, Provisioned)
        assert state.provisioned is True
        assert state.descriptor.container_id == "abc"
        assert state.descriptor.port == 5001
