"""
Tests for the node registry.
"""

from datetime import timedelta

import pytest

from opcua_sentinel.core.exceptions import ConfigurationError
from opcua_sentinel.monitor.models import NodeDescriptor
from opcua_sentinel.monitor.registry import NodeRegistry

from conftest import T0


class TestRegister:

    def test_register_initial_state(self, clock):
        registry = NodeRegistry(clock=clock)

        node = registry.register("Boiler Temp", "ns=2;i=1001", 0.5, "30s")

        assert node.tag == "Boiler Temp"
        assert node.node_id == "ns=2;i=1001"
        assert node.abs_deadband == 0.5
        assert node.forced_interval == timedelta(seconds=30)
        assert node.has_reading is False
        assert node.current_value is None
        assert node.previous_value is None
        assert node.last_accepted_at == T0

    def test_registration_order_is_preserved(self, clock):
        registry = NodeRegistry(clock=clock)
        ids = ["ns=2;i=3", "ns=2;i=1", "ns=2;s=B", "ns=2;s=A"]

        for i, node_id in enumerate(ids):
            registry.register(f"tag-{i}", node_id)

        assert registry.node_ids() == ids
        assert [n.node_id for n in registry.all()] == ids
        assert [n.node_id for n in registry] == ids
        assert len(registry) == 4

    def test_duplicate_tags_allowed(self, clock):
        registry = NodeRegistry(clock=clock)
        registry.register("Temp", "ns=2;i=1")
        registry.register("Temp", "ns=2;i=2")

        assert [n.tag for n in registry.all()] == ["Temp", "Temp"]

    def test_all_returns_copy(self, clock):
        registry = NodeRegistry(clock=clock)
        registry.register("Temp", "ns=2;i=1")

        registry.all().clear()

        assert len(registry) == 1

    def test_forced_interval_optional(self, clock):
        registry = NodeRegistry(clock=clock)
        node = registry.register("Temp", "ns=2;i=1", 0.1)

        assert node.forced_interval is None
        assert node.forcing_enabled is False


class TestRegisterValidation:

    @pytest.mark.parametrize("node_id", ["", "   "])
    def test_empty_node_id_rejected(self, clock, node_id):
        registry = NodeRegistry(clock=clock)

        with pytest.raises(ConfigurationError):
            registry.register("Temp", node_id)

        assert len(registry) == 0

    @pytest.mark.parametrize("deadband", [-0.01, float("nan"), float("inf")])
    def test_invalid_deadband_rejected(self, clock, deadband):
        registry = NodeRegistry(clock=clock)

        with pytest.raises(ConfigurationError):
            registry.register("Temp", "ns=2;i=1", deadband)

    @pytest.mark.parametrize("interval", [timedelta(seconds=-1), "-5s", -10])
    def test_negative_forced_interval_rejected(self, clock, interval):
        registry = NodeRegistry(clock=clock)

        with pytest.raises(ConfigurationError):
            registry.register("Temp", "ns=2;i=1", 0.1, interval)

    def test_invalid_duration_string_rejected(self, clock):
        registry = NodeRegistry(clock=clock)

        with pytest.raises(ConfigurationError):
            registry.register("Temp", "ns=2;i=1", 0.1, "ten seconds")


class TestFromDescriptors:

    def test_from_descriptors(self, clock):
        descriptors = [
            NodeDescriptor(tag="A", node_id="ns=2;i=1", abs_deadband=0.1),
            NodeDescriptor(tag="B", node_id="ns=2;i=2", forced_interval="1h"),
        ]

        registry = NodeRegistry.from_descriptors(descriptors, clock=clock)

        assert registry.node_ids() == ["ns=2;i=1", "ns=2;i=2"]
        assert registry.all()[1].forced_interval == timedelta(hours=1)
        assert all(n.last_accepted_at == T0 for n in registry)
