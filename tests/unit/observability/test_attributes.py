"""Tests for gatewaycutover.observability.attributes module."""

from gatewaycutover.observability import attributes


class TestAttributeConstants:
    """Attribute keys are namespaced strings and exported consistently."""

    def test_all_exported_names_exist(self):
        for name in attributes.__all__:
            assert isinstance(getattr(attributes, name), str)

    def test_keys_are_namespaced(self):
        for name in attributes.__all__:
            assert getattr(attributes, name).startswith("gatewaycutover.")

    def test_keys_are_unique(self):
        values = [getattr(attributes, name) for name in attributes.__all__]
        assert len(values) == len(set(values))

    def test_every_constant_is_exported(self):
        defined = {name for name in vars(attributes) if name.startswith("ATTR_")}
        assert defined == set(attributes.__all__)
