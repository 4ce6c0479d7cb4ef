import pytest

from pbm_gui.services.service_locator import (
    ServiceAlreadyRegisteredError,
    ServiceLocator,
    ServiceNotFoundError,
    services,
)


def test_register_and_get():
    services.register("config", {"env": "test"})
    assert services.get("config")["env"] == "test"


def test_double_register_raises():
    services.register("x", 1)
    with pytest.raises(ServiceAlreadyRegisteredError):
        services.register("x", 2)
    services.register("x", 3, allow_override=True)
    assert services.get("x") == 3


def test_get_typed_checks_type():
    services.register("n", 5)
    assert services.get_typed("n", int) == 5
    with pytest.raises(TypeError):
        services.get_typed("n", str)


def test_try_get_default_and_missing():
    assert services.try_get("missing", 123) == 123
    with pytest.raises(ServiceNotFoundError):
        services.get("missing")


def test_override_context_restores():
    services.register("tour_storage", "disk")
    with services.override_context(tour_storage="memory", extra=1):
        assert services.get("tour_storage") == "memory"
        assert services.get("extra") == 1
    assert services.get("tour_storage") == "disk"
    assert services.try_get("extra") is None


def test_local_instance_isolated():
    local = ServiceLocator()
    local.register("foo", 1)
    assert services.try_get("foo") is None
    assert list(local.list_keys()) == ["foo"]
