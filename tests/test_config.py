"""Tests for configuration loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from lib.nut.config import Credentials, Endpoint, NutConfig, load_config


def test_defaults() -> None:
    """Test default configuration."""
    config = NutConfig()
    endpoint = config.endpoint("ups.local")

    assert endpoint == Endpoint(host="ups.local", port=3493, timeout=5.0)
    assert config.credentials() is None


def test_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test NUT_ environment variables."""
    monkeypatch.setenv("NUT_HOST", "nas.local")
    monkeypatch.setenv("NUT_DEFAULT_PORT", "3500")
    monkeypatch.setenv("NUT_USERNAME", "admin")
    monkeypatch.setenv("NUT_PASSWORD", "secret")

    config = NutConfig()
    assert config.endpoint() == Endpoint(host="nas.local", port=3500)
    assert config.endpoint("other", port=1234, timeout=1.5) == Endpoint(
        host="other", port=1234, timeout=1.5
    )
    assert config.credentials() == Credentials(username="admin", password="secret")


def test_load_from_yaml(tmp_path: Path) -> None:
    """Test YAML file with a nut section."""
    path = tmp_path / "nut.yaml"
    path.write_text("nut:\n  host: nas.local\n  ups: myups\n  default_timeout: 2.5\n")

    config = load_config(path)
    assert config.ups == "myups"
    assert config.endpoint().timeout == 2.5


def test_missing_yaml_returns_defaults(tmp_path: Path) -> None:
    """Test a missing file falls back to defaults."""
    config = NutConfig.load_from_yaml(tmp_path / "missing.yaml")
    assert config.default_port == 3493


def test_endpoint_is_immutable() -> None:
    """Test endpoints cannot be changed."""
    endpoint = Endpoint(host="nas.local")
    with pytest.raises(ValidationError):
        endpoint.port = 1


@pytest.mark.parametrize("port", [0, 70000])
def test_endpoint_port_range(port: int) -> None:
    """Test invalid ports."""
    with pytest.raises(ValidationError):
        Endpoint(host="nas.local", port=port)


def test_missing_host() -> None:
    """Test a host is required."""
    with pytest.raises(ValueError):
        NutConfig().endpoint()


def test_password_without_username() -> None:
    """Test a password alone is rejected."""
    with pytest.raises(ValueError):
        NutConfig().credentials(password="secret")


def test_password_not_in_repr() -> None:
    """Test credentials never print the password."""
    assert "secret" not in repr(Credentials(username="admin", password="secret"))


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove NUT_ variables from the test environment."""
    import os

    for name in list(os.environ):
        if name.upper().startswith("NUT_"):
            monkeypatch.delenv(name)
