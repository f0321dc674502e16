"""Configuration management for the NUT client."""

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from lib.nut.protocol import DEFAULT_PORT


class Endpoint(BaseModel):
    """Address of a NUT server."""

    model_config = ConfigDict(frozen=True)

    host: str = Field(min_length=1)
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    timeout: float = Field(default=5.0, gt=0)


class Credentials(BaseModel):
    """NUT user allowed to run instant commands."""

    model_config = ConfigDict(frozen=True)

    username: str = Field(min_length=1)
    password: str | None = Field(default=None, repr=False)


class NutConfig(BaseSettings):
    """Main configuration class."""

    model_config = SettingsConfigDict(
        env_prefix="NUT_",
        case_sensitive=False,
        extra="ignore",
    )

    # Server defaults
    host: str | None = Field(default=None, description="NUT server host")
    ups: str | None = Field(default=None, description="UPS name")
    default_port: int = Field(default=DEFAULT_PORT, description="Default NUT port")
    default_timeout: float = Field(default=5.0, description="Default timeout in seconds")

    # Credentials
    username: str | None = Field(default=None, description="NUT user name")
    password: str | None = Field(default=None, description="NUT password", repr=False)

    # Logging
    log_level: str = Field(default="WARNING", description="Logging level")
    log_json: bool = Field(default=False, description="Enable JSON logging")
    log_file: str | None = Field(default=None, description="Log file path")

    @classmethod
    def load_from_yaml(cls, path: str | Path) -> "NutConfig":
        """Load configuration from YAML file.

        Values found in the file take precedence over environment variables.

        Parameters
        ----------
        path : str | Path
            Path to YAML file

        Returns
        -------
        NutConfig
            Loaded configuration
        """
        yaml_path = Path(path)
        if not yaml_path.exists():
            # Return defaults if file doesn't exist
            return cls()

        with open(yaml_path, "r") as f:
            data = yaml.safe_load(f) or {}

        # Extract nut section if present
        nut_data = data.get("nut", {})
        if not nut_data:
            nut_data = data

        return cls(**nut_data)

    def endpoint(
        self,
        host: str | None = None,
        port: int | None = None,
        timeout: float | None = None,
    ) -> Endpoint:
        """Build the server endpoint, explicit arguments overriding configuration.

        Raises
        ------
        ValueError
            If no host is configured or given
        """
        host = host or self.host
        if not host:
            raise ValueError("NUT server host is required")
        return Endpoint(
            host=host,
            port=port if port is not None else self.default_port,
            timeout=timeout if timeout is not None else self.default_timeout,
        )

    def credentials(
        self,
        username: str | None = None,
        password: str | None = None,
    ) -> Credentials | None:
        """Build credentials, explicit arguments overriding configuration.

        Returns
        -------
        Credentials | None
            Credentials, or None when no user name is known

        Raises
        ------
        ValueError
            If a password is given without a user name
        """
        username = username or self.username
        password = password if password is not None else self.password
        if not username:
            if password:
                raise ValueError("A password requires a user name")
            return None
        return Credentials(username=username, password=password)


def load_config(config_file: str | Path | None = None) -> NutConfig:
    """Load configuration from file or environment.

    Parameters
    ----------
    config_file : str | Path | None, optional
        Path to config file, by default None (environment only)

    Returns
    -------
    NutConfig
        Loaded configuration
    """
    if config_file:
        return NutConfig.load_from_yaml(config_file)

    return NutConfig()
