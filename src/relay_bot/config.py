"""Configuration loading and validation."""

import os
import random
from pathlib import Path
from typing import Annotated

import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

# Flat environment variables used by earlier deployments
ENV_SERVER = "IRC_SERVER"
ENV_NICK = "IRC_NICK"
ENV_SERVER_PASSWORD = "IRC_SERVER_PASSWORD"
ENV_CHANNEL = "IRC_CHANNEL"
ENV_API_KEY = "OPENAI_API_KEY"


class ConfigError(Exception):
    """Raised when required configuration is missing."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Missing required configuration: {', '.join(missing)}")


class IRCConfig(BaseModel):
    """IRC connection configuration."""

    server: str = ""
    port: Annotated[int, Field(ge=1, le=65535)] = 6697
    ssl: bool = True
    nick: str = ""
    nick_suffix: bool = True  # Append a random two-digit suffix to the nick
    server_password: SecretStr | None = None
    nickserv_password: SecretStr | None = None
    channel: str = ""


class LLMConfig(BaseModel):
    """Upstream text-generation service configuration."""

    api_key: SecretStr | None = None
    endpoint: str = "https://api.openai.com/v1/chat/completions"
    model: str = "gpt-3.5-turbo"
    timeout_seconds: Annotated[float, Field(gt=0.0)] = 30.0


class RelayConfig(BaseModel):
    """Activity log and reply pacing configuration."""

    log_path: Path = Path("./data/activity.log")
    max_segment_len: Annotated[int, Field(ge=1)] = 250
    inter_segment_delay: Annotated[float, Field(ge=0.0)] = 3.0


class Config(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(
        env_prefix="RELAY_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    irc: IRCConfig = Field(default_factory=IRCConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    relay: RelayConfig = Field(default_factory=RelayConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # load_config() passes the YAML file as init kwargs; RELAY_* must win over it
        return env_settings, init_settings, dotenv_settings, file_secret_settings


def load_config(config_path: Path | str | None = None) -> Config:
    """Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (RELAY_* prefix, e.g. RELAY_IRC__CHANNEL)
    2. YAML config file
    3. Flat IRC_* / OPENAI_API_KEY variables, applied afterwards by
       load_legacy_env() to fields that are still unset
    4. Default values

    Args:
        config_path: Path to YAML config file. If None, tries ./config.yaml

    Returns:
        Configuration object (not yet checked for required fields)
    """
    if config_path is None:
        config_path = Path("config.yaml")
    else:
        config_path = Path(config_path)

    yaml_config: dict = {}
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}

    # Filter out None values from YAML (e.g., "llm:" with no values parses as None)
    yaml_config = {k: v for k, v in yaml_config.items() if v is not None}

    return Config(**yaml_config)


def split_server_address(address: str, default_port: int) -> tuple[str, int]:
    """Split "host" or "host:port" into its parts."""
    address = address.strip()
    host, sep, port = address.rpartition(":")
    if sep and port.isdigit() and host and not host.endswith(":"):
        return host, int(port)
    return address, default_port


def load_legacy_env(config: Config) -> Config:
    """Fill unset fields from the flat IRC_* and OPENAI_API_KEY variables."""
    irc = config.irc

    if not irc.server:
        server = os.getenv(ENV_SERVER, "")
        if server:
            irc.server, irc.port = split_server_address(server, irc.port)

    if not irc.nick:
        irc.nick = os.getenv(ENV_NICK, "").strip()

    if not irc.server_password:
        password = os.getenv(ENV_SERVER_PASSWORD)
        if password:
            irc.server_password = SecretStr(password)

    if not irc.channel:
        irc.channel = os.getenv(ENV_CHANNEL, "").strip()

    if not config.llm.api_key:
        key = os.getenv(ENV_API_KEY)
        if key:
            config.llm.api_key = SecretStr(key)

    return config


def validate_required(config: Config) -> None:
    """Check that every required setting is present.

    Raises:
        ConfigError: listing every missing setting
    """
    missing = []
    if not config.irc.server:
        missing.append(f"irc.server ({ENV_SERVER})")
    if not config.irc.nick:
        missing.append(f"irc.nick ({ENV_NICK})")
    if not config.irc.server_password or not config.irc.server_password.get_secret_value():
        missing.append(f"irc.server_password ({ENV_SERVER_PASSWORD})")
    if not config.irc.channel.strip():
        missing.append(f"irc.channel ({ENV_CHANNEL})")
    if not config.llm.api_key or not config.llm.api_key.get_secret_value():
        missing.append(f"llm.api_key ({ENV_API_KEY})")

    if missing:
        raise ConfigError(missing)


def build_nickname(config: IRCConfig, rng: random.Random | None = None) -> str:
    """Build the bot's display name from the configured nick seed."""
    if not config.nick_suffix:
        return config.nick
    rng = rng or random.Random()
    return f"{config.nick}{rng.randrange(100):02d}"
