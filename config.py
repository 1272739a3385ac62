"""Environment configuration for the verification bot."""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

REQUIRED = ("WEBHOOK_URL", "CLIENT_ID", "CLIENT_SECRET", "BOT_TOKEN")


class ConfigError(Exception):
    pass


def _number(env, name: str, default, cast=float):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    webhook_url: str
    client_id: str
    client_secret: str
    bot_token: str
    port: int = 3000
    redirect_uri: str = ""
    verified_role_name: str = "Verified"
    command_prefix: str = "!"
    api_base: str = "https://discord.com/api"
    geo_base: str = "http://ip-api.com"
    request_timeout: float = 10.0
    verification_timeout: float = 30.0
    guild_timeout: float = 15.0
    keepalive_interval: float = 300.0
    log_level: str = "INFO"

    def __post_init__(self):
        if not self.redirect_uri:
            object.__setattr__(
                self, "redirect_uri", f"http://localhost:{self.port}/auth/callback"
            )

    @classmethod
    def from_env(cls, env=None, load_file: bool = True) -> "Settings":
        """Build settings from the environment (and a `.env` file if present).

        Raises ConfigError naming every missing required variable.
        """
        if env is None:
            if load_file:
                load_dotenv()
            env = os.environ

        missing = [name for name in REQUIRED if not env.get(name)]
        if missing:
            raise ConfigError(f"Missing required settings: {', '.join(missing)}")

        return cls(
            webhook_url=env["WEBHOOK_URL"],
            client_id=env["CLIENT_ID"],
            client_secret=env["CLIENT_SECRET"],
            bot_token=env["BOT_TOKEN"],
            port=_number(env, "PORT", 3000, int),
            redirect_uri=env.get("REDIRECT_URI", ""),
            verified_role_name=env.get("VERIFIED_ROLE_NAME") or "Verified",
            command_prefix=env.get("COMMAND_PREFIX") or "!",
            api_base=(env.get("DISCORD_API_BASE") or "https://discord.com/api").rstrip("/"),
            geo_base=(env.get("GEO_API_BASE") or "http://ip-api.com").rstrip("/"),
            request_timeout=_number(env, "REQUEST_TIMEOUT", 10.0),
            verification_timeout=_number(env, "VERIFICATION_TIMEOUT", 30.0),
            guild_timeout=_number(env, "GUILD_TIMEOUT", 15.0),
            keepalive_interval=_number(env, "KEEPALIVE_INTERVAL", 300.0),
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        )
