"""
Runtime configuration.

A single immutable Settings value is built at startup (Settings.from_env)
and handed to the REST client, the stream factories and the servers.
Nothing below the entry points reads os.environ.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass

DEFAULT_BASE_URL = "https://insightsentry.p.rapidapi.com"
DEFAULT_WS_URL = "wss://stream.insightsentry.com/quote"
DEFAULT_NEWS_WS_URL = "wss://newsfeed.insightsentry.com/newsfeed"
DEFAULT_KEY_SERVICE_URL = "https://api.insightsentry.com"
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_HOST = "0.0.0.0"  # noqa: S104
DEFAULT_PORT = 3001
DEFAULT_STREAMING_PORT = 3002


@dataclass(frozen=True)
class Settings:
    """Connection settings for the InsightSentry REST and streaming APIs"""

    api_key: str | None = None
    base_url: str = DEFAULT_BASE_URL
    ws_url: str = DEFAULT_WS_URL
    news_ws_url: str = DEFAULT_NEWS_WS_URL
    websocket_key: str | None = None
    key_service_url: str = DEFAULT_KEY_SERVICE_URL
    request_timeout: float = DEFAULT_TIMEOUT_SECONDS
    handshake_timeout: float | None = None
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    streaming_port: int = DEFAULT_STREAMING_PORT

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from environment variables (defaults for anything unset)"""
        env = os.environ if environ is None else environ

        handshake_timeout = env.get("STREAM_HANDSHAKE_TIMEOUT")

        return cls(
            api_key=env.get("INSIGHTSENTRY_API_KEY") or None,
            base_url=env.get("INSIGHTSENTRY_BASE_URL") or DEFAULT_BASE_URL,
            ws_url=env.get("INSIGHTSENTRY_WS_URL") or DEFAULT_WS_URL,
            news_ws_url=env.get("INSIGHTSENTRY_NEWS_WS_URL") or DEFAULT_NEWS_WS_URL,
            websocket_key=env.get("INSIGHTSENTRY_WS_KEY") or None,
            key_service_url=env.get("INSIGHTSENTRY_KEY_SERVICE_URL") or DEFAULT_KEY_SERVICE_URL,
            request_timeout=_parse_float(
                "INSIGHTSENTRY_TIMEOUT", env.get("INSIGHTSENTRY_TIMEOUT"), DEFAULT_TIMEOUT_SECONDS
            ),
            handshake_timeout=(
                _parse_positive_float("STREAM_HANDSHAKE_TIMEOUT", handshake_timeout)
                if handshake_timeout
                else None
            ),
            host=env.get("HOST") or DEFAULT_HOST,
            port=_parse_port("PORT", env.get("PORT"), DEFAULT_PORT),
            streaming_port=_parse_port(
                "STREAMING_PORT", env.get("STREAMING_PORT"), DEFAULT_STREAMING_PORT
            ),
        )


def _parse_port(name: str, value: str | None, default: int) -> int:
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        msg = f"Invalid {name} value: {value}"
        raise ValueError(msg) from None


def _parse_float(name: str, value: str | None, default: float) -> float:
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        msg = f"Invalid {name} value: {value}"
        raise ValueError(msg) from None


def _parse_positive_float(name: str, value: str) -> float:
    parsed = _parse_float(name, value, 0.0)
    if not parsed > 0:  # also rejects nan
        msg = f"Invalid {name} value: {value}"
        raise ValueError(msg)
    return parsed
