"""
Subscription descriptors and the handshake payloads built from them.

Descriptors are immutable and are replayed verbatim after every reconnect,
so handshake() must be deterministic: the same descriptor and key always
produce byte-identical frames.
"""

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

SUBSCRIPTION_TYPES = ("series", "quote")

# Optional market-data fields, in the order they are serialized
OPTIONAL_SUBSCRIPTION_FIELDS = ("bar_type", "bar_interval", "dadj", "recent_bars")


def _dumps(payload: dict[str, Any]) -> str:
    # Compact separators match the frames the provider documents
    return json.dumps(payload, separators=(",", ":"))


def _string_list(value: Any, name: str) -> tuple[str, ...]:  # noqa: ANN401
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, Iterable):
        msg = f"'{name}' must be a list of strings"
        raise ValueError(msg)
    return tuple(str(item) for item in value if str(item).strip())


@dataclass(frozen=True)
class NewsFeedSubscription:
    """Symbol and keyword filters for the live news feed (both optional)"""

    symbols: tuple[str, ...] = ()
    keywords: tuple[str, ...] = ()

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "NewsFeedSubscription":
        return cls(
            symbols=_string_list(params.get("symbols"), "symbols"),
            keywords=_string_list(params.get("keywords"), "keywords"),
        )

    def handshake(self, api_key: str) -> list[str]:
        """Auth frame, then one filter frame per non-empty filter list"""
        frames = [_dumps({"api_key": api_key})]
        if self.symbols:
            frames.append(_dumps({"type": "filter_symbols", "symbols": list(self.symbols)}))
        if self.keywords:
            frames.append(_dumps({"type": "filter_keywords", "keywords": list(self.keywords)}))
        return frames


@dataclass(frozen=True)
class MarketSubscription:
    """One instrument subscription: a bar series or a quote stream"""

    code: str
    type: str
    bar_type: str | None = None
    bar_interval: int | None = None
    dadj: bool | None = None
    recent_bars: bool | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MarketSubscription":
        if not isinstance(data, Mapping):
            msg = f"Each subscription must be an object, got {type(data).__name__}"
            raise ValueError(msg)
        code = data.get("code")
        if not code or not isinstance(code, str):
            msg = "Each subscription requires a 'code' (e.g. 'NASDAQ:AAPL')"
            raise ValueError(msg)
        sub_type = data.get("type")
        if sub_type not in SUBSCRIPTION_TYPES:
            msg = f"Subscription type must be one of {SUBSCRIPTION_TYPES}, got {sub_type!r}"
            raise ValueError(msg)
        return cls(
            code=code,
            type=sub_type,
            bar_type=data.get("bar_type"),
            bar_interval=data.get("bar_interval"),
            dadj=data.get("dadj"),
            recent_bars=data.get("recent_bars"),
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "type": self.type}
        for name in OPTIONAL_SUBSCRIPTION_FIELDS:
            value = getattr(self, name)
            if value is not None:
                payload[name] = value
        return payload


@dataclass(frozen=True)
class MarketDataSubscription:
    """Ordered list of instrument subscriptions for the quote/bar stream"""

    subscriptions: tuple[MarketSubscription, ...]

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "MarketDataSubscription":
        raw = params.get("subscriptions")
        if not raw:
            msg = "connect_real_time_data_stream() requires 'subscriptions' parameter"
            raise ValueError(msg)
        if isinstance(raw, Mapping):
            raw = [raw]
        if not isinstance(raw, list | tuple):
            msg = "'subscriptions' must be a list of subscription objects"
            raise ValueError(msg)
        return cls(subscriptions=tuple(MarketSubscription.from_dict(item) for item in raw))

    def handshake(self, api_key: str) -> list[str]:
        """Auth frame, then a single subscribe frame carrying every subscription in order"""
        return [
            _dumps({"type": "auth", "api_key": api_key}),
            _dumps({
                "api_key": api_key,
                "subscriptions": [sub.to_payload() for sub in self.subscriptions],
            }),
        ]
