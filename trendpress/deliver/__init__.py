"""Publishing transport registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

from trendpress.errors import ConfigurationError

if TYPE_CHECKING:
    from trendpress.deliver.base import BasePublisher

PUBLISHERS: dict[str, type[BasePublisher]] = {}


def register_publisher(name: str):
    """Decorator to register a publishing transport."""

    def decorator(cls):
        PUBLISHERS[name] = cls
        return cls

    return decorator


def get_publisher(config: dict) -> BasePublisher:
    """Instantiate the configured publisher, validating its settings."""
    from trendpress.config import get_publisher_config

    publisher_cfg = get_publisher_config(config)
    name = publisher_cfg["name"]
    if name not in PUBLISHERS:
        raise ConfigurationError(f"Unknown publisher: {name}")
    return PUBLISHERS[name](publisher_cfg)


from trendpress.deliver.wechat import WeChatPublisher  # noqa: E402, F401
