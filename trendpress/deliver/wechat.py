"""WeChat official-account publisher (via an HTTP publishing gateway)."""

from __future__ import annotations

import json
import logging
import time
from typing import Any

import httpx

from trendpress.deliver import register_publisher
from trendpress.deliver.base import BasePublisher, PublishOutcome
from trendpress.errors import ConfigurationError, PublishError
from trendpress.models import DeliveryStage
from trendpress.retry import retry_async

logger = logging.getLogger(__name__)

EXTERNAL_ID_KEYS = ("externalId", "external_id", "id", "articleId", "mediaId", "publishId")


def _as_bool(value: Any, default: bool) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() not in ("false", "0", "no", "off")


def _now_ms() -> int:
    return int(time.time() * 1000)


def resolve_external_id(payload: Any) -> str | None:
    """First non-empty id-like string field of a gateway response."""
    if not isinstance(payload, dict):
        return None
    for key in EXTERNAL_ID_KEYS:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


@register_publisher("wechat")
class WeChatPublisher(BasePublisher):
    """Posts drafts to a gateway; dry-run by default so nothing leaves the box."""

    def __init__(self, settings: dict):
        super().__init__(settings)
        self.dry_run = _as_bool(settings.get("dry_run"), True)
        mode = str(settings.get("mode") or "draftbox").strip().lower()
        self.delivery_stage = (
            DeliveryStage.PUBLISHED if mode == "published" else DeliveryStage.DRAFTBOX
        )
        self.endpoint = settings.get("endpoint") or ""
        self.token = settings.get("token") or ""
        self.timeout = settings.get("timeout", 30)
        self.max_retries = int(settings.get("max_retries", 2))

        if not self.dry_run and (not self.endpoint or not self.token):
            raise ConfigurationError(
                "WeChat publish is not configured. Set publish.wechat.endpoint and "
                "publish.wechat.token or enable publish.wechat.dry_run."
            )

    @property
    def name(self) -> str:
        return "wechat"

    async def publish(self, title: str, content: str, account_id: int) -> PublishOutcome:
        if self.dry_run:
            logger.info("Dry-run publish of '%s' for account #%s", title, account_id)
            return PublishOutcome(
                external_id=f"wechat-dryrun-{_now_ms()}",
                delivery_stage=self.delivery_stage,
                response={
                    "dry_run": True,
                    "mode": self.delivery_stage.value,
                    "account_id": account_id,
                    "title": title,
                },
            )

        try:
            resp = await retry_async(
                self._post, title, content, account_id, max_retries=self.max_retries,
            )
        except httpx.HTTPStatusError as exc:
            raise PublishError(
                f"WeChat publish failed: {exc.response.status_code} {exc.response.text}"
            ) from exc
        except httpx.HTTPError as exc:
            raise PublishError(f"WeChat publish failed: {exc}") from exc

        try:
            parsed: Any = json.loads(resp.text)
        except ValueError:
            parsed = resp.text

        external_id = resolve_external_id(parsed) or f"wechat-{_now_ms()}"
        logger.info("Published '%s' to WeChat (%s): %s", title, self.delivery_stage.value, external_id)
        return PublishOutcome(
            external_id=external_id,
            delivery_stage=self.delivery_stage,
            response=parsed,
        )

    async def _post(self, title: str, content: str, account_id: int) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }
        payload = {"title": title, "content": content, "accountId": account_id}
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(self.endpoint, json=payload, headers=headers)
            resp.raise_for_status()
            return resp
