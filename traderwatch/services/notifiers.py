"""Outbound notification backends.

Every backend takes one aggregated message per batch. The backend is picked
once from settings by create_notifier(); the dispatcher only sees the
Notifier interface.
"""

import html
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence

import httpx
from telegram import Bot
from telegram.error import TelegramError

from traderwatch.errors import ConfigError, NotificationError
from traderwatch.models.notification_log import EventType
from traderwatch.models.position_record import PositionRecord

logger = logging.getLogger(__name__)

WECOM_TOKEN_URL = "https://qyapi.weixin.qq.com/cgi-bin/gettoken"
WECOM_SEND_URL = "https://qyapi.weixin.qq.com/cgi-bin/message/send"
WXPUSHER_SEND_URL = "https://wxpusher.zjiecode.com/api/send/message"


TRUNCATION_MARKER = "..."


def join_within(lines: Sequence[str], sep: str, max_length: int) -> str:
    """Join whole lines, dropping trailing ones that do not fit.

    When lines are dropped the result ends with TRUNCATION_MARKER, so a
    position line, HTML tag or entity is never cut in half.
    """
    full = sep.join(lines)
    if len(full) <= max_length:
        return full

    budget = max_length - len(sep) - len(TRUNCATION_MARKER)
    kept: list[str] = []
    size = 0
    for line in lines:
        added = len(line) + (len(sep) if kept else 0)
        if size + added > budget:
            break
        kept.append(line)
        size += added
    if not kept:
        return full[:max_length]
    return sep.join(kept + [TRUNCATION_MARKER])


def group_by_symbol_side(
    records: Sequence[PositionRecord],
) -> dict[tuple[str, str], list[PositionRecord]]:
    """Group records by (symbol, side), keeping first-seen order."""
    groups: dict[tuple[str, str], list[PositionRecord]] = {}
    for rec in records:
        groups.setdefault((rec.symbol, rec.side), []).append(rec)
    return groups


def message_lines(records: Sequence[PositionRecord], event_type: EventType) -> list[str]:
    """Plain lines of a batch summary; the first line is the title."""
    opened = event_type == EventType.OPENED
    title = "🆕 New positions" if opened else "❌ Closed positions"
    trader = records[0].trader_name or records[0].trader_id
    lines = [title, f"Trader: {trader}"]
    for (symbol, side), group in group_by_symbol_side(records).items():
        lines.append(f"{symbol} {side} ({len(group)})")
        for rec in group:
            when = rec.first_seen_at if opened else rec.closed_at
            when_str = when.strftime("%H:%M:%S") if when else "unknown"
            label = "opened" if opened else "closed"
            lines.append(
                f"  {rec.leverage} @ {rec.open_price}, size {rec.size}, {label} {when_str}"
            )
    return lines


class Notifier(ABC):
    """A push-notification backend."""

    name = "base"
    max_length = 4000

    def build_message(self, records: Sequence[PositionRecord], event_type: EventType) -> str:
        if not records:
            return ""
        return join_within(message_lines(records, event_type), "\n", self.max_length)

    async def send(self, message: str):
        """Deliver one message; raises NotificationError on failure."""
        if not message:
            raise NotificationError("notification message cannot be empty")
        await self._deliver(message)

    @abstractmethod
    async def _deliver(self, message: str):
        ...


class WeComNotifier(Notifier):
    """WeCom (WeChat Work) application message to all members."""

    name = "wecom"
    max_length = 2000

    def __init__(
        self,
        corp_id: str,
        agent_id: str,
        secret: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not (corp_id and agent_id and secret):
            raise ConfigError("wecom configuration is incomplete")
        self.corp_id = corp_id
        self.agent_id = agent_id
        self.secret = secret
        self.timeout = timeout
        self._transport = transport

    async def _deliver(self, message: str):
        data = {
            "touser": "@all",
            "agentid": self.agent_id,
            "msgtype": "text",
            "text": {"content": message},
            "duplicate_check_interval": 600,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                token = await self._get_token(client)
                resp = await client.post(WECOM_SEND_URL, params={"access_token": token}, json=data)
                resp.raise_for_status()
                body = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise NotificationError(f"WeCom send failed: {e}") from e

        if body.get("errcode", 0) != 0:
            raise NotificationError(f"WeCom API error: {body.get('errmsg')}")

    async def _get_token(self, client: httpx.AsyncClient) -> str:
        resp = await client.get(
            WECOM_TOKEN_URL, params={"corpid": self.corp_id, "corpsecret": self.secret}
        )
        resp.raise_for_status()
        body = resp.json()
        if body.get("errcode", 0) != 0 or not body.get("access_token"):
            raise NotificationError(f"Failed to get WeCom token: {body.get('errmsg')}")
        return body["access_token"]


class WxPusherNotifier(Notifier):
    """WxPusher HTML message to a list of subscriber uids."""

    name = "wxpusher"
    max_length = 40000

    def __init__(
        self,
        app_token: str,
        uids: list[str],
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not app_token or not uids:
            raise ConfigError("wxpusher configuration is incomplete")
        self.app_token = app_token
        self.uids = list(uids)
        self.timeout = timeout
        self._transport = transport

    def build_message(self, records: Sequence[PositionRecord], event_type: EventType) -> str:
        if not records:
            return ""
        lines = [html.escape(line) for line in message_lines(records, event_type)]
        lines[0] = f"<h3>{lines[0]}</h3>"
        return join_within(lines, "<br>", self.max_length)

    async def _deliver(self, message: str):
        data = {
            "appToken": self.app_token,
            "content": message,
            "contentType": 2,  # HTML
            "uids": self.uids,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(WXPUSHER_SEND_URL, json=data)
                resp.raise_for_status()
                body = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise NotificationError(f"WxPusher send failed: {e}") from e

        if not body.get("success") or not body.get("data"):
            raise NotificationError(f"WxPusher rejected message: {body.get('msg')}")


class TelegramNotifier(Notifier):
    """Telegram message to every configured chat."""

    name = "telegram"
    max_length = 4096

    def __init__(self, token: str, chat_ids: list[int], bot: Bot | None = None):
        if not token or not chat_ids:
            raise ConfigError("telegram configuration is incomplete")
        self.token = token
        self.chat_ids = list(chat_ids)
        self._bot = bot

    async def _deliver(self, message: str):
        bot = self._bot or Bot(self.token)
        failures = []
        try:
            async with bot:
                for chat_id in self.chat_ids:
                    try:
                        await bot.send_message(chat_id=chat_id, text=message)
                    except TelegramError as e:
                        logger.warning(f"Failed to send Telegram notification to {chat_id}: {e}")
                        failures.append(f"{chat_id}: {e}")
        except TelegramError as e:
            raise NotificationError(f"Telegram bot unavailable: {e}") from e

        if failures:
            raise NotificationError("Telegram send failed for " + "; ".join(failures))


class WebhookNotifier(Notifier):
    """JSON POST of the message to an arbitrary URL."""

    name = "webhook"
    max_length = 40000

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not url:
            raise ConfigError("webhook URL not configured")
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def _deliver(self, message: str):
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.url, json={"type": "position_update", "message": message})
        except httpx.HTTPError as e:
            raise NotificationError(f"Webhook send failed: {e}") from e
        if resp.status_code >= 400:
            raise NotificationError(f"notification failed with status: {resp.status_code}")


def create_notifier(settings) -> Notifier:
    """Build the notifier selected by settings.notifier."""
    kind = settings.notifier.lower()
    timeout = settings.notification_timeout_seconds
    if kind == "wecom":
        return WeComNotifier(
            settings.wecom_corp_id, settings.wecom_agent_id, settings.wecom_secret, timeout=timeout
        )
    if kind == "wxpusher":
        return WxPusherNotifier(settings.wxpusher_app_token, settings.wxpusher_uids, timeout=timeout)
    if kind == "telegram":
        return TelegramNotifier(settings.telegram_bot_token, settings.telegram_chat_ids)
    if kind == "webhook":
        return WebhookNotifier(settings.webhook_url, timeout=timeout)
    raise ConfigError(f"Unknown notifier: {settings.notifier!r}")
