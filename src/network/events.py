"""
network/events.py — NATS Event Publisher.

Публикует доменные события Network-сервиса в NATS:
    • ``network.record.dispatched``    — досье передано члену сети
    • ``network.territory.created``    — создана территория
    • ``network.franchise.onboarded``  — кандидат стал франчайзи
    • ``network.candidate.decayed``    — прогон затухания мотивации
    • ``network.audit.<action>``       — зеркало аудит-записей

Graceful degradation: если NATS недоступен — событие пропускается
с предупреждением в лог (не ломает основной бизнес-процесс).
"""

from __future__ import annotations

import json
import logging
from typing import Any

import nats
from nats.aio.client import Client as NATSClient

logger = logging.getLogger(__name__)


class EventPublisher:
    """
    Издатель событий. Создаётся точкой входа процесса и передаётся
    сервисам через конструктор; соединение открывается лениво.
    """

    def __init__(self, nats_url: str, enabled: bool = True) -> None:
        self._nats_url = nats_url
        self._enabled = enabled
        self._nc: NATSClient | None = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def connect(self) -> NATSClient | None:
        """Подключается к NATS (если ещё не подключён)."""
        if not self._enabled:
            return None
        if self._nc is not None and self._nc.is_connected:
            return self._nc
        try:
            self._nc = await nats.connect(self._nats_url)
            logger.info("NATS publisher connected: %s", self._nats_url)
            return self._nc
        except Exception as exc:
            logger.warning("NATS connect failed (events will be skipped): %s", exc)
            self._nc = None
            return None

    async def disconnect(self) -> None:
        """Закрывает соединение с NATS."""
        if self._nc and self._nc.is_connected:
            await self._nc.drain()
            logger.info("NATS publisher disconnected")
        self._nc = None

    # ── Публикация событий ───────────────────────────────────────────────

    async def publish(self, subject: str, data: dict[str, Any]) -> None:
        """
        Публикует JSON-событие в NATS.

        Args:
            subject: Тема сообщения (e.g. ``network.record.dispatched``).
            data: Payload (сериализуется в JSON).
        """
        nc = await self.connect()
        if nc is None:
            logger.debug("NATS unavailable — skipping event %s", subject)
            return
        try:
            payload = json.dumps(data, default=str).encode("utf-8")
            await nc.publish(subject, payload)
            logger.info("NATS event published: %s", subject)
        except Exception as exc:
            logger.warning("NATS publish failed for %s: %s", subject, exc)

    # ── Удобные функции для Network-домена ───────────────────────────────

    async def emit_record_dispatched(
        self, record_id: str, from_org_id: str, to_org_id: str, territory_id: str,
    ) -> None:
        """Событие: досье передано члену сети."""
        await self.publish("network.record.dispatched", {
            "event": "record.dispatched",
            "record_id": record_id,
            "from_org_id": from_org_id,
            "to_org_id": to_org_id,
            "territory_id": territory_id,
        })

    async def emit_territory_created(
        self, territory_id: str, org_id: str, zip_codes: list[str], is_exclusive: bool,
    ) -> None:
        """Событие: территория создана."""
        await self.publish("network.territory.created", {
            "event": "territory.created",
            "territory_id": territory_id,
            "org_id": org_id,
            "zip_codes": zip_codes,
            "is_exclusive": is_exclusive,
        })

    async def emit_franchise_onboarded(
        self, candidate_id: str, org_id: str, parent_id: str, name: str,
    ) -> None:
        """Событие: кандидат превращён во франчайзи."""
        await self.publish("network.franchise.onboarded", {
            "event": "franchise.onboarded",
            "candidate_id": candidate_id,
            "org_id": org_id,
            "parent_id": parent_id,
            "name": name,
        })

    async def emit_candidates_decayed(self, processed: int) -> None:
        """Событие: прогон затухания мотивации завершён."""
        await self.publish("network.candidate.decayed", {
            "event": "candidate.decayed",
            "processed": processed,
        })
