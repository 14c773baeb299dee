"""
network/services/container.py — Сборка сервисов вокруг одного хранилища.

Точка входа создаёт хранилище и издатель событий, а эта функция
связывает из них все сервисы сети. Экземпляр ``NetworkServices``
кладётся в ``app.state.services``.
"""

from __future__ import annotations

from dataclasses import dataclass

from network.config import NetworkSettings
from network.events import EventPublisher
from network.services.audit_logger import NetworkAuditLogger
from network.services.candidate_service import CandidateService
from network.services.dispatch_engine import DispatchEngine
from network.services.motivation_decay import MotivationDecayJob
from network.services.onboarding import FranchiseOnboarding
from network.services.org_service import OrganizationService
from network.services.royalty_calculator import RoyaltyCalculator
from network.services.territory_registry import TerritoryRegistry


@dataclass
class NetworkServices:
    audit: NetworkAuditLogger
    organizations: OrganizationService
    territories: TerritoryRegistry
    dispatch: DispatchEngine
    onboarding: FranchiseOnboarding
    royalties: RoyaltyCalculator
    decay: MotivationDecayJob
    candidates: CandidateService


def build_services(
    store,
    settings: NetworkSettings,
    publisher: EventPublisher | None = None,
) -> NetworkServices:
    """Создаёт сервисы сети поверх переданного хранилища."""
    audit = NetworkAuditLogger(publisher)
    territories = TerritoryRegistry(store, audit, publisher)
    return NetworkServices(
        audit=audit,
        organizations=OrganizationService(store, audit, settings),
        territories=territories,
        dispatch=DispatchEngine(store, audit, publisher),
        onboarding=FranchiseOnboarding(store, territories, audit, settings, publisher),
        royalties=RoyaltyCalculator(store),
        decay=MotivationDecayJob(store, audit, settings, publisher),
        candidates=CandidateService(store, audit, settings),
    )
