"""
network/models/enums.py — Перечисления Network-домена.

Содержит закрытые наборы значений:
    • NetworkType — место организации в сети
    • OrganizationType — тип учебной организации (OF / CFA)
    • RecordSource — происхождение досье (органика / диспетчеризация)
    • CandidateStatus — воронка кандидата во франчайзи
    • ActivityType — тип записи в таймлайне кандидата
    • ContractStatus — статус договора (вход биллинга)
    • MembershipRole / MembershipScope — членство пользователя в организации
    • InvestmentCapacity / ProjectTiming — ответы анкеты квалификации
"""

from enum import Enum


class NetworkType(str, Enum):
    """Место организации в сети."""
    HEAD_OFFICE = "HEAD_OFFICE"
    FRANCHISE = "FRANCHISE"
    SUCCURSALE = "SUCCURSALE"
    INDEPENDENT = "INDEPENDENT"


# Члены сети: держат территории и платят роялти
MEMBER_NETWORK_TYPES = (NetworkType.FRANCHISE, NetworkType.SUCCURSALE)


class OrganizationType(str, Enum):
    """Тип учебной организации."""
    OF_STANDARD = "OF_STANDARD"
    CFA = "CFA"


class RecordSource(str, Enum):
    """Происхождение досье."""
    ORGANIC = "ORGANIC"
    NETWORK_DISPATCH = "NETWORK_DISPATCH"


class CandidateStatus(str, Enum):
    """Статус кандидата во франчайзи."""
    NEW = "NEW"
    CONTACTED = "CONTACTED"
    QUALIFIED = "QUALIFIED"
    DIP_SENT = "DIP_SENT"
    DIP_SIGNED = "DIP_SIGNED"
    CONTRACT_SENT = "CONTRACT_SENT"
    SIGNED = "SIGNED"
    REJECTED = "REJECTED"
    WITHDRAWN = "WITHDRAWN"


TERMINAL_CANDIDATE_STATUSES = frozenset({
    CandidateStatus.SIGNED,
    CandidateStatus.REJECTED,
    CandidateStatus.WITHDRAWN,
})

# Порядок продвижения по воронке (REJECTED / WITHDRAWN вне воронки)
CANDIDATE_PIPELINE = (
    CandidateStatus.NEW,
    CandidateStatus.CONTACTED,
    CandidateStatus.QUALIFIED,
    CandidateStatus.DIP_SENT,
    CandidateStatus.DIP_SIGNED,
    CandidateStatus.CONTRACT_SENT,
    CandidateStatus.SIGNED,
)


class FranchiseType(str, Enum):
    """Формат будущей франшизы."""
    OF = "OF"
    CFA = "CFA"


class ActivityType(str, Enum):
    """Тип записи в таймлайне кандидата."""
    STATUS_CHANGE = "STATUS_CHANGE"
    SYSTEM_ALERT = "SYSTEM_ALERT"
    CONVERSION = "CONVERSION"


class ContractStatus(str, Enum):
    """Статус договора."""
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    TERMINATED = "TERMINATED"
    CANCELLED = "CANCELLED"


class MembershipRole(str, Enum):
    """Роль пользователя в организации."""
    ADMIN = "admin"
    NETWORK_MANAGER = "network_manager"
    ADVISOR = "advisor"
    VIEWER = "viewer"


class MembershipScope(str, Enum):
    """Область действия членства."""
    GLOBAL = "GLOBAL"


class InvestmentCapacity(str, Enum):
    """Личный вклад кандидата (анкета квалификации)."""
    LESS_20K = "LESS_20K"
    FROM_20K_TO_50K = "20K_50K"
    FROM_50K_TO_100K = "50K_100K"
    OVER_100K = "OVER_100K"


class ProjectTiming(str, Enum):
    """Срок запуска: <3 мес., 3–6 мес., >6 мес."""
    URGENT = "URGENT"
    MEDIUM = "MEDIUM"
    LONG_TERM = "LONG_TERM"
