"""
network.models — Модели данных Network-домена.

Реэкспорт основных классов для удобства:
    from network.models import OrganizationRead, TerritoryRead
"""

from network.models.enums import (  # noqa: F401
    CandidateStatus,
    MembershipRole,
    NetworkType,
    RecordSource,
)
from network.models.organization import (  # noqa: F401
    OrganizationCreate,
    OrganizationRead,
    RatesUpdate,
)
from network.models.territory import (  # noqa: F401
    TerritoryConflict,
    TerritoryCreate,
    TerritoryRead,
)
from network.models.dispatch import DispatchRequest, DispatchResult  # noqa: F401
from network.models.candidate import (  # noqa: F401
    CandidateCreate,
    CandidateRead,
    DecayReport,
    OnboardRequest,
)
from network.models.royalty import (  # noqa: F401
    NetworkRoyaltySummary,
    RoyaltyBreakdown,
)
