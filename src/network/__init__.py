"""
network — Ядро франчайзинговой сети учебных организаций.

Головной офис (HEAD_OFFICE), франчайзи и филиалы: территории,
диспетчеризация досье, онбординг кандидатов, роялти.
"""

__version__ = "1.0.0"
