"""
network/services/qualification.py — Оценка анкеты предквалификации кандидата.

Каждый критерий даёт 0..100:
    • financial — личный вклад (OVER_100K 100, 50K_100K 70, 20K_50K 40, LESS_20K 10);
    • experience — педагогика 40 + управление 30 + предпринимательство 30;
    • geo — есть помещение 100, иначе указана зона 50;
    • timing — URGENT 100, MEDIUM 70, LONG_TERM 30;
    • motivation — половина длины ответа о мотивации, не больше 100.

Итог: 30% финансы, 30% опыт, 20% гео, 10% срок, 10% мотивация,
округление до целого half-up.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from network.models.candidate import QualificationAnswers, QualificationScores
from network.models.enums import InvestmentCapacity, ProjectTiming

FINANCIAL_SCORES = {
    InvestmentCapacity.OVER_100K: 100,
    InvestmentCapacity.FROM_50K_TO_100K: 70,
    InvestmentCapacity.FROM_20K_TO_50K: 40,
    InvestmentCapacity.LESS_20K: 10,
}

TIMING_SCORES = {
    ProjectTiming.URGENT: 100,
    ProjectTiming.MEDIUM: 70,
    ProjectTiming.LONG_TERM: 30,
}

PEDAGOGICAL_POINTS = 40
MANAGEMENT_POINTS = 30
ENTREPRENEURIAL_POINTS = 30

WEIGHTS = {
    "financial": Decimal("0.3"),
    "experience": Decimal("0.3"),
    "geo": Decimal("0.2"),
    "timing": Decimal("0.1"),
    "motivation": Decimal("0.1"),
}


def calculate_candidate_scores(answers: QualificationAnswers) -> QualificationScores:
    """Считает оценки по критериям и взвешенный итог."""
    experience = 0
    if answers.has_pedagogical_exp:
        experience += PEDAGOGICAL_POINTS
    if answers.has_management_exp:
        experience += MANAGEMENT_POINTS
    if answers.has_entrepreneurial_exp:
        experience += ENTREPRENEURIAL_POINTS

    if answers.has_local:
        geo = 100
    elif answers.target_zone:
        geo = 50
    else:
        geo = 0

    motivation = 0
    if answers.motivation_choice:
        motivation = min(100, len(answers.motivation_choice) // 2)

    parts = {
        "financial": FINANCIAL_SCORES.get(answers.investment_capacity, 0),
        "experience": experience,
        "geo": geo,
        "timing": TIMING_SCORES.get(answers.timing, 0),
        "motivation": motivation,
    }
    weighted = sum(WEIGHTS[name] * value for name, value in parts.items())
    global_score = int(weighted.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return QualificationScores(global_score=global_score, **parts)
