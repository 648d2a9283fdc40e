"""
Статистика распределения стойкости по циклам износа.
mu - k*sigma и нижняя доверительная граница mu - 1.645*sigma.
"""
from typing import Iterable, List
from dataclasses import dataclass
import numpy as np

from toollife.domain.models import ToolCycle
from toollife.core.common import RELIABILITY_Z, round_half_up, apply_floor


@dataclass(frozen=True)
class LifeDistribution:
    """Результат статистики по циклам износа."""
    mean: float
    sigma: float
    stat_limit: float
    reliability_limit: float
    sample_count: int

    @property
    def conservative_limit(self) -> float:
        """Статистика не может быть оптимистичнее нижней доверительной границы."""
        return min(self.stat_limit, self.reliability_limit)


EMPTY_DISTRIBUTION = LifeDistribution(
    mean=0.0, sigma=0.0, stat_limit=0.0, reliability_limit=0.0, sample_count=0
)


def wear_out_lifetimes(cycles: Iterable[ToolCycle]) -> List[float]:
    """Стойкости только тех циклов, что закончились износом (WORN/SCRAP)."""
    return [cycle.life_minutes for cycle in cycles if cycle.end_reason.is_wear_out]


def calculate_distribution(cycles: Iterable[ToolCycle], k_factor: float) -> LifeDistribution:
    """
    Рассчитать среднее, sigma и статистические лимиты.

    Args:
        cycles: все циклы инструмента (поломки/пробные отфильтруются)
        k_factor: множитель разброса

    Returns:
        LifeDistribution; нулевой, если циклов износа нет
    """
    lifetimes = wear_out_lifetimes(cycles)
    if not lifetimes:
        return EMPTY_DISTRIBUTION

    values = np.asarray(lifetimes, dtype=float)
    n = len(values)
    mean = float(values.mean())

    # Поправка Бесселя; при n=1 делим на 1 и получаем sigma = 0
    variance = float(np.sum((values - mean) ** 2)) / max(n - 1, 1)
    sigma = float(np.sqrt(variance))

    stat_limit = apply_floor(round_half_up(mean - k_factor * sigma, 1))
    reliability_limit = apply_floor(round_half_up(mean - RELIABILITY_Z * sigma, 1))

    return LifeDistribution(
        mean=mean,
        sigma=sigma,
        stat_limit=stat_limit,
        reliability_limit=reliability_limit,
        sample_count=n,
    )
