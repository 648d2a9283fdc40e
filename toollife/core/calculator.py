"""
Калькулятор рекомендуемой стойкости инструмента.
Главный принцип: из всех доступных сигналов побеждает самый осторожный.

Рекомендация = min(mu - k*sigma, mu - 1.645*sigma, лимит по размеру, лимит Тейлора),
не ниже 15 минут. Предупреждение = 90% от рекомендации.
"""
from typing import Iterable, Optional
import math

from toollife.domain.models import (
    ToolRecipe, ToolCycle, ToolUsageSample, QualitySample, ToolLifeStats
)
from toollife.core.common import WARNING_RATIO, round_half_up
from toollife.core.statistics import calculate_distribution
from toollife.core.drift import calculate_dimensional_limit
from toollife.core.taylor import calculate_taylor_limit


def warning_for(recommended: float) -> float:
    return round_half_up(recommended * WARNING_RATIO, 1)


def blend_limits(conservative_stat: float,
                 dimensional: Optional[float],
                 taylor: Optional[float]) -> float:
    """Минимум из доступных сигналов; отсутствующий сигнал не ограничивает."""
    return min(
        conservative_stat,
        dimensional if dimensional is not None else math.inf,
        taylor if taylor is not None else math.inf,
    )


def calculate_stats(
        recipe: ToolRecipe,
        cycles: Iterable[ToolCycle],
        quality_samples: Iterable[QualitySample],
        usage_samples: Iterable[ToolUsageSample],
        k_factor: Optional[float] = None
) -> ToolLifeStats:
    """
    Полный пересчёт статистики одного инструмента.

    Чистая функция: одинаковые журналы -> одинаковый результат.
    Недостаток данных не ошибка, а отсутствующий (None) сигнал.

    Args:
        recipe: карточка инструмента
        cycles: циклы этого инструмента
        quality_samples: замеры качества этого инструмента
        usage_samples: телеметрия этого инструмента
        k_factor: переопределение k (иначе из карточки)

    Returns:
        ToolLifeStats
    """
    k = recipe.k_factor if k_factor is None else k_factor

    distribution = calculate_distribution(cycles, k)
    dimensional = calculate_dimensional_limit(quality_samples)

    if distribution.sample_count == 0:
        # Без циклов износа остаётся только размер (или ничего)
        recommended = dimensional if dimensional is not None else 0.0
        return ToolLifeStats(
            tool_id=recipe.id,
            mean_life_minutes=0.0,
            sigma_minutes=0.0,
            stat_limit_min=0.0,
            reliability_limit_min=0.0,
            dimensional_limit_min=dimensional,
            taylor_limit_min=None,
            recommended_limit_min=recommended,
            warning_min=warning_for(recommended),
            sample_count=0,
            k_factor=k,
        )

    taylor = calculate_taylor_limit(recipe, usage_samples)
    recommended = blend_limits(distribution.conservative_limit, dimensional, taylor)

    return ToolLifeStats(
        tool_id=recipe.id,
        mean_life_minutes=round_half_up(distribution.mean, 1),
        sigma_minutes=round_half_up(distribution.sigma, 2),
        stat_limit_min=distribution.stat_limit,
        reliability_limit_min=distribution.reliability_limit,
        dimensional_limit_min=dimensional,
        taylor_limit_min=taylor,
        recommended_limit_min=recommended,
        warning_min=warning_for(recommended),
        sample_count=distribution.sample_count,
        k_factor=k,
    )
