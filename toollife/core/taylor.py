"""
Лимит по уравнению Тейлора: V * T^n = C  =>  T = (C / V)^(1/n).
"""
from typing import Iterable, Optional
import math

from toollife.domain.models import ToolRecipe, ToolUsageSample
from toollife.core.common import round_half_up, apply_floor


def average_speed(usage_samples: Iterable[ToolUsageSample],
                  nominal: Optional[float] = None) -> Optional[float]:
    """Средняя фактическая скорость резания (SFM), иначе номинальная."""
    speeds = [s.surface_speed_sfm for s in usage_samples if s.surface_speed_sfm is not None]
    if not speeds:
        return nominal

    avg = sum(speeds) / len(speeds)
    return avg or nominal


def calculate_taylor_limit(recipe: ToolRecipe,
                           usage_samples: Iterable[ToolUsageSample]) -> Optional[float]:
    """
    Рассчитать стойкость по Тейлору при наблюдаемой скорости.

    Returns:
        Лимит в минутах или None, если нет констант или скорости
    """
    if not recipe.has_taylor:
        return None
    if not recipe.taylor_c or not recipe.taylor_n or recipe.taylor_c <= 0 or recipe.taylor_n <= 0:
        return None

    speed = average_speed(usage_samples, recipe.nominal_speed_sfm)
    if not speed or speed <= 0:
        return None

    try:
        life = (recipe.taylor_c / speed) ** (1 / recipe.taylor_n)
    except OverflowError:
        return None
    if not math.isfinite(life):
        return None

    return apply_floor(round_half_up(life, 1))
