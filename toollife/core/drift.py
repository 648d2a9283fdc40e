"""
Лимит по уходу размера (dimensional drift).

Идея: по замерам размера строим линейный тренд от наработки инструмента
и находим, в какой момент размер дойдёт до отмеченного (плохого) замера.
Проекция может только СДВИНУТЬ лимит раньше, но не позже факта.
"""
from typing import Iterable, List, Optional, Tuple
import math
import numpy as np

from toollife.domain.models import QualitySample
from toollife.core.common import SAFETY_MINUTES_FLOOR, round_half_up, apply_floor


def _usage_order(sample: QualitySample) -> Tuple[float, str]:
    # при одинаковой наработке - по id, чтобы выбор был детерминированным
    return sample.usage_minutes_at_sample, sample.id


def drift_points(samples: Iterable[QualitySample]) -> List[QualitySample]:
    """Замеры с числовым размером, по возрастанию наработки."""
    points = [s for s in samples if s.dimension_value is not None]
    return sorted(points, key=_usage_order)


def fit_line(points: List[QualitySample]) -> Optional[Tuple[float, float]]:
    """
    МНК-прямая: dimension = slope * usage + intercept.

    Returns:
        (slope, intercept) или None, если прямую построить нельзя
    """
    n = len(points)
    if n < 2:
        return None

    x = np.array([p.usage_minutes_at_sample for p in points], dtype=float)
    y = np.array([p.dimension_value for p in points], dtype=float)

    sum_x = float(x.sum())
    sum_y = float(y.sum())
    sum_xy = float((x * y).sum())
    sum_x2 = float((x ** 2).sum())

    denominator = n * sum_x2 - sum_x ** 2
    if denominator == 0 or not math.isfinite(denominator):
        return None

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n
    if not math.isfinite(slope) or slope == 0:
        return None

    return slope, intercept


def select_limit_sample(samples: Iterable[QualitySample],
                        points: List[QualitySample]) -> Optional[QualitySample]:
    """
    Самый ранний отмеченный замер (WARN/SCRAP, вне допуска или с коррекцией).
    Если таких нет - последний замер размера.
    """
    flagged = sorted((s for s in samples if s.is_flagged), key=_usage_order)
    if flagged:
        return flagged[0]
    return points[-1] if points else None


def _floor_at_usage(sample: QualitySample) -> float:
    return max(SAFETY_MINUTES_FLOOR, sample.usage_minutes_at_sample)


def calculate_dimensional_limit(samples: Iterable[QualitySample]) -> Optional[float]:
    """
    Рассчитать лимит по уходу размера.

    Args:
        samples: все замеры качества одного инструмента

    Returns:
        Лимит в минутах или None, если сигнал недоступен
    """
    samples = list(samples)
    points = drift_points(samples)

    if len(points) < 2:
        # Тренда нет, но коррекция в стойке - уже сигнал износа
        offsets = sorted((s for s in samples if s.offset_adjustment is not None), key=_usage_order)
        if offsets:
            return _floor_at_usage(offsets[0])
        return None

    fit = fit_line(points)
    if fit is None:
        return None
    slope, intercept = fit

    limit_sample = select_limit_sample(samples, points)
    if limit_sample is None:
        return None

    if limit_sample.dimension_value is None:
        return _floor_at_usage(limit_sample)

    projected = (limit_sample.dimension_value - intercept) / slope
    if not math.isfinite(projected) or projected <= 0:
        return _floor_at_usage(limit_sample)

    conservative = min(projected, limit_sample.usage_minutes_at_sample)
    return apply_floor(round_half_up(conservative, 1))
