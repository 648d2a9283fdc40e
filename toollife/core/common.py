"""
Общие константы и округление для расчёта стойкости.
"""
import math

SAFETY_MINUTES_FLOOR = 15.0  # абсолютный минимум рекомендации, мин
RELIABILITY_Z = 1.645  # ~95% односторонняя нижняя граница нормального распределения
WARNING_RATIO = 0.9  # предупреждение = 90% от лимита


def round_half_up(value: float, digits: int = 1) -> float:
    """Округление 'как в школе' (0.05 -> 0.1), без банковского округления."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def apply_floor(value: float) -> float:
    return max(value, SAFETY_MINUTES_FLOOR)
