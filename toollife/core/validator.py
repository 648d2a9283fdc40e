"""
Проверка входных данных и ошибки журнала стойкости.
Все проверки выполняются ДО записи: либо запись целиком, либо ничего.
"""

from typing import Any, Optional
from enum import Enum
import math


class ErrorCode(Enum):
    """Типы ошибок."""
    UNKNOWN_TOOL = "unknown_tool"
    UNKNOWN_CYCLE = "unknown_cycle"
    INVALID_MEASUREMENT = "invalid_measurement"
    INVALID_RECIPE = "invalid_recipe"


class ToolLifeError(Exception):
    """Базовая ошибка движка стойкости."""
    code: ErrorCode = ErrorCode.INVALID_MEASUREMENT

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnknownTool(ToolLifeError):
    code = ErrorCode.UNKNOWN_TOOL

    def __init__(self, tool_id: str):
        super().__init__(f"Инструмент не найден в справочнике: {tool_id}")
        self.tool_id = tool_id


class UnknownCycle(ToolLifeError):
    code = ErrorCode.UNKNOWN_CYCLE

    def __init__(self, tool_id: str, cycle_id: str):
        super().__init__(f"Цикл {cycle_id} не найден для инструмента {tool_id}")
        self.tool_id = tool_id
        self.cycle_id = cycle_id


class InvalidMeasurement(ToolLifeError, ValueError):
    code = ErrorCode.INVALID_MEASUREMENT

    def __init__(self, field: str, value: Any, reason: str = "должно быть конечным числом"):
        super().__init__(f"Некорректное значение {field}={value!r}: {reason}")
        self.field = field
        self.value = value


class RecipeError(ToolLifeError, ValueError):
    """Ошибка в конфигурации справочника инструментов."""
    code = ErrorCode.INVALID_RECIPE


# ============================================================================
# ПРОВЕРКИ ЧИСЕЛ
# ============================================================================

def is_finite_number(value: Any) -> bool:
    """Число и не NaN/inf. bool числом не считаем."""
    if isinstance(value, bool):
        return False
    if not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def require_finite(field: str, value: Any, minimum: Optional[float] = None,
                   strict: bool = False) -> float:
    """
    Проверить обязательное число.

    Args:
        field: имя поля для сообщения об ошибке
        value: значение
        minimum: нижняя граница (включительно, если strict=False)
        strict: строгое неравенство value > minimum

    Returns:
        Значение как float
    """
    if not is_finite_number(value):
        raise InvalidMeasurement(field, value)

    value = float(value)
    if minimum is not None:
        if strict and value <= minimum:
            raise InvalidMeasurement(field, value, f"должно быть больше {minimum}")
        if not strict and value < minimum:
            raise InvalidMeasurement(field, value, f"не может быть меньше {minimum}")
    return value


def optional_finite(field: str, value: Any, minimum: Optional[float] = None,
                    strict: bool = False) -> Optional[float]:
    """То же, что require_finite, но None пропускаем."""
    if value is None:
        return None
    return require_finite(field, value, minimum=minimum, strict=strict)


def parse_enum(field: str, enum_cls, value: Any):
    """Привести строку или член перечисления к enum_cls."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().upper())
        except ValueError:
            pass
    allowed = ", ".join(member.value for member in enum_cls)
    raise InvalidMeasurement(field, value, f"допустимые значения: {allowed}")
