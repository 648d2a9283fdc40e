"""
Модели данных для оценки стойкости инструмента.
Записи журналов неизменяемы: один раз создали - больше не трогаем.
"""

from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from enum import Enum
import uuid


class EndReason(Enum):
    """Причина снятия инструмента."""
    WORN = "WORN"  # износ - штатный конец жизни
    BROKEN = "BROKEN"  # поломка до износа
    PREVENTIVE = "PREVENTIVE"  # снят заранее по регламенту
    TRIAL = "TRIAL"  # эксперимент
    SCRAP = "SCRAP"  # брак детали из-за инструмента
    CHIP_CONTROL = "CHIP_CONTROL"  # проблемы со стружкой

    @property
    def is_wear_out(self) -> bool:
        """Годится ли цикл для статистики стойкости."""
        return self in (EndReason.WORN, EndReason.SCRAP)


class QualityRating(Enum):
    """Оценка качества по результатам контроля."""
    OK = "OK"
    WARN = "WARN"
    SCRAP = "SCRAP"


@dataclass(frozen=True)
class ToolRecipe:
    """Карточка инструмента (справочник, только чтение)."""
    id: str
    machine_id: str
    tool_number: str
    description: str
    material_group: str
    operation_code: str
    k_factor: float  # множитель разброса для mu - k*sigma
    current_limit_minutes: float  # лимит, загруженный в стойку
    current_warning_minutes: float
    manufacturer_spec_minutes: Optional[float] = None  # стойкость по каталогу
    taylor_c: Optional[float] = None  # константы Тейлора V*T^n = C
    taylor_n: Optional[float] = None
    nominal_speed_sfm: Optional[float] = None  # скорость по умолчанию
    machine_name: Optional[str] = None
    last_updated: Optional[str] = None

    @property
    def display_machine(self) -> str:
        return self.machine_name or self.machine_id

    @property
    def has_taylor(self) -> bool:
        return self.taylor_c is not None and self.taylor_n is not None


@dataclass(frozen=True)
class ToolCycle:
    """Один физический цикл инструмента: от установки до снятия."""
    id: str
    tool_id: str
    cycle_index: int
    start_minutes_total: float
    end_minutes_total: float
    end_reason: EndReason
    program_id: Optional[str] = None
    material: Optional[str] = None
    notes: Optional[str] = None
    timestamp: Optional[datetime] = None
    record_id: Optional[str] = None  # ID от клиента для повторов, не путать с id цикла

    @property
    def life_minutes(self) -> float:
        """Стойкость цикла, мин. Всегда пересчитывается из границ."""
        return max(self.end_minutes_total - self.start_minutes_total, 0.0)


@dataclass(frozen=True)
class ToolUsageSample:
    """Точка телеметрии: накопленное время резания и скорость."""
    id: str
    tool_id: str
    machine_id: str
    timestamp: datetime
    cutting_minutes_total: float
    surface_speed_sfm: Optional[float] = None
    program_id: Optional[str] = None
    material: Optional[str] = None
    spindle_rpm: Optional[float] = None
    feed_per_tooth: Optional[float] = None


@dataclass(frozen=True)
class QualitySample:
    """Результат контроля детали, привязанный к циклу инструмента."""
    id: str
    tool_id: str
    tool_cycle_id: str
    timestamp: datetime
    usage_minutes_at_sample: float
    quality_rating: QualityRating
    dimension_name: Optional[str] = None
    dimension_value: Optional[float] = None
    within_tolerance: Optional[bool] = None
    offset_adjustment: Optional[float] = None  # коррекция на износ в стойке
    offset_axis: Optional[str] = None
    note: Optional[str] = None

    @property
    def is_flagged(self) -> bool:
        """Отмечен ли замер как сигнал к замене."""
        return (self.quality_rating != QualityRating.OK
                or self.within_tolerance is False
                or self.offset_adjustment is not None)


@dataclass(frozen=True)
class ToolLifeStats:
    """Расчётная статистика стойкости. Не хранится, считается на чтении."""
    tool_id: str
    mean_life_minutes: float
    sigma_minutes: float
    stat_limit_min: float
    reliability_limit_min: float
    recommended_limit_min: float
    warning_min: float
    sample_count: int
    k_factor: float
    dimensional_limit_min: Optional[float] = None
    taylor_limit_min: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        """Конвертация в словарь для отображения / JSON."""
        return asdict(self)


def create_record_id(prefix: str) -> str:
    """Создание уникального ID записи"""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    unique = str(uuid.uuid4())[:8]
    return f"{prefix}_{timestamp}_{unique}"


def cycle_id_for(tool_id: str, cycle_index: int) -> str:
    return f"{tool_id}-C{cycle_index}"


def utc_now() -> datetime:
    """Текущее время в UTC без tzinfo - так хранятся все метки журналов."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
