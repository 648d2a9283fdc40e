"""
Сервис оценки стойкости инструмента.

Четыре операции для внешних слоёв (формы, телеметрия, синхронизация лимитов):
  - append_tool_cycle     - оператор снял инструмент
  - append_usage_sample   - точка телеметрии
  - append_quality_sample - результат контроля
  - get_tool_life_stats   - пересчёт статистики по инструменту

Запись сериализуется по tool_id, пересчёт - чистая функция над срезом журналов.
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Dict, Any, Optional, Mapping

from toollife.domain.models import (
    ToolCycle, ToolUsageSample, QualitySample, ToolLifeStats,
    EndReason, QualityRating, create_record_id, cycle_id_for, utc_now
)
from toollife.domain.tools import ToolRegistry
from toollife.core.calculator import calculate_stats
from toollife.core.validator import (
    InvalidMeasurement, UnknownCycle,
    require_finite, optional_finite, parse_enum
)
from toollife.storage.base import BaseLogStore

logger = logging.getLogger(__name__)


def _to_utc(value: datetime) -> datetime:
    # метки без зоны считаем UTC, с зоной - переводим в UTC
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _parse_timestamp(value: Any) -> datetime:
    if value is None:
        return utc_now()
    if isinstance(value, datetime):
        return _to_utc(value)
    if isinstance(value, str):
        try:
            return _to_utc(datetime.fromisoformat(value))
        except ValueError:
            pass
    raise InvalidMeasurement("timestamp", value, "ожидается datetime или ISO строка")


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class ToolLifeService:
    """Журналы + справочник + пересчёт статистики."""

    def __init__(self, registry: ToolRegistry, store: BaseLogStore):
        self.registry = registry
        self.store = store
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _tool_lock(self, tool_id: str) -> threading.Lock:
        """Замок на инструмент: индексы циклов не должны гоняться."""
        with self._locks_guard:
            lock = self._locks.get(tool_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[tool_id] = lock
            return lock

    def open_cycle_id(self, tool_id: str) -> str:
        """ID текущего (ещё не снятого) цикла инструмента."""
        self.registry.require(tool_id)
        last = self.store.last_cycle(tool_id)
        return cycle_id_for(tool_id, (last.cycle_index if last else 0) + 1)

    # ============================================================================
    # ЗАПИСЬ
    # ============================================================================

    def append_tool_cycle(
            self,
            tool_id: str,
            cutting_minutes_total: float,
            reason,
            context: Optional[Mapping[str, Any]] = None,
            record_id: Optional[str] = None
    ) -> ToolCycle:
        """
        Зафиксировать снятие инструмента.

        Args:
            tool_id: ID инструмента из справочника
            cutting_minutes_total: накопленные минуты резания на момент снятия
            reason: EndReason или строка (WORN, BROKEN, ...)
            context: program_id, material, notes, surface_speed_sfm, timestamp
            record_id: ID от клиента для безопасного повтора

        Returns:
            Записанный (или уже существующий) ToolCycle
        """
        recipe = self.registry.require(tool_id)
        end_reason = parse_enum("reason", EndReason, reason)
        end_minutes = require_finite("cutting_minutes_total", cutting_minutes_total, minimum=0)

        context = dict(context or {})
        speed = optional_finite("surface_speed_sfm", context.get("surface_speed_sfm"), minimum=0)
        timestamp = _parse_timestamp(context.get("timestamp"))
        program_id = _optional_text(context.get("program_id"))
        material = _optional_text(context.get("material"))

        with self._tool_lock(tool_id):
            if record_id:
                existing = self.store.find_cycle_by_record(tool_id, record_id)
                if existing is not None:
                    logger.debug(f"Повтор записи цикла {record_id} - пропускаем")
                    return existing

            last = self.store.last_cycle(tool_id)
            start_minutes = last.end_minutes_total if last else 0.0
            if end_minutes < start_minutes:
                raise InvalidMeasurement(
                    "cutting_minutes_total", end_minutes,
                    f"меньше конца предыдущего цикла ({start_minutes})"
                )

            cycle_index = (last.cycle_index if last else 0) + 1
            cycle = ToolCycle(
                id=cycle_id_for(tool_id, cycle_index),
                tool_id=tool_id,
                cycle_index=cycle_index,
                start_minutes_total=start_minutes,
                end_minutes_total=end_minutes,
                end_reason=end_reason,
                program_id=program_id,
                material=material,
                notes=_optional_text(context.get("notes")),
                timestamp=timestamp,
                record_id=record_id,
            )
            usage = ToolUsageSample(
                id=f"{cycle.id}-usage",
                tool_id=tool_id,
                machine_id=recipe.machine_id,
                timestamp=timestamp,
                cutting_minutes_total=end_minutes,
                surface_speed_sfm=speed,
                program_id=program_id,
                material=material,
            )
            self.store.append_cycle(cycle, usage)

        logger.info(f"Снятие инструмента {recipe.tool_number} ({tool_id}) на {recipe.display_machine}: "
                    f"цикл #{cycle_index}, {cycle.life_minutes} мин, {end_reason.value}")
        return cycle

    def append_usage_sample(
            self,
            tool_id: str,
            machine_id: Optional[str],
            cutting_minutes_total: float,
            surface_speed_sfm: Optional[float] = None,
            context: Optional[Mapping[str, Any]] = None,
            record_id: Optional[str] = None
    ) -> ToolUsageSample:
        """Записать точку телеметрии (context: program_id, material, spindle_rpm, feed_per_tooth, timestamp)."""
        recipe = self.registry.require(tool_id)
        minutes = require_finite("cutting_minutes_total", cutting_minutes_total, minimum=0)
        speed = optional_finite("surface_speed_sfm", surface_speed_sfm, minimum=0)

        context = dict(context or {})
        spindle_rpm = optional_finite("spindle_rpm", context.get("spindle_rpm"), minimum=0)
        feed_per_tooth = optional_finite("feed_per_tooth", context.get("feed_per_tooth"), minimum=0)
        timestamp = _parse_timestamp(context.get("timestamp"))

        with self._tool_lock(tool_id):
            if record_id:
                existing = self.store.find_usage(tool_id, record_id)
                if existing is not None:
                    logger.debug(f"Повтор телеметрии {record_id} - пропускаем")
                    return existing

            sample = ToolUsageSample(
                id=record_id or create_record_id("usage"),
                tool_id=tool_id,
                machine_id=machine_id or recipe.machine_id,
                timestamp=timestamp,
                cutting_minutes_total=minutes,
                surface_speed_sfm=speed,
                program_id=_optional_text(context.get("program_id")),
                material=_optional_text(context.get("material")),
                spindle_rpm=spindle_rpm,
                feed_per_tooth=feed_per_tooth,
            )
            self.store.append_usage(sample)

        logger.debug(f"Телеметрия {tool_id}: {minutes} мин, V={speed}")
        return sample

    def append_quality_sample(
            self,
            tool_id: str,
            tool_cycle_id: str,
            usage_minutes_at_sample: float,
            quality_rating,
            dimension: Optional[Mapping[str, Any]] = None,
            offset: Optional[Mapping[str, Any]] = None,
            note: Optional[str] = None,
            record_id: Optional[str] = None,
            timestamp: Any = None
    ) -> QualitySample:
        """
        Записать результат контроля.

        Args:
            dimension: {"name": "Bore Ø", "value": 100.03, "within_tolerance": True}
            offset: {"adjustment": -0.002, "axis": "X"}
        """
        self.registry.require(tool_id)
        rating = parse_enum("quality_rating", QualityRating, quality_rating)
        usage_minutes = require_finite("usage_minutes_at_sample", usage_minutes_at_sample, minimum=0)

        dimension = dict(dimension or {})
        dimension_value = optional_finite("dimension_value", dimension.get("value"))
        within_tolerance = dimension.get("within_tolerance")
        if within_tolerance is not None and not isinstance(within_tolerance, bool):
            raise InvalidMeasurement("within_tolerance", within_tolerance, "ожидается True/False")

        offset = dict(offset or {})
        offset_adjustment = optional_finite("offset_adjustment", offset.get("adjustment"))
        sample_time = _parse_timestamp(timestamp)

        with self._tool_lock(tool_id):
            if record_id:
                existing = self.store.find_quality(tool_id, record_id)
                if existing is not None:
                    logger.debug(f"Повтор замера {record_id} - пропускаем")
                    return existing

            if self.store.find_cycle(tool_id, tool_cycle_id) is None \
                    and tool_cycle_id != self.open_cycle_id(tool_id):
                raise UnknownCycle(tool_id, tool_cycle_id)

            sample = QualitySample(
                id=record_id or create_record_id("quality"),
                tool_id=tool_id,
                tool_cycle_id=tool_cycle_id,
                timestamp=sample_time,
                usage_minutes_at_sample=usage_minutes,
                quality_rating=rating,
                dimension_name=_optional_text(dimension.get("name")),
                dimension_value=dimension_value,
                within_tolerance=within_tolerance,
                offset_adjustment=offset_adjustment,
                offset_axis=_optional_text(offset.get("axis")),
                note=_optional_text(note),
            )
            self.store.append_quality(sample)

        logger.info(f"Замер {tool_id}: {rating.value} на {usage_minutes} мин")
        return sample

    # ============================================================================
    # ПЕРЕСЧЁТ
    # ============================================================================

    def get_tool_life_stats(self, tool_id: str, k_override: Optional[float] = None) -> ToolLifeStats:
        """Статистика стойкости по всем журналам инструмента."""
        recipe = self.registry.require(tool_id)
        k = optional_finite("k_override", k_override, minimum=0)

        snapshot = self.store.snapshot(tool_id)
        stats = calculate_stats(
            recipe,
            snapshot.cycles,
            snapshot.quality_samples,
            snapshot.usage_samples,
            k_factor=k,
        )

        if stats.sample_count == 0:
            logger.debug(f"Нет циклов износа для {tool_id}, рекомендация по размеру: {stats.recommended_limit_min}")
        return stats

    def get_all_stats(self, k_overrides: Optional[Mapping[str, float]] = None) -> Dict[str, ToolLifeStats]:
        """Статистика по всем инструментам справочника (k можно переопределить по id)."""
        overrides = k_overrides or {}
        return {
            recipe.id: self.get_tool_life_stats(recipe.id, overrides.get(recipe.id))
            for recipe in self.registry
        }
