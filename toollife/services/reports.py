"""
Сводки для экранов и синхронизации лимитов со стойкой.
Только чтение: журналы и статистику не меняем.
"""
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional, Mapping

from toollife.domain.models import EndReason, QualityRating, ToolRecipe, ToolUsageSample
from toollife.domain.tools import ToolRegistry
from toollife.core.common import round_half_up
from toollife.services.estimation import ToolLifeService

logger = logging.getLogger(__name__)


def tools_by_machine(registry: ToolRegistry) -> List[tuple]:
    """[(machine_id, [рецепты]), ...] по возрастанию machine_id."""
    grouped: Dict[str, List[ToolRecipe]] = {}
    for recipe in registry:
        grouped.setdefault(recipe.machine_id, []).append(recipe)
    return sorted(grouped.items(), key=lambda item: item[0])


def fleet_summary(service: ToolLifeService,
                  k_overrides: Optional[Mapping[str, float]] = None) -> Dict[str, Any]:
    """Общая картина: инструменты, станки, поломки, брак, средняя рекомендация."""
    stats = service.get_all_stats(k_overrides)

    recommended = [s.recommended_limit_min for s in stats.values() if s.recommended_limit_min > 0]
    avg_recommended = round_half_up(sum(recommended) / len(recommended), 1) if recommended else 0.0

    broken = sum(1 for c in service.store.all_cycles() if c.end_reason == EndReason.BROKEN)
    scrap = sum(1 for q in service.store.all_quality() if q.quality_rating == QualityRating.SCRAP)

    return {
        "tracked_tools": len(service.registry),
        "machines": len(service.registry.machines()),
        "broken_cycles": broken,
        "scrap_parts": scrap,
        "avg_recommended_min": avg_recommended,
    }


def life_utilization_percent(recipe: ToolRecipe, recommended: float) -> float:
    """Рекомендация в процентах от каталожной стойкости (или текущего лимита)."""
    denominator = recipe.manufacturer_spec_minutes or recipe.current_limit_minutes or 1
    return min(100.0, recommended / denominator * 100)


def limit_review(service: ToolLifeService,
                 k_overrides: Optional[Mapping[str, float]] = None) -> List[Dict[str, Any]]:
    """
    Сравнение лимитов в стойке с рекомендацией.

    Returns:
        Список строк по каждому инструменту справочника
    """
    stats = service.get_all_stats(k_overrides)
    rows = []
    for recipe in service.registry:
        stat = stats[recipe.id]
        rows.append({
            "tool_id": recipe.id,
            "machine_id": recipe.machine_id,
            "tool_number": recipe.tool_number,
            "description": recipe.description,
            "material_group": recipe.material_group,
            "k_factor": stat.k_factor,
            "sample_count": stat.sample_count,
            "current_limit_min": recipe.current_limit_minutes,
            "current_warning_min": recipe.current_warning_minutes,
            "recommended_limit_min": stat.recommended_limit_min,
            "warning_min": stat.warning_min,
            "delta_min": round_half_up(stat.recommended_limit_min - recipe.current_limit_minutes, 1),
            "utilization_pct": round_half_up(life_utilization_percent(recipe, stat.recommended_limit_min), 1),
            "dimensional_limit_min": stat.dimensional_limit_min,
            "taylor_limit_min": stat.taylor_limit_min,
        })
    return rows


def tool_history(service: ToolLifeService,
                 tool_id: Optional[str] = None,
                 machine_id: Optional[str] = None,
                 limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """Лента событий (телеметрия + контроль), новые сверху."""
    registry = service.registry

    def _wanted(event_tool: str, event_machine: Optional[str] = None) -> bool:
        if tool_id is not None and event_tool != tool_id:
            return False
        if machine_id is not None:
            recipe = registry.get(event_tool)
            if recipe is not None and recipe.machine_id == machine_id:
                return True
            return event_machine == machine_id
        return True

    events = []
    for sample in service.store.all_usage():
        if not _wanted(sample.tool_id, sample.machine_id):
            continue
        events.append({
            "kind": "usage",
            "id": sample.id,
            "tool_id": sample.tool_id,
            "timestamp": sample.timestamp,
            "cutting_minutes_total": sample.cutting_minutes_total,
            "program_id": sample.program_id,
            "material": sample.material,
        })

    for sample in service.store.all_quality():
        if not _wanted(sample.tool_id):
            continue
        events.append({
            "kind": "quality",
            "id": sample.id,
            "tool_id": sample.tool_id,
            "timestamp": sample.timestamp,
            "quality_rating": sample.quality_rating.value,
            "usage_minutes_at_sample": sample.usage_minutes_at_sample,
            "dimension_name": sample.dimension_name,
            "dimension_value": sample.dimension_value,
            "within_tolerance": sample.within_tolerance,
            "offset_adjustment": sample.offset_adjustment,
            "offset_axis": sample.offset_axis,
            "note": sample.note,
        })

    events.sort(key=lambda e: e["timestamp"], reverse=True)
    return events[:limit] if limit is not None else events


def offset_history(service: ToolLifeService, tool_id: str) -> List[Dict[str, Any]]:
    """Коррекции на износ по инструменту, по времени."""
    service.registry.require(tool_id)
    samples = [q for q in service.store.quality_for(tool_id) if q.offset_adjustment is not None]
    samples.sort(key=lambda q: q.timestamp)
    return [
        {
            "id": q.id,
            "timestamp": q.timestamp,
            "usage_minutes_at_sample": q.usage_minutes_at_sample,
            "offset_adjustment": q.offset_adjustment,
            "offset_axis": q.offset_axis,
            "magnitude": abs(q.offset_adjustment),
        }
        for q in samples
    ]


def latest_usage(service: ToolLifeService, tool_id: str) -> Optional[ToolUsageSample]:
    """Последняя точка телеметрии инструмента."""
    service.registry.require(tool_id)
    samples = service.store.usage_for(tool_id)
    if not samples:
        return None
    return max(samples, key=lambda s: s.timestamp)


def export_stats_csv(service: ToolLifeService,
                     output_path: str = "data/tool_life_review.csv",
                     k_overrides: Optional[Mapping[str, float]] = None):
    """Экспорт сравнения лимитов в CSV для анализа."""
    import pandas as pd

    df = pd.DataFrame(limit_review(service, k_overrides))

    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=False, encoding='utf-8')

    logger.info(f"Данные экспортированы в {output_path}, записей: {len(df)}")
    return df
