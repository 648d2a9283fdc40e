#!/usr/bin/env python3
"""
Точка входа: просмотр рекомендаций по стойкости из командной строки.

    python -m toollife.main stats [TOOL_ID]
    python -m toollife.main review
    python -m toollife.main summary
    python -m toollife.main export PATH
"""
import logging
import sys
from typing import List, Optional

from toollife.config import Settings, get_settings
from toollife.domain.tools import ToolRegistry
from toollife.core.validator import ToolLifeError
from toollife.storage.db import SqlLogStore
from toollife.services.estimation import ToolLifeService
from toollife.services.reports import fleet_summary, limit_review, export_stats_csv

logger = logging.getLogger(__name__)

USAGE = __doc__


def setup_logging(settings: Settings) -> None:
    """Логи в консоль и в файл logs/toollife.log."""
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(settings.log_dir / "toollife.log", encoding='utf-8')
        ]
    )


def build_service(settings: Settings) -> ToolLifeService:
    registry = ToolRegistry.from_yaml(settings.recipes_file)
    store = SqlLogStore(settings.db_url)
    return ToolLifeService(registry, store)


def _fmt(value: Optional[float]) -> str:
    return "—" if value is None else f"{value} мин"


def print_stats(service: ToolLifeService, tool_id: Optional[str] = None) -> None:
    recipes = [service.registry.require(tool_id)] if tool_id else list(service.registry)
    for recipe in recipes:
        stat = service.get_tool_life_stats(recipe.id)
        print("=" * 60)
        print(f"{recipe.tool_number} • {recipe.description} ({recipe.display_machine})")
        print("-" * 60)
        print(f"Циклов износа:     {stat.sample_count}")
        print(f"Среднее / sigma:   {stat.mean_life_minutes} / {stat.sigma_minutes}")
        print(f"mu - k*sigma:      {_fmt(stat.stat_limit_min)} (k={stat.k_factor})")
        print(f"Надёжность (95%):  {_fmt(stat.reliability_limit_min)}")
        print(f"По размеру:        {_fmt(stat.dimensional_limit_min)}")
        print(f"По Тейлору:        {_fmt(stat.taylor_limit_min)}")
        print(f"✅ Рекомендация:   {_fmt(stat.recommended_limit_min)}")
        print(f"⚠️  Предупреждение: {_fmt(stat.warning_min)}")


def print_review(service: ToolLifeService) -> None:
    print("=" * 60)
    print("Сравнение лимитов в стойке с рекомендацией")
    print("=" * 60)
    for row in limit_review(service):
        sign = "+" if row["delta_min"] > 0 else ""
        print(f"{row['machine_id']:<10} {row['tool_number']:<6} "
              f"{row['current_limit_min']:>7} -> {row['recommended_limit_min']:>7} "
              f"({sign}{row['delta_min']} мин, {row['utilization_pct']}%)")


def print_summary(service: ToolLifeService) -> None:
    summary = fleet_summary(service)
    print("=" * 60)
    print(f"Инструментов:           {summary['tracked_tools']}")
    print(f"Станков:                {summary['machines']}")
    print(f"Поломок:                {summary['broken_cycles']}")
    print(f"Бракованных деталей:    {summary['scrap_parts']}")
    print(f"Средняя рекомендация:   {summary['avg_recommended_min']} мин")
    print("=" * 60)


def main(argv: Optional[List[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args or args[0] in ("-h", "--help"):
        print(USAGE)
        return 0

    settings = get_settings()
    setup_logging(settings)

    try:
        service = build_service(settings)
        command = args[0]
        if command == "stats":
            print_stats(service, args[1] if len(args) > 1 else None)
        elif command == "review":
            print_review(service)
        elif command == "summary":
            print_summary(service)
        elif command == "export" and len(args) > 1:
            export_stats_csv(service, args[1])
        else:
            print(USAGE)
            return 2
    except ToolLifeError as e:
        logger.error(f"❌ {e.message}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
