"""
Справочник инструментов (рецепты).
Загружается из YAML, во время работы только читается.
"""
import logging
from pathlib import Path
from typing import Dict, Any, Iterable, Iterator, List, Optional

import yaml

from toollife.domain.models import ToolRecipe
from toollife.core.validator import RecipeError, UnknownTool, is_finite_number

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("id", "machine_id", "tool_number", "current_limit_minutes", "current_warning_minutes")
NUMERIC_FIELDS = (
    "k_factor", "current_limit_minutes", "current_warning_minutes",
    "manufacturer_spec_minutes", "taylor_c", "taylor_n", "nominal_speed_sfm",
)


def recipe_from_dict(data: Dict[str, Any]) -> ToolRecipe:
    """Собрать ToolRecipe из словаря с проверкой инвариантов."""
    missing = [name for name in REQUIRED_FIELDS if data.get(name) in (None, "")]
    if missing:
        raise RecipeError(f"В рецепте {data.get('id', '?')} нет полей: {', '.join(missing)}")

    tool_id = str(data["id"])
    for name in NUMERIC_FIELDS:
        value = data.get(name)
        if value is not None and not is_finite_number(value):
            raise RecipeError(f"Рецепт {tool_id}: поле {name}={value!r} должно быть числом")

    k_factor = float(data.get("k_factor", 0.0))
    if k_factor < 0:
        raise RecipeError(f"Рецепт {tool_id}: k_factor не может быть отрицательным ({k_factor})")

    taylor_c = data.get("taylor_c")
    taylor_n = data.get("taylor_n")
    if (taylor_c is None) != (taylor_n is None):
        raise RecipeError(f"Рецепт {tool_id}: taylor_c и taylor_n задаются только вместе")

    def _opt(name: str) -> Optional[float]:
        value = data.get(name)
        return float(value) if value is not None else None

    return ToolRecipe(
        id=tool_id,
        machine_id=str(data["machine_id"]),
        tool_number=str(data["tool_number"]),
        description=data.get("description", ""),
        material_group=data.get("material_group", ""),
        operation_code=data.get("operation_code", ""),
        k_factor=k_factor,
        current_limit_minutes=float(data["current_limit_minutes"]),
        current_warning_minutes=float(data["current_warning_minutes"]),
        manufacturer_spec_minutes=_opt("manufacturer_spec_minutes"),
        taylor_c=_opt("taylor_c"),
        taylor_n=_opt("taylor_n"),
        nominal_speed_sfm=_opt("nominal_speed_sfm"),
        machine_name=data.get("machine_name"),
        last_updated=str(data["last_updated"]) if data.get("last_updated") else None,
    )


class ToolRegistry:
    """Справочник рецептов инструментов по id."""

    def __init__(self, recipes: Iterable[ToolRecipe]):
        self._recipes: Dict[str, ToolRecipe] = {}
        for recipe in recipes:
            if recipe.id in self._recipes:
                raise RecipeError(f"Повторяющийся id инструмента: {recipe.id}")
            self._recipes[recipe.id] = recipe

    @classmethod
    def from_dicts(cls, items: Iterable[Dict[str, Any]]) -> "ToolRegistry":
        return cls(recipe_from_dict(item) for item in items)

    @classmethod
    def from_yaml(cls, path: str) -> "ToolRegistry":
        """Загружает справочник из YAML файла (ключ tools: [...])."""
        recipes_file = Path(path)
        if not recipes_file.exists():
            raise RecipeError(f"Файл справочника не найден: {recipes_file}")

        with open(recipes_file, 'r', encoding='utf-8') as f:
            try:
                content = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise RecipeError(f"Ошибка разбора {recipes_file}: {e}") from e

        items = content.get("tools", []) if isinstance(content, dict) else content
        if not isinstance(items, list):
            raise RecipeError(f"Ожидался список инструментов в {recipes_file}")

        registry = cls.from_dicts(items)
        logger.info(f"Загружено рецептов: {len(registry)} из {recipes_file}")
        return registry

    def __len__(self) -> int:
        return len(self._recipes)

    def __iter__(self) -> Iterator[ToolRecipe]:
        return iter(self._recipes.values())

    def __contains__(self, tool_id: str) -> bool:
        return tool_id in self._recipes

    def get(self, tool_id: str) -> Optional[ToolRecipe]:
        return self._recipes.get(tool_id)

    def require(self, tool_id: str) -> ToolRecipe:
        """Рецепт по id или UnknownTool."""
        recipe = self._recipes.get(tool_id)
        if recipe is None:
            raise UnknownTool(tool_id)
        return recipe

    def machines(self) -> List[str]:
        return sorted({recipe.machine_id for recipe in self._recipes.values()})

    def for_machine(self, machine_id: str) -> List[ToolRecipe]:
        return [recipe for recipe in self._recipes.values() if recipe.machine_id == machine_id]
