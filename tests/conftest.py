"""Общие фикстуры для тестов стойкости."""
from datetime import datetime, timedelta

import pytest

from toollife.domain.models import QualitySample, QualityRating, ToolCycle, EndReason
from toollife.domain.tools import ToolRegistry
from toollife.storage.memory import MemoryLogStore
from toollife.services.estimation import ToolLifeService

BASE_TIME = datetime(2024, 9, 1, 8, 0, 0)

RECIPES = [
    {
        "id": "M1-T01",
        "machine_id": "M1",
        "tool_number": "T01",
        "description": "End mill",
        "material_group": "Steel",
        "operation_code": "OP10",
        "k_factor": 2.0,
        "manufacturer_spec_minutes": 200,
        "current_limit_minutes": 100,
        "current_warning_minutes": 90,
    },
    {
        "id": "M1-T02",
        "machine_id": "M1",
        "tool_number": "T02",
        "description": "Drill",
        "material_group": "Steel",
        "operation_code": "OP20",
        "k_factor": 1.0,
        "current_limit_minutes": 120,
        "current_warning_minutes": 108,
        "taylor_c": 1000,
        "taylor_n": 0.25,
        "nominal_speed_sfm": 400,
    },
    {
        "id": "M2-T05",
        "machine_id": "M2",
        "tool_number": "T05",
        "description": "Boring bar",
        "material_group": "Aluminum",
        "operation_code": "OP30",
        "k_factor": 1.5,
        "current_limit_minutes": 60,
        "current_warning_minutes": 54,
    },
]


@pytest.fixture
def registry():
    return ToolRegistry.from_dicts(RECIPES)


@pytest.fixture
def store():
    return MemoryLogStore()


@pytest.fixture
def service(registry, store):
    return ToolLifeService(registry, store)


def make_cycle(index, life, reason=EndReason.WORN, tool_id="M1-T01", start=None):
    start = float(start) if start is not None else float(index * 1000)
    return ToolCycle(
        id=f"{tool_id}-C{index}",
        tool_id=tool_id,
        cycle_index=index,
        start_minutes_total=start,
        end_minutes_total=start + life,
        end_reason=reason,
    )


def make_quality(sample_id, usage, rating=QualityRating.OK, value=None,
                 within_tolerance=None, offset=None, tool_id="M1-T01"):
    return QualitySample(
        id=sample_id,
        tool_id=tool_id,
        tool_cycle_id=f"{tool_id}-C1",
        timestamp=BASE_TIME + timedelta(minutes=usage),
        usage_minutes_at_sample=usage,
        quality_rating=rating,
        dimension_value=value,
        within_tolerance=within_tolerance,
        offset_adjustment=offset,
    )
