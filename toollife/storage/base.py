"""
Интерфейс журналов стойкости.
Журналы только дополняются: удаления и правки нет.
"""
from dataclasses import dataclass
from typing import Optional, Tuple

from toollife.domain.models import ToolCycle, ToolUsageSample, QualitySample


@dataclass(frozen=True)
class ToolSnapshot:
    """Неизменяемый срез журналов одного инструмента для пересчёта."""
    tool_id: str
    cycles: Tuple[ToolCycle, ...]
    usage_samples: Tuple[ToolUsageSample, ...]
    quality_samples: Tuple[QualitySample, ...]


class BaseLogStore:
    """Базовое хранилище трёх журналов."""

    # ---- чтение ----

    def cycles_for(self, tool_id: str) -> Tuple[ToolCycle, ...]:
        raise NotImplementedError

    def usage_for(self, tool_id: str) -> Tuple[ToolUsageSample, ...]:
        raise NotImplementedError

    def quality_for(self, tool_id: str) -> Tuple[QualitySample, ...]:
        raise NotImplementedError

    def all_cycles(self) -> Tuple[ToolCycle, ...]:
        raise NotImplementedError

    def all_usage(self) -> Tuple[ToolUsageSample, ...]:
        raise NotImplementedError

    def all_quality(self) -> Tuple[QualitySample, ...]:
        raise NotImplementedError

    # ---- запись ----

    def append_cycle(self, cycle: ToolCycle, usage: Optional[ToolUsageSample] = None) -> None:
        """Добавить цикл (и парную точку телеметрии) одной операцией."""
        raise NotImplementedError

    def append_usage(self, sample: ToolUsageSample) -> None:
        raise NotImplementedError

    def append_quality(self, sample: QualitySample) -> None:
        raise NotImplementedError

    # ---- общие помощники ----

    def last_cycle(self, tool_id: str) -> Optional[ToolCycle]:
        cycles = self.cycles_for(tool_id)
        if not cycles:
            return None
        return max(cycles, key=lambda c: c.cycle_index)

    def find_cycle(self, tool_id: str, cycle_id: str) -> Optional[ToolCycle]:
        for cycle in self.cycles_for(tool_id):
            if cycle.id == cycle_id:
                return cycle
        return None

    def find_cycle_by_record(self, tool_id: str, record_id: str) -> Optional[ToolCycle]:
        """Цикл, записанный с этим клиентским record_id."""
        for cycle in self.cycles_for(tool_id):
            if cycle.record_id == record_id:
                return cycle
        return None

    def find_usage(self, tool_id: str, sample_id: str) -> Optional[ToolUsageSample]:
        for sample in self.usage_for(tool_id):
            if sample.id == sample_id:
                return sample
        return None

    def find_quality(self, tool_id: str, sample_id: str) -> Optional[QualitySample]:
        for sample in self.quality_for(tool_id):
            if sample.id == sample_id:
                return sample
        return None

    def snapshot(self, tool_id: str) -> ToolSnapshot:
        return ToolSnapshot(
            tool_id=tool_id,
            cycles=tuple(self.cycles_for(tool_id)),
            usage_samples=tuple(self.usage_for(tool_id)),
            quality_samples=tuple(self.quality_for(tool_id)),
        )
