"""
Хранилище журналов в памяти.
Для тестов и для работы без базы данных.
"""
import threading
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from toollife.domain.models import ToolCycle, ToolUsageSample, QualitySample
from toollife.storage.base import BaseLogStore


class MemoryLogStore(BaseLogStore):
    """Журналы в словарях по tool_id."""

    def __init__(self):
        self._cycles: Dict[str, List[ToolCycle]] = defaultdict(list)
        self._usage: Dict[str, List[ToolUsageSample]] = defaultdict(list)
        self._quality: Dict[str, List[QualitySample]] = defaultdict(list)
        self._lock = threading.Lock()

    def cycles_for(self, tool_id: str) -> Tuple[ToolCycle, ...]:
        with self._lock:
            return tuple(self._cycles.get(tool_id, ()))

    def usage_for(self, tool_id: str) -> Tuple[ToolUsageSample, ...]:
        with self._lock:
            return tuple(self._usage.get(tool_id, ()))

    def quality_for(self, tool_id: str) -> Tuple[QualitySample, ...]:
        with self._lock:
            return tuple(self._quality.get(tool_id, ()))

    def all_cycles(self) -> Tuple[ToolCycle, ...]:
        with self._lock:
            return tuple(c for items in self._cycles.values() for c in items)

    def all_usage(self) -> Tuple[ToolUsageSample, ...]:
        with self._lock:
            return tuple(s for items in self._usage.values() for s in items)

    def all_quality(self) -> Tuple[QualitySample, ...]:
        with self._lock:
            return tuple(s for items in self._quality.values() for s in items)

    def append_cycle(self, cycle: ToolCycle, usage: Optional[ToolUsageSample] = None) -> None:
        with self._lock:
            self._cycles[cycle.tool_id].append(cycle)
            if usage is not None:
                self._usage[usage.tool_id].append(usage)

    def append_usage(self, sample: ToolUsageSample) -> None:
        with self._lock:
            self._usage[sample.tool_id].append(sample)

    def append_quality(self, sample: QualitySample) -> None:
        with self._lock:
            self._quality[sample.tool_id].append(sample)
