"""
Хранилище журналов в базе данных (SQLAlchemy).
"""
import logging
from pathlib import Path
from typing import Optional, Tuple

from toollife.domain.models import ToolCycle, ToolUsageSample, QualitySample
from toollife.storage.base import BaseLogStore
from toollife.storage.models import (
    ToolCycleRecord, ToolUsageRecord, QualitySampleRecord, init_orm_database
)

logger = logging.getLogger(__name__)


def _ensure_sqlite_dir(db_url: str) -> None:
    # sqlite:///storage/toollife.db -> создаём storage/
    prefix = "sqlite:///"
    if db_url.startswith(prefix) and db_url != "sqlite:///:memory:":
        Path(db_url[len(prefix):]).parent.mkdir(parents=True, exist_ok=True)


class SqlLogStore(BaseLogStore):
    """Журналы в таблицах tool_cycles, tool_usage_samples, quality_samples."""

    def __init__(self, db_url: str = "sqlite:///storage/toollife.db", session_factory=None):
        if session_factory is None:
            _ensure_sqlite_dir(db_url)
            session_factory = init_orm_database(db_url)
        self.Session = session_factory
        self.db_url = db_url

    # ---- чтение ----

    def _select(self, model, tool_id: Optional[str] = None):
        with self.Session() as session:
            query = session.query(model)
            if tool_id is not None:
                query = query.filter_by(tool_id=tool_id)
            return tuple(row.to_domain() for row in query.order_by(model.seq).all())

    def cycles_for(self, tool_id: str) -> Tuple[ToolCycle, ...]:
        return self._select(ToolCycleRecord, tool_id)

    def usage_for(self, tool_id: str) -> Tuple[ToolUsageSample, ...]:
        return self._select(ToolUsageRecord, tool_id)

    def quality_for(self, tool_id: str) -> Tuple[QualitySample, ...]:
        return self._select(QualitySampleRecord, tool_id)

    def all_cycles(self) -> Tuple[ToolCycle, ...]:
        return self._select(ToolCycleRecord)

    def all_usage(self) -> Tuple[ToolUsageSample, ...]:
        return self._select(ToolUsageRecord)

    def all_quality(self) -> Tuple[QualitySample, ...]:
        return self._select(QualitySampleRecord)

    # ---- запись ----

    def _insert(self, *records) -> None:
        """Одна транзакция: всё или ничего."""
        with self.Session() as session:
            try:
                session.add_all(records)
                session.commit()
            except Exception as e:
                session.rollback()
                logger.error(f"Ошибка записи в журнал: {e}", exc_info=True)
                raise

    def append_cycle(self, cycle: ToolCycle, usage: Optional[ToolUsageSample] = None) -> None:
        records = [ToolCycleRecord.from_domain(cycle)]
        if usage is not None:
            records.append(ToolUsageRecord.from_domain(usage))
        self._insert(*records)

    def append_usage(self, sample: ToolUsageSample) -> None:
        self._insert(ToolUsageRecord.from_domain(sample))

    def append_quality(self, sample: QualitySample) -> None:
        self._insert(QualitySampleRecord.from_domain(sample))
