"""
ORM модели для журналов стойкости.
Три таблицы, только INSERT: циклы, телеметрия, замеры качества.
"""
from sqlalchemy import (
    create_engine, Column, Integer, String, Float, DateTime, Text, Boolean, UniqueConstraint
)
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from typing import Dict, Any

from toollife.domain.models import (
    ToolCycle, ToolUsageSample, QualitySample, EndReason, QualityRating, utc_now
)

Base = declarative_base()


# ============================================================================
# ТАБЛИЦЫ ЖУРНАЛОВ
# ============================================================================

class ToolCycleRecord(Base):
    """Цикл инструмента: от установки до снятия."""
    __tablename__ = 'tool_cycles'
    __table_args__ = (
        UniqueConstraint('tool_id', 'cycle_id', name='uq_cycle_tool_cycle'),
        UniqueConstraint('tool_id', 'record_id', name='uq_cycle_tool_record'),
    )

    seq = Column(Integer, primary_key=True, autoincrement=True)  # порядок записи
    cycle_id = Column(String, nullable=False)  # TOOL-C3
    record_id = Column(String)  # ID от клиента; NULL не конфликтует
    tool_id = Column(String, nullable=False, index=True)
    cycle_index = Column(Integer, nullable=False)

    start_minutes_total = Column(Float, nullable=False)
    end_minutes_total = Column(Float, nullable=False)
    life_minutes = Column(Float, nullable=False)  # для отчётов; при чтении пересчитывается
    end_reason = Column(String, nullable=False)  # WORN, BROKEN, ...

    program_id = Column(String)
    material = Column(String)
    notes = Column(Text)
    timestamp = Column(DateTime, default=utc_now)

    def to_domain(self) -> ToolCycle:
        return ToolCycle(
            id=self.cycle_id,
            tool_id=self.tool_id,
            cycle_index=self.cycle_index,
            start_minutes_total=self.start_minutes_total,
            end_minutes_total=self.end_minutes_total,
            end_reason=EndReason(self.end_reason),
            program_id=self.program_id,
            material=self.material,
            notes=self.notes,
            timestamp=self.timestamp,
            record_id=self.record_id,
        )

    @classmethod
    def from_domain(cls, cycle: ToolCycle) -> "ToolCycleRecord":
        return cls(
            cycle_id=cycle.id,
            record_id=cycle.record_id,
            tool_id=cycle.tool_id,
            cycle_index=cycle.cycle_index,
            start_minutes_total=cycle.start_minutes_total,
            end_minutes_total=cycle.end_minutes_total,
            life_minutes=cycle.life_minutes,
            end_reason=cycle.end_reason.value,
            program_id=cycle.program_id,
            material=cycle.material,
            notes=cycle.notes,
            timestamp=cycle.timestamp or utc_now(),
        )


class ToolUsageRecord(Base):
    """Точка телеметрии станка."""
    __tablename__ = 'tool_usage_samples'
    __table_args__ = (UniqueConstraint('tool_id', 'record_id', name='uq_usage_tool_record'),)

    seq = Column(Integer, primary_key=True, autoincrement=True)
    record_id = Column(String, nullable=False)
    tool_id = Column(String, nullable=False, index=True)
    machine_id = Column(String, nullable=False, index=True)
    timestamp = Column(DateTime, default=utc_now, index=True)

    cutting_minutes_total = Column(Float, nullable=False)
    surface_speed_sfm = Column(Float)
    spindle_rpm = Column(Float)
    feed_per_tooth = Column(Float)

    program_id = Column(String)
    material = Column(String)

    def to_domain(self) -> ToolUsageSample:
        return ToolUsageSample(
            id=self.record_id,
            tool_id=self.tool_id,
            machine_id=self.machine_id,
            timestamp=self.timestamp,
            cutting_minutes_total=self.cutting_minutes_total,
            surface_speed_sfm=self.surface_speed_sfm,
            program_id=self.program_id,
            material=self.material,
            spindle_rpm=self.spindle_rpm,
            feed_per_tooth=self.feed_per_tooth,
        )

    @classmethod
    def from_domain(cls, sample: ToolUsageSample) -> "ToolUsageRecord":
        return cls(
            record_id=sample.id,
            tool_id=sample.tool_id,
            machine_id=sample.machine_id,
            timestamp=sample.timestamp,
            cutting_minutes_total=sample.cutting_minutes_total,
            surface_speed_sfm=sample.surface_speed_sfm,
            spindle_rpm=sample.spindle_rpm,
            feed_per_tooth=sample.feed_per_tooth,
            program_id=sample.program_id,
            material=sample.material,
        )


class QualitySampleRecord(Base):
    """Замер качества детали."""
    __tablename__ = 'quality_samples'
    __table_args__ = (UniqueConstraint('tool_id', 'record_id', name='uq_quality_tool_record'),)

    seq = Column(Integer, primary_key=True, autoincrement=True)
    record_id = Column(String, nullable=False)
    tool_id = Column(String, nullable=False, index=True)
    tool_cycle_id = Column(String, nullable=False)
    timestamp = Column(DateTime, default=utc_now, index=True)

    usage_minutes_at_sample = Column(Float, nullable=False)
    quality_rating = Column(String, nullable=False)  # OK, WARN, SCRAP

    # Размер
    dimension_name = Column(String)
    dimension_value = Column(Float)
    within_tolerance = Column(Boolean)

    # Коррекция на износ
    offset_adjustment = Column(Float)
    offset_axis = Column(String)

    note = Column(Text)

    def to_domain(self) -> QualitySample:
        return QualitySample(
            id=self.record_id,
            tool_id=self.tool_id,
            tool_cycle_id=self.tool_cycle_id,
            timestamp=self.timestamp,
            usage_minutes_at_sample=self.usage_minutes_at_sample,
            quality_rating=QualityRating(self.quality_rating),
            dimension_name=self.dimension_name,
            dimension_value=self.dimension_value,
            within_tolerance=self.within_tolerance,
            offset_adjustment=self.offset_adjustment,
            offset_axis=self.offset_axis,
            note=self.note,
        )

    @classmethod
    def from_domain(cls, sample: QualitySample) -> "QualitySampleRecord":
        return cls(
            record_id=sample.id,
            tool_id=sample.tool_id,
            tool_cycle_id=sample.tool_cycle_id,
            timestamp=sample.timestamp,
            usage_minutes_at_sample=sample.usage_minutes_at_sample,
            quality_rating=sample.quality_rating.value,
            dimension_name=sample.dimension_name,
            dimension_value=sample.dimension_value,
            within_tolerance=sample.within_tolerance,
            offset_adjustment=sample.offset_adjustment,
            offset_axis=sample.offset_axis,
            note=sample.note,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Преобразовать в словарь."""
        return {
            'id': self.record_id,
            'tool_id': self.tool_id,
            'tool_cycle_id': self.tool_cycle_id,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'usage_minutes_at_sample': self.usage_minutes_at_sample,
            'quality_rating': self.quality_rating,
            'dimension_name': self.dimension_name,
            'dimension_value': self.dimension_value,
            'within_tolerance': self.within_tolerance,
            'offset_adjustment': self.offset_adjustment,
            'offset_axis': self.offset_axis,
            'note': self.note,
        }


# ============================================================================
# ИНИЦИАЛИЗАЦИЯ БАЗЫ ДАННЫХ
# ============================================================================

def create_db_engine(db_url: str = "sqlite:///storage/toollife.db"):
    """Движок SQLAlchemy; для sqlite в памяти - одно общее соединение."""
    if db_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            db_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if db_url.startswith("sqlite"):
        return create_engine(db_url, connect_args={"check_same_thread": False})
    return create_engine(db_url)


def init_orm_database(db_url: str = "sqlite:///storage/toollife.db"):
    """Инициализация ORM. Создаёт таблицы и возвращает фабрику сессий."""
    engine = create_db_engine(db_url)
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, expire_on_commit=False)
    return Session
