from datetime import datetime

import pytest
from sqlalchemy.exc import IntegrityError

from toollife.domain.models import ToolUsageSample, QualityRating
from toollife.services.estimation import ToolLifeService
from toollife.storage.db import SqlLogStore
from toollife.storage.models import QualitySampleRecord

from conftest import make_cycle


@pytest.fixture
def sql_store(tmp_path):
    return SqlLogStore(f"sqlite:///{tmp_path}/logs/toollife.db")


@pytest.fixture
def sql_service(registry, sql_store):
    return ToolLifeService(registry, sql_store)


def test_creates_database_directory(tmp_path, sql_store):
    assert (tmp_path / "logs").is_dir()


def test_in_memory_database():
    store = SqlLogStore("sqlite:///:memory:")
    store.append_cycle(make_cycle(1, 100))

    assert len(store.cycles_for("M1-T01")) == 1


def test_cycle_round_trip(sql_service, sql_store):
    written = sql_service.append_tool_cycle(
        "M1-T01", 120, "WORN",
        {"program_id": "O1001", "material": "4140", "notes": "flank wear",
         "timestamp": "2024-09-01T10:00:00"}
    )

    [stored] = sql_store.cycles_for("M1-T01")

    assert stored == written
    assert stored.timestamp == datetime(2024, 9, 1, 10, 0, 0)
    [usage] = sql_store.usage_for("M1-T01")
    assert usage.id == "M1-T01-C1-usage"
    assert usage.cutting_minutes_total == 120


def test_records_keep_insertion_order(sql_service, sql_store):
    for total in (50, 120, 200):
        sql_service.append_tool_cycle("M1-T01", total, "WORN")
    sql_service.append_tool_cycle("M2-T05", 30, "BROKEN")

    assert [c.cycle_index for c in sql_store.cycles_for("M1-T01")] == [1, 2, 3]
    assert [c.tool_id for c in sql_store.all_cycles()] == ["M1-T01"] * 3 + ["M2-T05"]


def test_stats_match_memory_store(sql_service, service):
    for svc in (sql_service, service):
        for total in (120, 260, 370):
            svc.append_tool_cycle("M1-T01", total, "WORN")
        svc.append_quality_sample(
            "M1-T01", "M1-T01-C4", 20, "WARN",
            dimension={"value": 50.01, "within_tolerance": False},
            timestamp=datetime(2024, 9, 2),
        )

    assert sql_service.get_tool_life_stats("M1-T01") == service.get_tool_life_stats("M1-T01")


def test_quality_sample_round_trip(sql_service, sql_store):
    sql_service.append_tool_cycle("M1-T01", 100, "WORN")
    written = sql_service.append_quality_sample(
        "M1-T01", "M1-T01-C1", 90, QualityRating.SCRAP,
        dimension={"name": "Bore", "value": 25.03, "within_tolerance": False},
        offset={"adjustment": 0.004, "axis": "Z"},
        record_id="qc-77",
    )

    assert sql_store.quality_for("M1-T01") == (written,)
    assert sql_store.find_quality("M1-T01", "qc-77") == written

    with sql_store.Session() as session:
        row = session.query(QualitySampleRecord).one()
        data = row.to_dict()
    assert data["id"] == "qc-77"
    assert data["quality_rating"] == "SCRAP"
    assert data["offset_axis"] == "Z"


def test_retry_is_not_duplicated(sql_service, sql_store):
    sql_service.append_usage_sample("M1-T02", "M1", 10, 400, record_id="tel-1")
    sql_service.append_usage_sample("M1-T02", "M1", 10, 400, record_id="tel-1")

    assert len(sql_store.usage_for("M1-T02")) == 1


def test_cycle_and_usage_written_together(sql_store):
    sql_store.append_usage(ToolUsageSample(
        id="M1-T01-C1-usage",
        tool_id="M1-T01",
        machine_id="M1",
        timestamp=datetime(2024, 9, 1),
        cutting_minutes_total=5.0,
    ))
    cycle = make_cycle(1, 100, start=0)
    usage = ToolUsageSample(
        id="M1-T01-C1-usage",
        tool_id="M1-T01",
        machine_id="M1",
        timestamp=datetime(2024, 9, 1),
        cutting_minutes_total=100.0,
    )

    with pytest.raises(IntegrityError):
        sql_store.append_cycle(cycle, usage)

    assert sql_store.cycles_for("M1-T01") == ()
    assert len(sql_store.usage_for("M1-T01")) == 1


def test_record_id_shaped_like_cycle_id(sql_service, sql_store):
    sql_service.append_tool_cycle("M1-T01", 100, "WORN", record_id="M1-T01-C2")
    sql_service.append_tool_cycle("M1-T01", 220, "WORN")
    sql_service.append_tool_cycle("M1-T01", 100, "WORN", record_id="M1-T01-C2")

    cycles = sql_store.cycles_for("M1-T01")
    assert [c.id for c in cycles] == ["M1-T01-C1", "M1-T01-C2"]
    assert [c.record_id for c in cycles] == ["M1-T01-C2", None]


def test_quality_on_open_cycle_links_after_close(sql_service, sql_store):
    open_id = sql_service.open_cycle_id("M1-T01")
    sql_service.append_quality_sample("M1-T01", open_id, 30, "OK")

    sql_service.append_tool_cycle("M1-T01", 80, "WORN", record_id="chg-1")

    [sample] = sql_store.quality_for("M1-T01")
    assert sql_store.find_cycle("M1-T01", sample.tool_cycle_id).record_id == "chg-1"


def test_default_timestamp_is_naive_utc(sql_store):
    sql_store.append_cycle(make_cycle(1, 100))

    [stored] = sql_store.cycles_for("M1-T01")
    assert stored.timestamp is not None
    assert stored.timestamp.tzinfo is None
