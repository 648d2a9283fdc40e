import math
import threading
from datetime import datetime

import pytest

from toollife.core.validator import InvalidMeasurement, UnknownCycle, UnknownTool, ErrorCode
from toollife.domain.models import EndReason, QualityRating


def test_append_tool_cycle_derives_start_and_index(service, store):
    first = service.append_tool_cycle("M1-T01", 120, "WORN")
    second = service.append_tool_cycle("M1-T01", 260, EndReason.SCRAP, {"program_id": "O1001"})

    assert first.cycle_index == 1
    assert first.start_minutes_total == 0
    assert first.life_minutes == 120
    assert first.id == "M1-T01-C1"
    assert second.cycle_index == 2
    assert second.start_minutes_total == 120
    assert second.life_minutes == 140
    assert second.program_id == "O1001"

    usage = store.usage_for("M1-T01")
    assert [u.cutting_minutes_total for u in usage] == [120, 260]
    assert usage[0].machine_id == "M1"


def test_append_tool_cycle_unknown_tool(service, store):
    with pytest.raises(UnknownTool) as exc:
        service.append_tool_cycle("NOPE", 10, "WORN")

    assert exc.value.code == ErrorCode.UNKNOWN_TOOL
    assert store.all_cycles() == ()


def test_nan_minutes_rejected_without_append(service, store):
    with pytest.raises(InvalidMeasurement):
        service.append_tool_cycle("M1-T01", math.nan, "WORN")

    assert store.cycles_for("M1-T01") == ()
    assert store.usage_for("M1-T01") == ()


@pytest.mark.parametrize("value", [math.inf, -1, "abc", None])
def test_bad_minutes_rejected(service, store, value):
    with pytest.raises(InvalidMeasurement):
        service.append_tool_cycle("M1-T01", value, "WORN")

    assert store.all_cycles() == ()


def test_minutes_below_previous_end_rejected(service, store):
    service.append_tool_cycle("M1-T01", 200, "WORN")

    with pytest.raises(InvalidMeasurement):
        service.append_tool_cycle("M1-T01", 150, "WORN")

    assert len(store.cycles_for("M1-T01")) == 1
    assert len(store.usage_for("M1-T01")) == 1


def test_unknown_reason_rejected(service):
    with pytest.raises(InvalidMeasurement):
        service.append_tool_cycle("M1-T01", 100, "MELTED")


def test_retry_with_same_record_id_is_deduplicated(service, store):
    first = service.append_tool_cycle("M1-T01", 100, "WORN", record_id="chg-1")
    again = service.append_tool_cycle("M1-T01", 100, "WORN", record_id="chg-1")

    assert again == first
    assert len(store.cycles_for("M1-T01")) == 1


def test_record_id_does_not_replace_cycle_id(service, store):
    first = service.append_tool_cycle("M1-T01", 100, "WORN", record_id="M1-T01-C2")
    second = service.append_tool_cycle("M1-T01", 220, "WORN")

    assert first.id == "M1-T01-C1"
    assert first.record_id == "M1-T01-C2"
    assert second.id == "M1-T01-C2"
    assert second.record_id is None
    assert [c.id for c in store.cycles_for("M1-T01")] == ["M1-T01-C1", "M1-T01-C2"]


def test_quality_on_open_cycle_survives_cycle_close(service, store):
    open_id = service.open_cycle_id("M1-T01")
    sample = service.append_quality_sample("M1-T01", open_id, 40, "WARN", dimension={"value": 12.01})

    cycle = service.append_tool_cycle("M1-T01", 90, "WORN", record_id="chg-1")

    assert cycle.id == open_id
    assert store.find_cycle("M1-T01", sample.tool_cycle_id) == cycle
    assert store.find_cycle_by_record("M1-T01", "chg-1") == cycle


def test_aware_timestamp_stored_as_utc(service):
    sample = service.append_usage_sample(
        "M1-T01", None, 10, context={"timestamp": "2024-09-01T10:00:00+03:00"}
    )
    default = service.append_usage_sample("M1-T01", None, 20)

    assert sample.timestamp == datetime(2024, 9, 1, 7, 0, 0)
    assert sample.timestamp.tzinfo is None
    assert default.timestamp.tzinfo is None


def test_bad_timestamp_rejected(service, store):
    with pytest.raises(InvalidMeasurement):
        service.append_usage_sample("M1-T01", None, 10, context={"timestamp": "yesterday"})

    assert store.usage_for("M1-T01") == ()


def test_append_usage_sample_defaults_machine(service):
    sample = service.append_usage_sample(
        "M1-T02", None, 55.5, 420,
        {"program_id": "O2000", "spindle_rpm": 3200, "material": "4140"}
    )

    assert sample.machine_id == "M1"
    assert sample.surface_speed_sfm == 420
    assert sample.spindle_rpm == 3200
    assert sample.material == "4140"


def test_append_usage_sample_rejects_negative_speed(service, store):
    with pytest.raises(InvalidMeasurement):
        service.append_usage_sample("M1-T02", "M1", 10, -5)

    assert store.usage_for("M1-T02") == ()


def test_append_quality_sample(service, store):
    cycle = service.append_tool_cycle("M1-T01", 100, "WORN")

    sample = service.append_quality_sample(
        "M1-T01", cycle.id, 80, "warn",
        dimension={"name": "Bore", "value": 25.012, "within_tolerance": False},
        offset={"adjustment": -0.002, "axis": "X"},
        note="edge wear",
    )

    assert sample.quality_rating == QualityRating.WARN
    assert sample.dimension_value == 25.012
    assert sample.within_tolerance is False
    assert sample.offset_adjustment == -0.002
    assert sample.offset_axis == "X"
    assert store.quality_for("M1-T01") == (sample,)


def test_quality_sample_may_reference_open_cycle(service):
    assert service.open_cycle_id("M1-T01") == "M1-T01-C1"

    sample = service.append_quality_sample("M1-T01", "M1-T01-C1", 30, "OK")

    assert sample.tool_cycle_id == "M1-T01-C1"


def test_quality_sample_unknown_cycle(service, store):
    with pytest.raises(UnknownCycle):
        service.append_quality_sample("M1-T01", "M1-T01-C7", 30, "OK")

    with pytest.raises(UnknownTool):
        service.append_quality_sample("NOPE", "NOPE-C1", 30, "OK")

    assert store.all_quality() == ()


def test_quality_sample_rejects_nan_dimension(service, store):
    with pytest.raises(InvalidMeasurement):
        service.append_quality_sample("M1-T01", "M1-T01-C1", 30, "OK", dimension={"value": math.nan})

    with pytest.raises(InvalidMeasurement):
        service.append_quality_sample("M1-T01", "M1-T01-C1", 30, "OK", offset={"adjustment": math.inf})

    assert store.all_quality() == ()


def test_non_wear_out_cycles_do_not_change_distribution(service):
    service.append_tool_cycle("M1-T01", 120, "WORN")
    service.append_tool_cycle("M1-T01", 260, "WORN")
    before = service.get_tool_life_stats("M1-T01")

    service.append_tool_cycle("M1-T01", 270, "BROKEN")
    service.append_tool_cycle("M1-T01", 300, "TRIAL")
    after = service.get_tool_life_stats("M1-T01")

    assert after.mean_life_minutes == before.mean_life_minutes
    assert after.sigma_minutes == before.sigma_minutes
    assert after.sample_count == 2


def test_stats_scenario_through_service(service):
    for total in (120, 260, 370):
        service.append_tool_cycle("M1-T01", total, "WORN")

    stats = service.get_tool_life_stats("M1-T01")

    assert stats.mean_life_minutes == 123.3
    assert stats.recommended_limit_min == 92.8
    assert stats.warning_min == 83.5


def test_stats_idempotent(service):
    service.append_tool_cycle("M1-T02", 90, "WORN", {"surface_speed_sfm": 380})
    service.append_tool_cycle("M1-T02", 200, "WORN", {"surface_speed_sfm": 410})
    service.append_quality_sample("M1-T02", "M1-T02-C3", 40, "OK", dimension={"value": 8.51})

    assert service.get_tool_life_stats("M1-T02") == service.get_tool_life_stats("M1-T02")


def test_graceful_degradation(service):
    service.append_tool_cycle("M1-T01", 100, "WORN")
    service.append_tool_cycle("M1-T01", 210, "WORN")

    stats = service.get_tool_life_stats("M1-T01")

    assert stats.dimensional_limit_min is None
    assert stats.taylor_limit_min is None
    assert stats.recommended_limit_min == min(stats.stat_limit_min, stats.reliability_limit_min)


def test_k_override_validation(service):
    service.append_tool_cycle("M1-T01", 100, "WORN")

    assert service.get_tool_life_stats("M1-T01", k_override=0.5).k_factor == 0.5
    with pytest.raises(InvalidMeasurement):
        service.get_tool_life_stats("M1-T01", k_override=-1)
    with pytest.raises(UnknownTool):
        service.get_tool_life_stats("NOPE")


def test_get_all_stats_covers_registry(service):
    stats = service.get_all_stats({"M1-T01": 3.0})

    assert set(stats) == {"M1-T01", "M1-T02", "M2-T05"}
    assert stats["M1-T01"].k_factor == 3.0
    assert stats["M2-T05"].k_factor == 1.5


def test_concurrent_appends_keep_indices_consistent(service, store):
    errors = []

    def worker(offset):
        for _ in range(20):
            try:
                last = store.last_cycle("M1-T01")
                total = (last.end_minutes_total if last else 0) + 10
                service.append_tool_cycle("M1-T01", total + offset, "WORN")
            except InvalidMeasurement:
                # другой поток уже записал больше минут - это нормальный отказ
                errors.append(offset)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    cycles = store.cycles_for("M1-T01")
    assert [c.cycle_index for c in cycles] == list(range(1, len(cycles) + 1))
    for prev, cur in zip(cycles, cycles[1:]):
        assert cur.start_minutes_total == prev.end_minutes_total
    assert len(cycles) + len(errors) == 80
