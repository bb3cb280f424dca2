"""
Unit tests for core/record.py and core/record_store.py
"""

import json
import threading

import pytest

from retrofit.core.record import BuildingProfile, CalculationRecord, OverrideMetadata
from retrofit.core.record_store import (
    InMemoryRecordStore,
    JsonFileRecordStore,
    KeyedLock,
    create_record_store,
)
from retrofit.errors import RecordConflict, RecordNotFound


@pytest.fixture(params=["memory", "json"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return InMemoryRecordStore()
    return JsonFileRecordStore(str(tmp_path / "records"))


class TestCalculationRecord:
    """Test record helpers."""

    def test_get_treats_none_as_absent(self):
        """Test get() falls back to the default for None values."""
        record = CalculationRecord(fields={"ptac_units": None, "eflh_hours": 513})
        assert record.get("ptac_units", 7) == 7
        assert record.get("eflh_hours") == 513
        assert record.get("missing") is None

    def test_apply_output(self):
        """Test apply_output writes fields, version and audit entries."""
        record = CalculationRecord()
        override = OverrideMetadata("energy", "ptac_units", 20, 18)
        record.apply_output("energy", {"ptac_units_used": 18}, "1.0.0+r1", [override])

        assert record.get("ptac_units_used") == 18
        assert record.service_versions["energy"] == "1.0.0+r1"
        assert record.last_calculated_service == "energy"
        assert record.has_executed("energy")
        assert not record.has_executed("noi")
        assert record.overrides_for("energy") == [override]

    def test_apply_output_copies_values(self):
        """Test later mutation of the output does not leak into the record."""
        record = CalculationRecord()
        values = {"unit_breakdown": {"studio": 1}}
        record.apply_output("ai-breakdown", values, "1.0.0+r1")
        values["unit_breakdown"]["studio"] = 99
        assert record.get("unit_breakdown") == {"studio": 1}

    def test_dict_round_trip(self, building):
        """Test to_dict/from_dict preserve the record."""
        record = CalculationRecord(building=building)
        record.apply_output(
            "energy", {"eflh_hours": 513}, "1.0.0+r1",
            [OverrideMetadata("energy", "pthp_cop", 1.51, 2.0, actor="alice", reason="datasheet")],
        )
        restored = CalculationRecord.from_dict(json.loads(json.dumps(record.to_dict())))

        assert restored.building == building
        assert restored.fields == record.fields
        assert restored.service_versions == record.service_versions
        assert restored.override_log[0].actor == "alice"
        assert restored.override_log[0].timestamp == record.override_log[0].timestamp

    def test_building_profile_ignores_unknown_keys(self):
        """Test from_dict drops keys that are not profile attributes."""
        profile = BuildingProfile.from_dict({"units_res": 4, "zoning": "R7"})
        assert profile.units_res == 4


class TestRecordStore:
    """Test both store adapters against the same contract."""

    def test_create_and_load(self, any_store):
        """Test a created record loads back at revision 0."""
        any_store.create(CalculationRecord(calculation_id="c1"))
        loaded = any_store.load("c1")
        assert loaded.calculation_id == "c1"
        assert loaded.revision == 0
        assert any_store.exists("c1")
        assert any_store.list_ids() == ["c1"]

    def test_load_missing(self, any_store):
        """Test loading an unknown id raises RecordNotFound."""
        with pytest.raises(RecordNotFound):
            any_store.load("nope")

    def test_create_duplicate(self, any_store):
        """Test creating an existing id raises RecordConflict."""
        any_store.create(CalculationRecord(calculation_id="c1"))
        with pytest.raises(RecordConflict):
            any_store.create(CalculationRecord(calculation_id="c1"))

    def test_save_advances_revision(self, any_store):
        """Test save returns the stored copy with the next revision."""
        any_store.create(CalculationRecord(calculation_id="c1"))
        record = any_store.load("c1")
        record.fields["x"] = 1
        saved = any_store.save("c1", record)

        assert saved.revision == 1
        assert any_store.load("c1").get("x") == 1

    def test_stale_save_rejected(self, any_store):
        """Test compare-and-swap rejects a save based on an old revision."""
        any_store.create(CalculationRecord(calculation_id="c1"))
        first = any_store.load("c1")
        second = any_store.load("c1")
        any_store.save("c1", first)

        with pytest.raises(RecordConflict) as exc_info:
            any_store.save("c1", second)
        assert exc_info.value.expected_revision == 0
        assert exc_info.value.actual_revision == 1

    def test_loaded_copies_are_independent(self, any_store):
        """Test mutating a loaded record does not change the store."""
        any_store.create(CalculationRecord(calculation_id="c1"))
        record = any_store.load("c1")
        record.fields["x"] = 1
        assert any_store.load("c1").get("x") is None

    def test_delete(self, any_store):
        """Test deleted records are gone."""
        any_store.create(CalculationRecord(calculation_id="c1"))
        any_store.delete("c1")
        assert not any_store.exists("c1")


class TestJsonFileRecordStore:
    """Test the file layout of the JSON store."""

    def test_one_file_per_calculation(self, tmp_path):
        """Test records are written as <id>.json."""
        store = JsonFileRecordStore(str(tmp_path))
        store.create(CalculationRecord(calculation_id="abc"))
        assert (tmp_path / "abc.json").exists()
        assert not list(tmp_path.glob("*.tmp"))


class TestKeyedLock:
    """Test per-calculation locking."""

    def test_lock_released_after_use(self):
        """Test locks are dropped once nobody holds them."""
        locks = KeyedLock()
        with locks.hold("c1"):
            assert locks.active_keys() == ["c1"]
        assert locks.active_keys() == []

    def test_reentrant(self):
        """Test the same thread can take the lock twice."""
        locks = KeyedLock()
        with locks.hold("c1"):
            with locks.hold("c1"):
                pass
        assert locks.active_keys() == []

    def test_serializes_same_key(self):
        """Test two threads never hold the same key at once."""
        locks = KeyedLock()
        inside = []
        overlap = []

        def worker():
            for _ in range(50):
                with locks.hold("c1"):
                    inside.append(1)
                    if len(inside) > 1:
                        overlap.append(True)
                    inside.pop()

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert not overlap


class TestCreateRecordStore:
    """Test the store factory."""

    def test_backends(self, tmp_path):
        """Test memory and json backends are created."""
        assert isinstance(create_record_store("memory"), InMemoryRecordStore)
        assert isinstance(create_record_store("json", str(tmp_path)), JsonFileRecordStore)

    def test_unknown_backend(self):
        """Test unknown backends are rejected."""
        with pytest.raises(ValueError):
            create_record_store("postgres")
