"""Tests for drift classification and run aggregation."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import BaseModel

from schemadrift.checker import DriftChecker
from schemadrift.discovery import DiscoveredModel
from schemadrift.reflection import PydanticShape
from schemadrift.schema import DriftStatus, ModelLocation
from schemadrift.store import SnapshotStore
from schemadrift.strategies import CentralizedStrategy, InlineStrategy


HISTORY = """\
---
uuid: abc123
model_name: Order
fields:
  status: str
  total: float
"""


class Order(BaseModel):
    __schema_version__ = "abc123"
    status: str
    total: float


class OrderStatusChanged(BaseModel):
    __schema_version__ = "abc123"
    status: int
    total: float


class OrderBumped(BaseModel):
    __schema_version__ = "xyz999"
    status: int
    total: float


class OrderUnversioned(BaseModel):
    status: str
    total: float


class ExplodingShape:
    name = "Order"

    def fields(self):
        raise LookupError("no metadata")


LOCATION = ModelLocation("Order")


@pytest.fixture
def store(history_file, write_file) -> SnapshotStore:
    write_file(history_file, HISTORY)
    return SnapshotStore(history_file)


@pytest.fixture
def checker(store) -> DriftChecker:
    return DriftChecker(store, InlineStrategy())


def _check(checker, model):
    return checker.check_model(LOCATION, PydanticShape(model), model)


# ---------------------------------------------------------------------------
# check_model
# ---------------------------------------------------------------------------


class TestCheckModel:
    def test_up_to_date(self, checker):
        result = _check(checker, Order)
        assert result.up_to_date
        assert result.status == DriftStatus.UP_TO_DATE
        assert result.warnings == []
        assert result.identifier == "abc123"
        assert result.last_identifier == "abc123"

    def test_structure_changed_without_identifier_update(self, checker):
        result = _check(checker, OrderStatusChanged)
        assert not result.up_to_date
        assert result.status == DriftStatus.STRUCTURE_CHANGED_NO_IDENTIFIER_UPDATE
        assert len(result.warnings) == 1
        assert "has changed but its identifier has not" in result.warnings[0]
        assert result.changes == [
            {"type": "change_field_type", "field": "status", "old": "str", "new": "int"}
        ]

    def test_identifier_changed_without_snapshot(self, checker):
        result = _check(checker, OrderBumped)
        assert not result.up_to_date
        assert result.status == DriftStatus.IDENTIFIER_CHANGED_NO_STRUCTURE_CHANGE
        assert len(result.warnings) == 1
        assert "verify the identifier change" in result.warnings[0]
        assert result.last_identifier == "abc123"

    def test_identifier_bump_already_recorded_still_warns(self, history_file, write_file):
        write_file(
            history_file,
            HISTORY + "---\nuuid: xyz999\nmodel_name: Other\nfields:\n  status: int\n  total: float\n",
        )
        checker = DriftChecker(SnapshotStore(history_file), InlineStrategy())
        result = _check(checker, OrderBumped)
        assert result.up_to_date
        assert result.status == DriftStatus.IDENTIFIER_CHANGED_NO_STRUCTURE_CHANGE
        assert len(result.warnings) == 1

    def test_missing_identifier(self, checker):
        result = _check(checker, OrderUnversioned)
        assert not result.up_to_date
        assert result.status == DriftStatus.MISSING_IDENTIFIER
        assert result.warnings == []

    def test_missing_identifier_even_when_structure_matches(self, store, registry_file):
        checker = DriftChecker(store, CentralizedStrategy(registry_file))
        result = _check(checker, Order)
        assert result.status == DriftStatus.MISSING_IDENTIFIER

    def test_corrupt_history_fails_every_model(self, history_file, write_file):
        write_file(history_file, "---\nuuid: abc123\nmodel_name: [broken\n")
        checker = DriftChecker(SnapshotStore(history_file), InlineStrategy())
        result = _check(checker, Order)
        assert not result.up_to_date
        assert result.last_identifier is None

    def test_model_never_recorded(self, tmp_path):
        checker = DriftChecker(SnapshotStore(tmp_path / "empty.yml"), InlineStrategy())
        result = _check(checker, Order)
        assert not result.up_to_date
        assert result.status == DriftStatus.IDENTIFIER_CHANGED_NO_STRUCTURE_CHANGE

    def test_extraction_failure_is_per_model(self, checker):
        result = checker.check_model(LOCATION, ExplodingShape(), Order)
        assert not result.up_to_date
        assert result.status == DriftStatus.EXTRACTION_FAILED
        assert "no metadata" in result.detail

    def test_centralized_identifier(self, store, registry_file, write_file):
        write_file(registry_file, "Order: abc123\n")
        checker = DriftChecker(store, CentralizedStrategy(registry_file))
        result = _check(checker, OrderUnversioned)
        assert result.up_to_date


# ---------------------------------------------------------------------------
# check_models / check_all
# ---------------------------------------------------------------------------


class TestCheckModels:
    def test_aggregate_true_when_all_up_to_date(self, checker):
        report = checker.check_models([DiscoveredModel(LOCATION, Order)])
        assert report.up_to_date
        assert report.messages == []

    def test_any_failure_fails_run(self, checker):
        report = checker.check_models([
            DiscoveredModel(LOCATION, Order),
            DiscoveredModel(ModelLocation("Order"), OrderStatusChanged),
        ])
        assert not report.up_to_date
        assert len(report.messages) == 1
        assert "Order" in report.messages[0]

    def test_skipped_models_do_not_affect_result(self, checker):
        report = checker.check_models([
            DiscoveredModel(LOCATION, Order),
            DiscoveredModel(ModelLocation("helpers.Util"), None, "not a tracked model (Util)"),
        ])
        assert report.up_to_date
        assert len(report.skipped) == 1
        assert report.skipped[0].status == DriftStatus.SKIPPED
        assert report.skipped[0].detail == "not a tracked model (Util)"

    def test_empty_run_is_up_to_date(self, checker):
        assert checker.check_models([]).up_to_date

    def test_warnings_logged_for_out_of_date(self, checker, caplog):
        with caplog.at_level("WARNING", logger="schemadrift.checker"):
            checker.check_models([DiscoveredModel(LOCATION, OrderStatusChanged)])
        assert "is not up-to-date" in caplog.text


class TestCheckAll:
    def test_discovers_and_checks(self, tmp_path, models_dir, history_file, write_file):
        write_file(history_file, HISTORY)
        write_file(
            models_dir / "order.py",
            """\
            from pydantic import BaseModel


            class Order(BaseModel):
                __schema_version__ = "abc123"
                status: str
                total: float
            """,
        )
        write_file(models_dir / "helpers.py", "VALUE = 1\n")
        checker = DriftChecker(SnapshotStore(history_file), InlineStrategy(), models_dir)
        report = checker.check_all([])
        assert report.up_to_date
        assert [r.model_name for r in report.checked] == ["Order"]
        assert [r.model_name for r in report.skipped] == ["Helpers"]

    def test_exclude_patterns(self, models_dir, history_file, write_file):
        write_file(history_file, HISTORY)
        write_file(
            models_dir / "legacy" / "invoice.py",
            """\
            from pydantic import BaseModel


            class Invoice(BaseModel):
                number: str
            """,
        )
        checker = DriftChecker(SnapshotStore(history_file), InlineStrategy(), models_dir)
        assert not checker.check_all([]).up_to_date
        report = checker.check_all(["legacy/"])
        assert report.up_to_date
        assert report.results == []

    def test_requires_models_dir(self, checker):
        with pytest.raises(ValueError):
            checker.check_all([])

    def test_from_config(self, models_dir, history_file, registry_file):
        from schemadrift.config import SchemaDriftConfig

        config = SchemaDriftConfig(
            models_dir=str(models_dir),
            history_file=str(history_file),
            registry_file=str(registry_file),
            strategy="centralized",
        )
        checker = DriftChecker.from_config(config)
        assert isinstance(checker.strategy, CentralizedStrategy)
        assert checker.store.path == Path(history_file)
