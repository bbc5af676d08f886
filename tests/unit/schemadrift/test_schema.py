"""Tests for canonical schemas, snapshot records and result models."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from schemadrift.schema import (
    Association,
    CanonicalSchema,
    DriftReport,
    DriftStatus,
    Embedded,
    ModelCheckResult,
    ModelLocation,
    Primitive,
    SchemaSnapshot,
)


# ---------------------------------------------------------------------------
# CanonicalSchema
# ---------------------------------------------------------------------------


class TestCanonicalSchema:
    def test_equality_ignores_declaration_order(self):
        a = CanonicalSchema({"status": Primitive("str"), "total": Primitive("Decimal")})
        b = CanonicalSchema({"total": Primitive("Decimal"), "status": Primitive("str")})
        assert a == b

    def test_different_kinds_not_equal(self):
        a = CanonicalSchema({"status": Primitive("str")})
        b = CanonicalSchema({"status": Primitive("Symbol")})
        assert a != b

    def test_missing_field_not_equal(self):
        a = CanonicalSchema({"status": Primitive("str")})
        b = CanonicalSchema({"status": Primitive("str"), "note": Primitive("str")})
        assert a != b

    def test_association_equals_primitive_of_same_name(self):
        a = CanonicalSchema({"customer": Association("Customer")})
        b = CanonicalSchema({"customer": Primitive("Customer")})
        assert a == b

    def test_nested_order_independent(self):
        inner_a = CanonicalSchema({"street": Primitive("str"), "city": Primitive("str")})
        inner_b = CanonicalSchema({"city": Primitive("str"), "street": Primitive("str")})
        assert CanonicalSchema({"addr": Embedded(inner_a)}) == CanonicalSchema(
            {"addr": Embedded(inner_b)}
        )

    def test_not_equal_to_plain_dict(self):
        schema = CanonicalSchema({"status": Primitive("str")})
        assert schema != {"status": "str"}

    def test_unhashable(self):
        with pytest.raises(TypeError):
            hash(CanonicalSchema())

    def test_mapping_protocol(self):
        schema = CanonicalSchema({"status": Primitive("str")})
        assert len(schema) == 1
        assert list(schema) == ["status"]
        assert schema["status"] == Primitive("str")

    def test_to_document(self):
        schema = CanonicalSchema({
            "status": Primitive("str"),
            "customer": Association("Customer"),
            "shipping": Embedded(CanonicalSchema({"city": Primitive("str")})),
        })
        assert schema.to_document() == {
            "status": "str",
            "customer": "Customer",
            "shipping": {"city": "str"},
        }

    def test_from_document_rebuilds_kinds(self):
        schema = CanonicalSchema.from_document({"status": "str", "shipping": {"city": "str"}})
        assert schema["status"] == Primitive("str")
        assert isinstance(schema["shipping"], Embedded)
        assert schema["shipping"].schema["city"] == Primitive("str")


# ---------------------------------------------------------------------------
# SchemaSnapshot
# ---------------------------------------------------------------------------


class TestSchemaSnapshot:
    def test_valid_snapshot(self):
        snap = SchemaSnapshot(uuid="abc", model_name="Order", fields={"status": "str"})
        assert snap.canonical_schema == CanonicalSchema({"status": Primitive("str")})

    def test_nested_fields(self):
        snap = SchemaSnapshot(
            uuid="abc", model_name="Order", fields={"shipping": {"city": "str"}}
        )
        assert isinstance(snap.canonical_schema["shipping"], Embedded)

    def test_rejects_unknown_keys(self):
        with pytest.raises(ValidationError):
            SchemaSnapshot(uuid="abc", model_name="Order", fields={}, created_at="now")

    def test_rejects_empty_uuid(self):
        with pytest.raises(ValidationError):
            SchemaSnapshot(uuid="", model_name="Order", fields={})

    def test_rejects_non_string_type(self):
        with pytest.raises(ValidationError):
            SchemaSnapshot(uuid="abc", model_name="Order", fields={"count": 3})

    def test_frozen(self):
        snap = SchemaSnapshot(uuid="abc", model_name="Order", fields={})
        with pytest.raises(ValidationError):
            snap.uuid = "other"

    def test_from_schema(self):
        schema = CanonicalSchema({"status": Primitive("str")})
        snap = SchemaSnapshot.from_schema("abc", "Order", schema)
        assert snap.fields == {"status": "str"}
        assert snap.model_dump() == {
            "uuid": "abc",
            "model_name": "Order",
            "fields": {"status": "str"},
        }


# ---------------------------------------------------------------------------
# ModelLocation
# ---------------------------------------------------------------------------


class TestModelLocation:
    def test_class_name_is_last_segment(self):
        assert ModelLocation("shop.LineItem").class_name == "LineItem"
        assert ModelLocation("Order").class_name == "Order"

    def test_str_prefers_path(self):
        assert str(ModelLocation("Order", Path("models/order.py"))) == "models/order.py"
        assert str(ModelLocation("Order")) == "Order"


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class TestModelCheckResult:
    def test_message_lists_warnings(self):
        result = ModelCheckResult(
            model_name="Order",
            status=DriftStatus.STRUCTURE_CHANGED_NO_IDENTIFIER_UPDATE,
            up_to_date=False,
            warnings=["first", "second"],
        )
        message = result.message()
        assert "Order" in message
        assert "\n\tfirst" in message
        assert "\n\tsecond" in message

    def test_missing_identifier_message(self):
        result = ModelCheckResult(
            model_name="Order", status=DriftStatus.MISSING_IDENTIFIER, up_to_date=False
        )
        assert "missing" in result.message()


class TestDriftReport:
    def _result(self, name, status, up_to_date):
        return ModelCheckResult(model_name=name, status=status, up_to_date=up_to_date)

    def test_partitions(self):
        report = DriftReport(
            results=[
                self._result("A", DriftStatus.UP_TO_DATE, True),
                self._result("B", DriftStatus.MISSING_IDENTIFIER, False),
                self._result("C", DriftStatus.SKIPPED, False),
            ],
            up_to_date=False,
        )
        assert [r.model_name for r in report.checked] == ["A", "B"]
        assert [r.model_name for r in report.skipped] == ["C"]
        assert [r.model_name for r in report.out_of_date] == ["B"]
        assert len(report.messages) == 1

    def test_result_for(self):
        report = DriftReport(results=[self._result("A", DriftStatus.UP_TO_DATE, True)])
        assert report.result_for("A").up_to_date
        assert report.result_for("missing") is None
