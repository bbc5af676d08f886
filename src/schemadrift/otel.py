"""
OTel span event emission helpers for drift checks.

All functions are guarded by ``_HAS_OTEL`` so they degrade gracefully
when OTel is not installed or no span is recording.

Usage::

    from schemadrift.otel import emit_drift_report, emit_model_check

    emit_model_check(result)
    emit_drift_report(report)
"""

from __future__ import annotations

import logging

from schemadrift.schema import DriftReport, ModelCheckResult

try:
    from opentelemetry import trace as otel_trace

    _HAS_OTEL = True
except ImportError:  # pragma: no cover
    _HAS_OTEL = False

logger = logging.getLogger(__name__)


def _add_span_event(name: str, attributes: dict[str, str | int | float | bool]) -> None:
    if not _HAS_OTEL:
        return
    span = otel_trace.get_current_span()
    if span and span.is_recording():
        span.add_event(name=name, attributes=attributes)


def emit_model_check(result: ModelCheckResult) -> None:
    """Emit a span event for one model's classification.

    Event name: ``schema.drift.model_check``
    """
    attrs: dict[str, str | int | float | bool] = {
        "schema.model_name": result.model_name,
        "schema.status": result.status.value,
        "schema.up_to_date": result.up_to_date,
        "schema.warning_count": len(result.warnings),
        "schema.change_count": len(result.changes),
    }
    if result.identifier is not None:
        attrs["schema.identifier"] = result.identifier
    if result.last_identifier is not None:
        attrs["schema.last_identifier"] = result.last_identifier

    logger.debug(
        "Schema drift check: %s status=%s up_to_date=%s",
        result.model_name,
        result.status.value,
        result.up_to_date,
    )
    _add_span_event("schema.drift.model_check", attrs)


def emit_drift_report(report: DriftReport) -> None:
    """Emit a span event summarising a full run.

    Event name: ``schema.drift.report``
    """
    attrs: dict[str, str | int | float | bool] = {
        "schema.up_to_date": report.up_to_date,
        "schema.models_checked": len(report.checked),
        "schema.models_skipped": len(report.skipped),
        "schema.models_out_of_date": len(report.out_of_date),
    }
    _add_span_event("schema.drift.report", attrs)
