"""
Helpers for asserting schema/identifier consistency from a test suite.

Usage (in a project's own tests)::

    from schemadrift.testing import assert_schemas_up_to_date

    def test_model_schemas_are_versioned():
        assert_schemas_up_to_date(exclude="legacy/,experimental/")
"""

from __future__ import annotations

from typing import Optional

from schemadrift.checker import DriftChecker
from schemadrift.config import SchemaDriftConfig, get_config, split_patterns


def check_schemas_and_identifiers(
    exclude: str = "", config: Optional[SchemaDriftConfig] = None
) -> bool:
    """Check every model; print a message for each one out of date.

    Args:
        exclude: Comma-separated substrings of model paths to skip.
        config: Defaults to the global configuration.

    Returns:
        True if every tracked model is up to date.
    """
    config = config or get_config()
    report = DriftChecker.from_config(config).check_all(split_patterns(exclude))
    for message in report.messages:
        print(message)
    return report.up_to_date


def assert_schemas_up_to_date(
    exclude: str = "", config: Optional[SchemaDriftConfig] = None
) -> None:
    """Raise ``AssertionError`` listing every out-of-date model."""
    config = config or get_config()
    report = DriftChecker.from_config(config).check_all(split_patterns(exclude))
    if not report.up_to_date:
        raise AssertionError("\n".join(report.messages))
