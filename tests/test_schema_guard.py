from __future__ import annotations

import unittest
from unittest.mock import patch

from hris.services.schema_guard import (
    REQUIRED_ENUM_VALUES,
    REQUIRED_TABLE_COLUMNS,
    REQUIRED_UNIQUE_CONSTRAINTS,
    verify_runtime_schema,
)


class _FakeResult:
    def __init__(self, value):
        self._value = value

    def scalar(self):  # type: ignore[no-untyped-def]
        return self._value


class _FakeConnection:
    def __init__(self, version_value):
        self._version_value = version_value

    def __enter__(self):  # type: ignore[no-untyped-def]
        return self

    def __exit__(self, exc_type, exc, tb):  # type: ignore[no-untyped-def]
        return False

    def execute(self, _statement):  # type: ignore[no-untyped-def]
        return _FakeResult(self._version_value)


class _FakeEngine:
    def __init__(self, version_value):
        self._version_value = version_value

    def connect(self):  # type: ignore[no-untyped-def]
        return _FakeConnection(self._version_value)


class _FakeInspector:
    def __init__(
        self,
        *,
        columns_by_table: dict[str, set[str]],
        unique_by_table: dict[str, set[str]],
        enums: list[dict[str, object]],
    ):
        self._columns_by_table = columns_by_table
        self._unique_by_table = unique_by_table
        self._enums = enums

    def get_columns(self, table_name: str):  # type: ignore[no-untyped-def]
        return [{"name": item} for item in self._columns_by_table[table_name]]

    def get_unique_constraints(self, table_name: str):  # type: ignore[no-untyped-def]
        return [{"name": item} for item in self._unique_by_table.get(table_name, set())]

    def get_enums(self):  # type: ignore[no-untyped-def]
        return self._enums


def _complete_inspector(**overrides) -> _FakeInspector:  # type: ignore[no-untyped-def]
    values = {
        "columns_by_table": {table: set(columns) for table, columns in REQUIRED_TABLE_COLUMNS.items()},
        "unique_by_table": {table: {name} for table, name in REQUIRED_UNIQUE_CONSTRAINTS.items()},
        "enums": [{"name": name, "labels": sorted(labels)} for name, labels in REQUIRED_ENUM_VALUES.items()],
    }
    values.update(overrides)
    return _FakeInspector(**values)


class SchemaGuardTests(unittest.TestCase):
    def test_ok_when_schema_is_complete(self) -> None:
        with patch("hris.services.schema_guard.inspect", return_value=_complete_inspector()):
            result = verify_runtime_schema(_FakeEngine("0001_initial"))  # type: ignore[arg-type]

        self.assertTrue(result.ok)
        self.assertEqual(result.issues, [])
        self.assertEqual(result.warnings, [])

    def test_reports_missing_columns(self) -> None:
        columns = {table: set(cols) for table, cols in REQUIRED_TABLE_COLUMNS.items()}
        columns["attendances"].discard("day_date")

        with patch(
            "hris.services.schema_guard.inspect",
            return_value=_complete_inspector(columns_by_table=columns),
        ):
            result = verify_runtime_schema(_FakeEngine("0001_initial"))  # type: ignore[arg-type]

        self.assertFalse(result.ok)
        self.assertIn("MISSING_COLUMNS:attendances:day_date", result.issues)

    def test_reports_missing_unique_constraint(self) -> None:
        with patch(
            "hris.services.schema_guard.inspect",
            return_value=_complete_inspector(unique_by_table={"payrolls": {"uq_payrolls_employee_period"}}),
        ):
            result = verify_runtime_schema(_FakeEngine("0001_initial"))  # type: ignore[arg-type]

        self.assertFalse(result.ok)
        self.assertIn("MISSING_UNIQUE_CONSTRAINT:attendances:uq_attendances_employee_day", result.issues)

    def test_reports_missing_enum_values_and_empty_version(self) -> None:
        enums = [{"name": "attendance_status", "labels": ["PRESENT", "ABSENT"]}]

        with patch("hris.services.schema_guard.inspect", return_value=_complete_inspector(enums=enums)):
            result = verify_runtime_schema(_FakeEngine(None))  # type: ignore[arg-type]

        self.assertFalse(result.ok)
        self.assertIn("MISSING_ENUM_VALUES:attendance_status:LATE", result.issues)
        self.assertIn("ALEMBIC_VERSION_EMPTY", result.issues)
        self.assertIn("ENUM_NOT_FOUND:debt_status", result.warnings)

    def test_warns_on_unexpected_revision(self) -> None:
        with patch("hris.services.schema_guard.inspect", return_value=_complete_inspector()):
            result = verify_runtime_schema(_FakeEngine("0000_legacy"))  # type: ignore[arg-type]

        self.assertTrue(result.ok)
        self.assertEqual(result.revision, "0000_legacy")
        self.assertIn("ALEMBIC_REVISION_MISMATCH:0000_legacy:0001_initial", result.warnings)


if __name__ == "__main__":
    unittest.main()
