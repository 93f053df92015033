from __future__ import annotations

import unittest
from unittest.mock import patch

from fleetops.services.schema_guard import verify_runtime_schema


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
    def __init__(self, *, columns_by_table: dict[str, dict[str, str | None]]):
        self._columns_by_table = columns_by_table

    def get_columns(self, table_name: str):  # type: ignore[no-untyped-def]
        columns = self._columns_by_table[table_name]
        return [{"name": name, "type": type_name} for name, type_name in columns.items()]


MECHANIC_COLUMNS: dict[str, str | None] = {
    "id": "INTEGER",
    "user_id": "INTEGER",
    "name": "VARCHAR(255)",
    "toolkits": "JSONB",
    "attendance": "JSONB",
    "monthly_overtime": "JSONB",
}


class SchemaGuardTests(unittest.TestCase):
    def test_verify_runtime_schema_ok_when_required_columns_exist(self) -> None:
        fake_inspector = _FakeInspector(
            columns_by_table={
                "mechanics": dict(MECHANIC_COLUMNS),
                "alembic_version": {"version_num": "VARCHAR(32)"},
            }
        )
        fake_engine = _FakeEngine("0001_initial")

        with patch("fleetops.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(fake_engine)  # type: ignore[arg-type]

        self.assertTrue(result.ok)
        self.assertEqual(result.issues, [])
        self.assertEqual(result.warnings, [])
        self.assertTrue(result.to_dict()["ok"])

    def test_verify_runtime_schema_reports_missing_columns(self) -> None:
        fake_inspector = _FakeInspector(
            columns_by_table={
                "mechanics": {"id": "INTEGER", "name": "VARCHAR(255)"},
                "alembic_version": {"version_num": "VARCHAR(32)"},
            }
        )
        fake_engine = _FakeEngine("")

        with patch("fleetops.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(fake_engine)  # type: ignore[arg-type]

        self.assertFalse(result.ok)
        self.assertIn("MISSING_COLUMNS:mechanics:attendance,monthly_overtime,toolkits,user_id", result.issues)
        self.assertIn("ALEMBIC_VERSION_EMPTY", result.issues)

    def test_text_document_column_is_a_warning(self) -> None:
        columns = dict(MECHANIC_COLUMNS)
        columns["monthly_overtime"] = "TEXT"
        fake_inspector = _FakeInspector(
            columns_by_table={
                "mechanics": columns,
                "alembic_version": {"version_num": "VARCHAR(32)"},
            }
        )

        with patch("fleetops.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(_FakeEngine("0001_initial"))  # type: ignore[arg-type]

        self.assertTrue(result.ok)
        self.assertEqual(result.warnings, ["DOCUMENT_COLUMN_NOT_JSON:mechanics.monthly_overtime:TEXT"])


if __name__ == "__main__":
    unittest.main()
