"""Tests for the relational mapper."""

import sqlite3

import pytest

from dbc_sync.core.codec import LocalizedText
from dbc_sync.core.mapper import (
    SqlType,
    create_table_sql,
    derive_table_definition,
    nan_fields,
    record_to_columns,
    record_to_row,
    row_to_record,
    select_sql,
)
from dbc_sync.core.schema import LOCALES, FieldKind, resolve_schema
from dbc_sync.errors import FormatError


class TestDeriveTableDefinition:
    """Tests for derive_table_definition()."""

    def test_column_types(self, item_schema) -> None:
        definition = derive_table_definition(item_schema)
        types = {c.name: c.sql_type for c in definition.columns}

        assert types["ID"] is SqlType.INT
        assert types["Code"] is SqlType.BIGINT_UNSIGNED
        assert types["Weight"] is SqlType.FLOAT
        assert types["Name"] is SqlType.TEXT
        assert types["Title_enUS"] is SqlType.TEXT
        assert types["Title_flags"] is SqlType.INT_UNSIGNED

    def test_columns_follow_field_order(self, item_schema) -> None:
        definition = derive_table_definition(item_schema)
        assert definition.column_names == list(item_schema.column_names)
        assert definition.column_names[:7] == [
            "ID", "Code", "Weight", "Name", "Stat_1", "Stat_2", "Stat_3",
        ]
        assert definition.column_names[7:] == [f"Title_{loc}" for loc in LOCALES] + ["Title_flags"]

    def test_repeated_loc_expands_per_group(self) -> None:
        schema = resolve_schema(
            {
                "file": "Quest.dbc",
                "fields": [
                    {"name": "ID", "type": "int32"},
                    {"name": "Objective", "type": "Loc", "count": 2},
                ],
            }
        )
        names = derive_table_definition(schema).column_names
        assert len(names) == 1 + 2 * (len(LOCALES) + 1)
        assert "Objective_1_enUS" in names
        assert "Objective_2_flags" in names

    def test_keys(self, item_schema, simple_schema) -> None:
        assert derive_table_definition(item_schema).primary_key == ("ID",)
        assert derive_table_definition(item_schema).unique_keys == (("Code",),)
        assert derive_table_definition(simple_schema).primary_key == ("ID",)

    def test_create_table_sql_executes(self, item_schema) -> None:
        sql = create_table_sql(derive_table_definition(item_schema))
        assert 'PRIMARY KEY ("ID")' in sql
        assert 'CONSTRAINT "uk_0" UNIQUE ("Code")' in sql

        conn = sqlite3.connect(":memory:")
        conn.execute(sql)
        columns = [row[1] for row in conn.execute('PRAGMA table_info("Item")')]
        assert columns == list(item_schema.column_names)
        conn.close()


class TestSelectSql:
    """Tests for select_sql()."""

    def test_no_sort_order(self, simple_schema) -> None:
        sql = select_sql(derive_table_definition(simple_schema))
        assert sql == 'SELECT "ID", "Name" FROM "Simple"'

    def test_sort_order(self) -> None:
        schema = resolve_schema(
            {
                "file": "S.dbc",
                "sortOrder": [{"name": "B", "direction": "DESC"}, {"name": "ID", "direction": "?"}],
                "fields": [{"name": "ID", "type": "int32"}, {"name": "B", "type": "int32"}],
            }
        )
        sql = select_sql(derive_table_definition(schema), schema.sort_order)
        assert sql.endswith('ORDER BY "B" DESC, "ID" ASC')


class TestRecordRowMapping:
    """Tests for record_to_row() and row_to_record()."""

    def _record(self):
        return {
            "ID": 9,
            "Code": 4000000000,
            "Weight": 0.5,
            "Name": "Helm",
            "Stat_1": 1,
            "Stat_2": 2,
            "Stat_3": 3,
            "Title": LocalizedText.from_mapping({"enUS": "Helm", "ruRU": "Шлем"}, 3),
        }

    def test_record_to_row(self, item_schema) -> None:
        row = record_to_row(self._record(), item_schema)
        assert len(row) == len(item_schema.column_names)
        assert row[:7] == (9, 4000000000, 0.5, "Helm", 1, 2, 3)
        assert row[7] == "Helm"
        assert row[7 + LOCALES.index("ruRU")] == "Шлем"
        assert row[-1] == 3

    def test_inverse(self, item_schema) -> None:
        record = self._record()
        assert row_to_record(record_to_columns(record, item_schema), item_schema) == record

    def test_null_and_missing_cells(self, item_schema) -> None:
        record = row_to_record({"ID": 4, "Weight": None, "Title_enUS": None}, item_schema)
        assert record["ID"] == 4
        assert record["Code"] == 0
        assert record["Weight"] == 0.0
        assert isinstance(record["Weight"], float)
        assert record["Name"] == ""
        assert record["Stat_2"] == 0
        assert record["Title"] == LocalizedText()

    def test_kinds_coerced(self, item_schema) -> None:
        record = row_to_record({"ID": "12", "Weight": 2, "Name": b"Cap"}, item_schema)
        assert record["ID"] == 12
        assert record["Weight"] == 2.0
        assert record["Name"] == "Cap"

    def test_columns_mapping(self, item_schema) -> None:
        columns = record_to_columns(self._record(), item_schema)
        assert columns["Title_flags"] == 3
        assert columns["Stat_3"] == 3
        assert item_schema.physical_fields[-1].kind is FieldKind.LOC

    def test_unconvertible_int(self, item_schema) -> None:
        with pytest.raises(FormatError, match="column 'Stat_1'") as exc_info:
            row_to_record({"ID": 1, "Stat_1": "abc"}, item_schema)
        assert exc_info.value.table == "Item"

    def test_unconvertible_float(self, item_schema) -> None:
        with pytest.raises(FormatError, match="column 'Weight'"):
            row_to_record({"ID": 1, "Weight": "heavy"}, item_schema)

    def test_invalid_utf8_blob(self, item_schema) -> None:
        with pytest.raises(FormatError, match="column 'Title_deDE'"):
            row_to_record({"ID": 1, "Title_deDE": b"\xff\xfe"}, item_schema)


class TestNanFields:
    """Tests for nan_fields()."""

    def test_counts_per_field(self) -> None:
        schema = resolve_schema(
            {
                "file": "Spot.dbc",
                "fields": [
                    {"name": "ID", "type": "int32"},
                    {"name": "X", "type": "float"},
                    {"name": "Y", "type": "float"},
                ],
            }
        )
        nan = float("nan")
        records = [{"ID": 1, "X": nan, "Y": 1.0}, {"ID": 2, "X": nan, "Y": nan}, {"ID": 3, "X": 0.0, "Y": 2.0}]

        assert nan_fields(records, schema) == {"X": 2, "Y": 1}

    def test_none_without_nan(self, simple_schema) -> None:
        assert nan_fields([{"ID": 1, "Name": "a"}], simple_schema) == {}
