"""
Unit tests for QueryCompiler.

These tests check the exact SQL text and binding order produced for every
statement kind without touching a database.
"""

import pytest

from sqliteorm.exceptions import InvalidOperationError
from sqliteorm.models.codec import encode_record
from sqliteorm.query.compiler import QueryCompiler
from sqliteorm.query.predicate import Predicate
from sqliteorm.query.query import Query
from tests.fixtures import Contact, ShoppingItem, Swatch


@pytest.fixture
def compiler() -> QueryCompiler:
    return QueryCompiler.for_record(ShoppingItem.descriptor())


class TestCompileSelect:
    def test_everything(self, compiler: QueryCompiler) -> None:
        assert compiler.compile_select() == ("SELECT * FROM shopping_items", [])
        assert compiler.compile_select(Query()) == ("SELECT * FROM shopping_items", [])

    def test_clause_order_and_binding_order(self, compiler: QueryCompiler) -> None:
        query = (
            Query()
            .select("name", "COUNT(*) AS total")
            .join("tags", "tags.item_id = shopping_items.id")
            .where_gt("quantity", 1)
            .group_by("name")
            .having(Predicate.raw("COUNT(*) > ?", [2]))
            .order_by("name", "desc")
            .limit(10)
            .offset(5)
        )
        assert compiler.compile_select(query) == (
            "SELECT name, COUNT(*) AS total FROM shopping_items "
            "INNER JOIN tags ON tags.item_id = shopping_items.id "
            "WHERE quantity > ? GROUP BY name HAVING COUNT(*) > ? "
            "ORDER BY name DESC LIMIT ? OFFSET ?",
            [1, 2, 10, 5],
        )

    def test_multiple_orderings(self, compiler: QueryCompiler) -> None:
        query = Query().order_by("purchased").order_by("created_at", "desc")
        sql, _ = compiler.compile_select(query)
        assert sql == "SELECT * FROM shopping_items ORDER BY purchased ASC, created_at DESC"

    def test_offset_without_limit(self, compiler: QueryCompiler) -> None:
        assert compiler.compile_select(Query().offset(5)) == (
            "SELECT * FROM shopping_items LIMIT -1 OFFSET ?",
            [5],
        )

    def test_left_join(self, compiler: QueryCompiler) -> None:
        sql, _ = compiler.compile_select(Query().left_join("tags", "tags.id = shopping_items.id"))
        assert sql == "SELECT * FROM shopping_items LEFT JOIN tags ON tags.id = shopping_items.id"

    def test_unsafe_join_table_rejected(self, compiler: QueryCompiler) -> None:
        with pytest.raises(InvalidOperationError):
            compiler.compile_select(Query().join("tags; DROP TABLE x", "1 = 1"))

    def test_unsafe_order_column_rejected(self, compiler: QueryCompiler) -> None:
        with pytest.raises(InvalidOperationError):
            compiler.compile_select(Query().order_by("name; DROP TABLE x"))

    def test_repeated_compilation_is_identical(self, compiler: QueryCompiler) -> None:
        query = Query().where_in("id", [1, 2, 3]).order_by("name").limit(2)
        assert compiler.compile_select(query) == compiler.compile_select(query)


class TestCompileCount:
    def test_plain_count_ignores_columns_and_ordering(self, compiler: QueryCompiler) -> None:
        query = Query().select("name").where_eq("purchased", False).order_by("name")
        assert compiler.compile_count(query) == (
            "SELECT COUNT(*) AS count FROM shopping_items WHERE purchased = ?",
            [0],
        )

    def test_paged_count_uses_sub_select(self, compiler: QueryCompiler) -> None:
        assert compiler.compile_count(Query().limit(2)) == (
            "SELECT COUNT(*) AS count FROM (SELECT * FROM shopping_items LIMIT ?)",
            [2],
        )

    def test_grouped_count_uses_sub_select(self, compiler: QueryCompiler) -> None:
        sql, _ = compiler.compile_count(Query().select("name").group_by("name"))
        assert sql == (
            "SELECT COUNT(*) AS count FROM (SELECT name FROM shopping_items GROUP BY name)"
        )


class TestCompileWrites:
    def test_insert(self, compiler: QueryCompiler) -> None:
        assert compiler.compile_insert({"name": "Apples", "quantity": 2}) == (
            "INSERT INTO shopping_items (name, quantity) VALUES (?, ?)",
            ["Apples", 2],
        )

    def test_insert_default_values(self, compiler: QueryCompiler) -> None:
        assert compiler.compile_insert({}) == (
            "INSERT INTO shopping_items DEFAULT VALUES",
            [],
        )

    def test_update_skips_identity(self, compiler: QueryCompiler) -> None:
        query = Query().where_eq("id", 3)
        assert compiler.compile_update(query, {"id": 3, "name": "Pears", "quantity": 4}) == (
            "UPDATE shopping_items SET name = ?, quantity = ? WHERE id = ?",
            ["Pears", 4, 3],
        )

    def test_update_without_predicate(self, compiler: QueryCompiler) -> None:
        assert compiler.compile_update(None, {"purchased": 1}) == (
            "UPDATE shopping_items SET purchased = ?",
            [1],
        )

    def test_update_with_nothing_to_set(self, compiler: QueryCompiler) -> None:
        with pytest.raises(InvalidOperationError, match="no columns to set"):
            compiler.compile_update(Query().where_eq("id", 1), {"id": 1})

    def test_delete(self, compiler: QueryCompiler) -> None:
        assert compiler.compile_delete(Query().where_lt("quantity", 1)) == (
            "DELETE FROM shopping_items WHERE quantity < ?",
            [1],
        )
        assert compiler.compile_delete() == ("DELETE FROM shopping_items", [])


class TestColumnOverrides:
    def test_field_names_map_to_columns(self) -> None:
        compiler = QueryCompiler.for_record(Contact.descriptor())
        query = Query().where_eq("email_address", "a@example.com").order_by("email_address")
        assert compiler.compile_select(query) == (
            "SELECT * FROM contacts WHERE email = ? ORDER BY email ASC",
            ["a@example.com"],
        )

    def test_update_skips_custom_identity(self) -> None:
        compiler = QueryCompiler.for_record(Contact.descriptor())
        sql, bindings = compiler.compile_update(
            Query().where_eq("contact_id", 7),
            {"contact_id": 7, "email": "b@example.com"},
        )
        assert sql == "UPDATE contacts SET email = ? WHERE contact_id = ?"
        assert bindings == ["b@example.com", 7]

    def test_chained_overrides_are_not_mapped_twice(self) -> None:
        compiler = QueryCompiler.for_record(Swatch.descriptor())
        values = encode_record(Swatch(id=1, hue="red", shade="dark"))
        assert compiler.compile_insert(values) == (
            "INSERT INTO swatches (id, shade, tone) VALUES (?, ?, ?)",
            [1, "red", "dark"],
        )
        assert compiler.compile_update(Query().where_eq("shade", "dark"), values) == (
            "UPDATE swatches SET shade = ?, tone = ? WHERE tone = ?",
            ["red", "dark", "dark"],
        )

    def test_write_columns_must_be_identifiers(self, compiler: QueryCompiler) -> None:
        with pytest.raises(InvalidOperationError, match="unsafe identifier"):
            compiler.compile_insert({"name; DROP TABLE x": "a"})


class TestConstruction:
    def test_plain_table(self) -> None:
        assert QueryCompiler("items").table == "items"

    def test_unsafe_table_rejected(self) -> None:
        with pytest.raises(InvalidOperationError):
            QueryCompiler("items; DROP TABLE users")
