"""Tests for SchemaProber and to_snake_case."""

import pytest

from footy_maint.db_opt.schema import SchemaProber, to_snake_case


class TestSnakeCase:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("createdByUserId", "created_by_user_id"),
            ("isActive", "is_active"),
            ("carnivals", "carnivals"),
            ("idx_users_club_active", "idx_users_club_active"),
        ],
    )
    def test_conversion(self, raw, expected):
        assert to_snake_case(raw) == expected


class TestSchemaProber:
    """Read-only PRAGMA lookups against the fixture portal DB."""

    def test_table_exists(self, db):
        prober = SchemaProber(db)
        assert prober.table_exists("users")
        assert not prober.table_exists("audit_trail")

    def test_list_tables_skips_internal(self, db):
        tables = SchemaProber(db).list_tables()
        assert "carnivals" in tables
        assert not any(name.startswith("sqlite_") for name in tables)

    def test_column_exists(self, db):
        prober = SchemaProber(db)
        assert prober.column_exists("users", "invitationToken")
        assert not prober.column_exists("users", "invitationExpires")

    def test_index_exists_exact_and_substring(self, db):
        db.execute("CREATE INDEX idx_users_club_active ON users(clubId, isActive)")
        prober = SchemaProber(db)
        assert prober.index_exists("idx_users_club_active")
        assert prober.index_exists("users_club")
        assert not prober.index_exists("idx_clubs_name")

    def test_index_exists_snake_case_variant(self, db):
        db.execute("CREATE INDEX idx_users_is_active ON users(isActive)")
        assert SchemaProber(db).index_exists("isActive")

    def test_probing_is_idempotent(self, db):
        prober = SchemaProber(db)
        first = prober.list_indexes()
        second = prober.list_indexes()
        assert first == second

    def test_rejects_unsafe_identifiers(self, db):
        with pytest.raises(ValueError):
            SchemaProber(db).column_exists("users; DROP TABLE users", "id")
