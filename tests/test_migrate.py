from sqlalchemy import text

from feedwire.db import migrate


def test_split_statements_skips_comments():
    sql = """
-- settings
CREATE TABLE a (
    id INTEGER
);

CREATE INDEX ix ON a (id);
"""
    statements = list(migrate.split_statements(sql))
    assert statements == ["CREATE TABLE a (\n    id INTEGER\n);", "CREATE INDEX ix ON a (id);"]


def test_bundled_schema_covers_required_tables():
    sql = migrate.SCHEMA_PATH.read_text()
    for table in migrate.REQUIRED_TABLES:
        assert f"CREATE TABLE IF NOT EXISTS {table} (" in sql


def test_missing_tables(engine):
    assert migrate.missing_tables(engine) == []
    with engine.begin() as conn:
        conn.execute(text("DROP TABLE pixel_events"))
    assert migrate.missing_tables(engine) == ["pixel_events"]


def test_run_migrations_on_custom_schema(engine, tmp_path):
    schema = tmp_path / "schema.sql"
    schema.write_text("-- extra\nCREATE TABLE IF NOT EXISTS feed_notes (id INTEGER PRIMARY KEY, body TEXT);\n")
    assert migrate.run_migrations(engine, schema) == 1
    with engine.connect() as conn:
        assert conn.execute(text("SELECT COUNT(*) FROM feed_notes")).scalar_one() == 0
