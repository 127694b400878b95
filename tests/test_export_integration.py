import os

import psycopg
import pytest
import yaml

from tablerizer.config import default_config
from tablerizer.exporter import export, export_function, export_table, run_export

from test_cli import DB_URL, empty_env_file, requires_db, run_cli


pytestmark = requires_db

SCHEMA = 'tblz_public'
PRIVATE = 'tblz_private'
ROLE = 'tblz_visitor'

SETUP_SQL = f"""
DROP SCHEMA IF EXISTS {SCHEMA} CASCADE;
DROP SCHEMA IF EXISTS {PRIVATE} CASCADE;
DO $$ BEGIN
  IF NOT EXISTS (SELECT 1 FROM pg_roles WHERE rolname = '{ROLE}') THEN
    CREATE ROLE {ROLE} NOLOGIN;
  END IF;
END $$;
CREATE SCHEMA {PRIVATE};
CREATE SCHEMA {SCHEMA};
CREATE TABLE {PRIVATE}.orgs (id serial PRIMARY KEY, name text NOT NULL);
CREATE TABLE {SCHEMA}.users (
  id serial PRIMARY KEY,
  org_id int REFERENCES {PRIVATE}.orgs (id),
  name text,
  email text UNIQUE,
  CONSTRAINT users_name_check CHECK (length(name) < 80)
);
COMMENT ON TABLE {SCHEMA}.users IS 'App users';
ALTER TABLE {SCHEMA}.users ENABLE ROW LEVEL SECURITY;
CREATE POLICY select_all ON {SCHEMA}.users FOR SELECT TO {ROLE} USING (true);
GRANT SELECT ON {SCHEMA}.users TO {ROLE};
GRANT UPDATE (name, email) ON {SCHEMA}.users TO {ROLE};
CREATE FUNCTION {SCHEMA}.tg_touch() RETURNS trigger LANGUAGE plpgsql AS $$ BEGIN RETURN NEW; END $$;
CREATE TRIGGER _100_touch BEFORE INSERT OR UPDATE ON {SCHEMA}.users
  FOR EACH ROW EXECUTE FUNCTION {SCHEMA}.tg_touch();
CREATE FUNCTION {SCHEMA}.add(a int, b int) RETURNS int LANGUAGE sql AS 'select a + b';
CREATE FUNCTION {SCHEMA}.add(a numeric, b numeric) RETURNS numeric LANGUAGE sql AS 'select a + b';
COMMENT ON FUNCTION {SCHEMA}.add(int, int) IS 'Adds two integers';
CREATE TABLE {SCHEMA}.events (id int, created date) PARTITION BY RANGE (created);
CREATE TABLE {SCHEMA}.events_2024 PARTITION OF {SCHEMA}.events FOR VALUES FROM ('2024-01-01') TO ('2025-01-01');
CREATE VIEW {SCHEMA}.user_names WITH (security_barrier=true) AS
  SELECT id, name FROM {SCHEMA}.users WITH LOCAL CHECK OPTION;
GRANT SELECT ON {SCHEMA}.user_names TO {ROLE};
CREATE MATERIALIZED VIEW {SCHEMA}.user_counts AS SELECT count(*) AS n FROM {SCHEMA}.users;
CREATE INDEX user_counts_n_idx ON {SCHEMA}.user_counts (n);
GRANT SELECT ON {SCHEMA}.user_counts TO {ROLE};
ALTER DEFAULT PRIVILEGES IN SCHEMA {SCHEMA} GRANT SELECT ON TABLES TO {ROLE};
"""


@pytest.fixture(scope='module')
def fixture_schema():
    with psycopg.connect(DB_URL, autocommit=True) as conn:
        conn.execute(SETUP_SQL)
    yield SCHEMA
    with psycopg.connect(DB_URL, autocommit=True) as conn:
        conn.execute(f"DROP SCHEMA IF EXISTS {SCHEMA} CASCADE; DROP SCHEMA IF EXISTS {PRIVATE} CASCADE;")


@pytest.fixture
def conn(fixture_schema):
    with psycopg.connect(DB_URL) as c:
        yield c


def _opts(tmp_path, **overrides):
    opts = default_config()
    opts.update({
        'schemas': [SCHEMA],
        'out': str(tmp_path / 'out'),
        'roles': [ROLE],
        'database_url': DB_URL,
    })
    opts.update(overrides)
    return opts


def _read(path) -> str:
    with open(path, 'r', encoding='utf-8') as f:
        return f.read()


def test_export_writes_expected_layout(conn, tmp_path):
    events = []
    res = export(conn, _opts(tmp_path), progress=events.append)

    base = tmp_path / 'out' / SCHEMA
    assert sorted(os.listdir(base / 'tables')) == ['events.sql', 'users.sql']
    assert sorted(os.listdir(base / 'functions')) == ['add.sql', 'add_1.sql', 'tg_touch.sql']
    assert os.listdir(base / 'views') == ['user_names.sql']
    assert os.listdir(base / 'materialized_views') == ['user_counts.sql']
    assert (base / '_default_privileges.sql').exists()

    assert res['schemas'] == [SCHEMA]
    assert res['table_files'] == 2
    assert res['function_files'] == 3
    assert res['view_files'] == 1
    assert res['materialized_view_files'] == 1
    assert res['total_files'] == 8
    assert res['output_path'] == os.path.abspath(str(tmp_path / 'out'))
    assert all(f['size'] > 0 for f in res['files'])

    assert [e['progress'] for e in events] == list(range(1, 8))
    assert {e['total'] for e in events} == {7}
    assert {e['kind'] for e in events} == {'table', 'function', 'view', 'materialized-view'}


def test_table_file_contents(conn, tmp_path):
    sql = export_table(conn, _opts(tmp_path), SCHEMA, 'users')
    assert f"ALTER TABLE {SCHEMA}.users ENABLE ROW LEVEL SECURITY;" in sql
    assert f"CREATE POLICY select_all ON {SCHEMA}.users FOR SELECT TO {ROLE} USING (true);" in sql
    assert f"GRANT SELECT ON TABLE {SCHEMA}.users TO {ROLE};" in sql
    assert f"GRANT UPDATE (name, email) ON TABLE {SCHEMA}.users TO {ROLE};" in sql
    assert "GRANT SELECT (" not in sql
    assert (
        f"CREATE TRIGGER _100_touch BEFORE INSERT OR UPDATE ON {SCHEMA}.users"
        f" FOR EACH ROW EXECUTE FUNCTION {SCHEMA}.tg_touch();"
    ) in sql
    assert sql.count("CREATE TRIGGER") == 1
    assert "Table Comment: App users" in sql
    assert f"org_id → {PRIVATE}.orgs.id" in sql
    assert "users_email_key: email" in sql
    assert sql.count("users_pkey") == 1
    assert "users_name_check: (length(name) < 80)" in sql
    assert "-- Date:" not in sql


def test_table_file_is_idempotent(conn, tmp_path):
    opts = _opts(tmp_path)
    first = export_table(conn, opts, SCHEMA, 'users')
    conn.commit()
    with psycopg.connect(DB_URL, autocommit=True) as other:
        other.execute(first)
        other.execute(first)
    assert export_table(conn, opts, SCHEMA, 'users') == first


def test_role_mappings_and_date(conn, tmp_path):
    opts = _opts(tmp_path, role_mappings={ROLE: ':DATABASE_VISITOR'}, include_date=True)
    res = export(conn, opts)
    for f in res['files']:
        content = _read(f['path'])
        assert ROLE not in content, f['path']
        assert "-- Date:" in content
    users = _read(tmp_path / 'out' / SCHEMA / 'tables' / 'users.sql')
    assert f"GRANT SELECT ON TABLE {SCHEMA}.users TO :DATABASE_VISITOR;" in users
    defaults = _read(tmp_path / 'out' / SCHEMA / '_default_privileges.sql')
    assert f"IN SCHEMA {SCHEMA} GRANT SELECT ON TABLES TO :DATABASE_VISITOR;" in defaults


def test_partition_parent_only(conn, tmp_path):
    sql = export_table(conn, _opts(tmp_path), SCHEMA, 'events')
    assert f"Table: {SCHEMA}.events" in sql
    res = export(conn, _opts(tmp_path, scope='tables'))
    assert not any(f['name'] == 'events_2024' for f in res['files'])


def test_materialized_view_file(conn, tmp_path):
    export(conn, _opts(tmp_path, scope='materialized-views'))
    sql = _read(tmp_path / 'out' / SCHEMA / 'materialized_views' / 'user_counts.sql')
    assert "CREATE MATERIALIZED VIEW" not in sql
    assert "user_counts_n_idx" in sql
    assert f"GRANT SELECT ON TABLE {SCHEMA}.user_counts TO {ROLE};" in sql


def test_view_file(conn, tmp_path):
    export(conn, _opts(tmp_path, scope='views'))
    sql = _read(tmp_path / 'out' / SCHEMA / 'views' / 'user_names.sql')
    assert f"CREATE OR REPLACE VIEW {SCHEMA}.user_names WITH (security_barrier=true) AS" in sql
    assert "WITH LOCAL CHECK OPTION;" in sql
    assert f"GRANT SELECT ON TABLE {SCHEMA}.user_names TO {ROLE};" in sql


def _view_options(conn, name):
    with conn.cursor() as cur:
        cur.execute(
            "SELECT c.reloptions::text[] FROM pg_class c JOIN pg_namespace n ON n.oid = c.relnamespace"
            " WHERE n.nspname = %s AND c.relname = %s",
            (SCHEMA, name),
        )
        return sorted(cur.fetchone()[0] or [])


def test_view_file_keeps_options_when_applied(conn, tmp_path):
    before = _view_options(conn, 'user_names')
    assert before == ['check_option=local', 'security_barrier=true']

    export(conn, _opts(tmp_path, scope='views'))
    sql = _read(tmp_path / 'out' / SCHEMA / 'views' / 'user_names.sql')
    conn.commit()
    with psycopg.connect(DB_URL, autocommit=True) as other:
        other.execute(sql)
        assert _view_options(other, 'user_names') == before


def test_function_files(conn, tmp_path):
    sql = export_function(conn, _opts(tmp_path), SCHEMA, 'add', output_path=str(tmp_path / 'add.sql'))
    assert (tmp_path / 'add.sql').exists()
    assert f"COMMENT ON FUNCTION {SCHEMA}.add(a integer, b integer) IS 'Adds two integers';" in sql
    assert f"GRANT EXECUTE ON FUNCTION {SCHEMA}.add(a integer, b integer) TO {ROLE};" in sql

    res = export(conn, _opts(tmp_path, scope='functions'))
    numeric = _read(tmp_path / 'out' / SCHEMA / 'functions' / 'add_1.sql')
    assert "a numeric, b numeric" in numeric
    assert res['table_files'] == 0
    assert not (tmp_path / 'out' / SCHEMA / '_default_privileges.sql').exists()


def test_unknown_objects_raise(conn, tmp_path):
    with pytest.raises(LookupError):
        export_function(conn, _opts(tmp_path), SCHEMA, 'no_such_function')
    with pytest.raises(LookupError):
        export_table(conn, _opts(tmp_path), SCHEMA, 'no_such_table')


def test_clean_removes_only_generated_files(conn, tmp_path):
    stale_dir = tmp_path / 'out' / SCHEMA / 'tables'
    stale_dir.mkdir(parents=True)
    (stale_dir / 'dropped_table.sql').write_text('-- old\n')
    notes = tmp_path / 'out' / SCHEMA / 'NOTES.md'
    notes.write_text('keep me\n')

    export(conn, _opts(tmp_path, scope='tables', clean=False))
    assert (stale_dir / 'dropped_table.sql').exists()

    export(conn, _opts(tmp_path, scope='tables', clean=True))
    assert not (stale_dir / 'dropped_table.sql').exists()
    assert notes.exists()


def test_run_export_opens_its_own_connection(fixture_schema, tmp_path):
    res = run_export(_opts(tmp_path, scope='views'))
    assert res['view_files'] == 1


def test_cli_export_end_to_end(fixture_schema, tmp_path):
    out_dir = tmp_path / 'cli_out'
    rc, out, err = run_cli([
        "--env", empty_env_file(tmp_path),
        "--schemas", SCHEMA,
        "--roles", ROLE,
        "--out", str(out_dir),
        "--scope", "tables,functions",
        "--role-mapping", f"{ROLE}=:DATABASE_VISITOR",
    ], env={"DATABASE_URL": DB_URL}, log_dir=str(tmp_path / 'logs'))
    assert rc == 0, err
    env_out = yaml.safe_load(out)
    assert env_out['request']['schemas'] == [SCHEMA]
    assert env_out['run']['result'] == 'exported'
    assert env_out['run']['counts']['tables'] == 2
    assert env_out['run']['counts']['functions'] == 3
    assert env_out['run']['counts']['views'] == 0
    assert ':DATABASE_VISITOR' in (out_dir / SCHEMA / 'tables' / 'users.sql').read_text()
