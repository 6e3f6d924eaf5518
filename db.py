from dotenv import load_dotenv
import os
import logging
from contextlib import contextmanager

import psycopg2
from psycopg2 import sql
from psycopg2.extras import RealDictCursor, execute_batch

from catalog import COUNTER_COLUMNS, FEEDBACK_TABLES, all_question_codes
from survey import StoreError, TransientStoreError

load_dotenv()

COUNTER_FIELDS = ('question_code',) + COUNTER_COLUMNS + ('total_count', 'updated_at')

INCREMENT_FUNCTION_SQL = '''
    CREATE OR REPLACE FUNCTION increment_question_counter(t_name TEXT, q_code TEXT, rating_col TEXT)
    RETURNS VOID AS $$
    BEGIN
        IF rating_col NOT IN ('very_good_4', 'good_3', 'average_2', 'below_average_1') THEN
            RAISE EXCEPTION 'unknown rating column %', rating_col;
        END IF;
        EXECUTE format(
            'UPDATE %I SET %I = %I + 1, total_count = total_count + 1, updated_at = NOW()
             WHERE question_code = $1',
            t_name, rating_col, rating_col
        ) USING q_code;
        IF NOT FOUND THEN
            RAISE EXCEPTION 'no counter row % in %', q_code, t_name;
        END IF;
    END;
    $$ LANGUAGE plpgsql
'''


def get_database_url():
    database_url = (os.getenv("DATABASE_URL") or "").strip()
    if not database_url:
        raise RuntimeError("DATABASE_URL not found. Set it in .env")
    if not database_url.startswith(('postgres://', 'postgresql://')):
        raise RuntimeError("PostgreSQL is required. Set DATABASE_URL to a postgresql:// connection string.")
    return database_url


def store_error(exc):
    """Map a psycopg2 error to the survey error taxonomy. Details go to the log only."""
    if isinstance(exc, (psycopg2.OperationalError, psycopg2.InterfaceError)):
        return TransientStoreError('Database connection failed')
    return StoreError('Database query failed')


def get_db(database_url):
    """Create a PostgreSQL DB connection."""
    return psycopg2.connect(database_url, cursor_factory=RealDictCursor, connect_timeout=10)


@contextmanager
def db_connection(database_url, commit=False):
    """Context manager for one short transaction; psycopg2 errors become StoreError."""
    try:
        conn = get_db(database_url)
    except psycopg2.Error as exc:
        logging.warning("Database connect failed: %s", exc)
        raise store_error(exc) from exc
    try:
        yield conn
        if commit:
            conn.commit()
    except psycopg2.Error as exc:
        logging.warning("Database operation failed: %s", exc)
        raise store_error(exc) from exc
    finally:
        conn.close()


def _adapt_query(query):
    return query.replace('?', '%s')


def db_execute(cursor, query, params=None):
    """
    Executes a SQL query using the provided cursor.
    Rolls back if there is an error.
    """
    if isinstance(query, str):
        query = _adapt_query(query)
    try:
        if params is None:
            return cursor.execute(query)
        return cursor.execute(query, params)
    except psycopg2.Error:
        cursor.connection.rollback()
        raise


def _checked_table(table):
    if table not in FEEDBACK_TABLES.values():
        raise ValueError(f"Unknown feedback table: {table}")
    return table


def _checked_column(column):
    if column not in COUNTER_COLUMNS:
        raise ValueError(f"Unknown counter column: {column}")
    return column


class PostgresStore:
    """Aggregate store backed by PostgreSQL: the roster plus per-department counter tables."""

    def __init__(self, database_url):
        self.database_url = database_url

    def get_student(self, roll_no):
        with db_connection(self.database_url) as conn:
            c = conn.cursor()
            db_execute(
                c,
                '''SELECT rollno, name, department, status
                   FROM all_students
                   WHERE UPPER(rollno) = UPPER(?)
                   LIMIT 1''',
                (roll_no,),
            )
            row = c.fetchone()
        return dict(row) if row else None

    def list_students(self):
        with db_connection(self.database_url) as conn:
            c = conn.cursor()
            db_execute(c, 'SELECT rollno, name, department, status FROM all_students ORDER BY rollno ASC')
            rows = c.fetchall()
        return [dict(row) for row in rows or []]

    def mark_submitted(self, roll_no):
        return self._set_status(roll_no, True)

    def clear_submitted(self, roll_no):
        return self._set_status(roll_no, False)

    def _set_status(self, roll_no, status):
        with db_connection(self.database_url, commit=True) as conn:
            c = conn.cursor()
            db_execute(c, 'UPDATE all_students SET status = ? WHERE UPPER(rollno) = UPPER(?)', (status, roll_no))
            return int(c.rowcount or 0)

    def increment_counter(self, table, code, column):
        """Atomic path: one call to the increment_question_counter database function."""
        with db_connection(self.database_url, commit=True) as conn:
            c = conn.cursor()
            db_execute(
                c,
                'SELECT increment_question_counter(?, ?, ?)',
                (_checked_table(table), code, _checked_column(column)),
            )

    def read_counter_row(self, table, code):
        query = sql.SQL("SELECT {fields} FROM {table} WHERE question_code = %s LIMIT 1").format(
            fields=sql.SQL(', ').join(sql.Identifier(f) for f in COUNTER_FIELDS),
            table=sql.Identifier(_checked_table(table)),
        )
        with db_connection(self.database_url) as conn:
            c = conn.cursor()
            db_execute(c, query, (code,))
            row = c.fetchone()
        return dict(row) if row else None

    def write_counter_row(self, table, code, values):
        """Unconditional write of the given counter columns."""
        columns = [col for col in values if col != 'updated_at']
        for col in columns:
            if col != 'total_count':
                _checked_column(col)
        assignments = [sql.SQL("{} = %s").format(sql.Identifier(col)) for col in columns]
        params = [values[col] for col in columns]
        if 'updated_at' in values:
            assignments.append(sql.SQL("updated_at = %s"))
            params.append(values['updated_at'])
        query = sql.SQL("UPDATE {table} SET {assignments} WHERE question_code = %s").format(
            table=sql.Identifier(_checked_table(table)),
            assignments=sql.SQL(', ').join(assignments),
        )
        with db_connection(self.database_url, commit=True) as conn:
            c = conn.cursor()
            db_execute(c, query, params + [code])

    def list_counter_rows(self, table):
        query = sql.SQL("SELECT {fields} FROM {table}").format(
            fields=sql.SQL(', ').join(sql.Identifier(f) for f in COUNTER_FIELDS),
            table=sql.Identifier(_checked_table(table)),
        )
        with db_connection(self.database_url) as conn:
            c = conn.cursor()
            db_execute(c, query)
            rows = c.fetchall()
        return [dict(row) for row in rows or []]


def schema_statements():
    """DDL for the roster, one counter table per department and the increment function."""
    statements = ['''
        CREATE TABLE IF NOT EXISTS all_students (
            rollno TEXT PRIMARY KEY,
            name TEXT,
            department TEXT,
            status BOOLEAN NOT NULL DEFAULT FALSE
        )
    ''']
    statements.append('CREATE UNIQUE INDEX IF NOT EXISTS uq_all_students_rollno_upper ON all_students (UPPER(rollno))')
    for table in FEEDBACK_TABLES.values():
        statements.append(f'''
            CREATE TABLE IF NOT EXISTS {table} (
                question_code TEXT PRIMARY KEY,
                very_good_4 INTEGER NOT NULL DEFAULT 0,
                good_3 INTEGER NOT NULL DEFAULT 0,
                average_2 INTEGER NOT NULL DEFAULT 0,
                below_average_1 INTEGER NOT NULL DEFAULT 0,
                total_count INTEGER NOT NULL DEFAULT 0,
                updated_at TIMESTAMPTZ DEFAULT NOW()
            )
        ''')
    statements.append(INCREMENT_FUNCTION_SQL)
    return statements


def seed_statements():
    """(table, insert-sql) pairs that create zeroed counter rows for every question code."""
    return [
        (table, f'INSERT INTO {table} (question_code) VALUES (%s) ON CONFLICT (question_code) DO NOTHING')
        for table in FEEDBACK_TABLES.values()
    ]


def init_db(database_url):
    """
    Creates all required tables in PostgreSQL if they don't exist
    and seeds one counter row per question code.
    """
    with psycopg2.connect(database_url) as conn:
        with conn.cursor() as cursor:
            for statement in schema_statements():
                db_execute(cursor, statement)
            codes = [(code,) for code in all_question_codes()]
            for table, insert_sql in seed_statements():
                execute_batch(cursor, insert_sql, codes)
            conn.commit()
    logging.info("Database initialized: %s counter tables.", len(FEEDBACK_TABLES))


def roster_counts(database_url):
    """Submitted/total counts from the roster."""
    with psycopg2.connect(database_url) as conn:
        with conn.cursor() as cursor:
            cursor.execute("SELECT COUNT(*), COUNT(*) FILTER (WHERE status) FROM all_students;")
            total, submitted = cursor.fetchone()
    return int(total or 0), int(submitted or 0)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    url = get_database_url()
    init_db(url)
    total, submitted = roster_counts(url)
    print(f"Roster: {total} student(s), {submitted} submitted.")
