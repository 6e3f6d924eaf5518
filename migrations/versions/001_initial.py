"""Initial schema for the exit survey: roster, counter tables, increment function.

Revision ID: 001_initial
Revises: 
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op

from catalog import FEEDBACK_TABLES, all_question_codes
from db import schema_statements


# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the roster table, one counter table per department, and seed every question row."""
    bind = op.get_bind()
    # exec_driver_sql keeps the '%I' placeholders in the plpgsql body intact.
    for statement in schema_statements():
        bind.exec_driver_sql(statement)

    values = ', '.join(f"('{code}')" for code in all_question_codes())
    for table in FEEDBACK_TABLES.values():
        bind.exec_driver_sql(
            f'INSERT INTO {table} (question_code) VALUES {values} ON CONFLICT (question_code) DO NOTHING'
        )


def downgrade() -> None:
    """Drop all tables (destructive)."""
    op.execute('DROP FUNCTION IF EXISTS increment_question_counter(TEXT, TEXT, TEXT)')
    for table in FEEDBACK_TABLES.values():
        op.execute(f'DROP TABLE IF EXISTS {table} CASCADE')
    op.execute('DROP TABLE IF EXISTS all_students CASCADE')
