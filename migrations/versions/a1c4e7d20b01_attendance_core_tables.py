"""attendance core tables: shifts, employees, holidays, day records

Revision ID: a1c4e7d20b01
Revises:
Create Date: 2026-09-14 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1c4e7d20b01'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'shifts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=20), nullable=False, unique=True),
        sa.Column('name', sa.String(length=60), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('grace_minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'employees',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=32), nullable=False, unique=True),
        sa.Column('device_user_id', sa.String(length=32), nullable=True, unique=True),
        sa.Column('name', sa.String(length=160), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='SHIFT'),
        sa.Column('shift_id', sa.Integer(), sa.ForeignKey('shifts.id', ondelete='SET NULL'), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("role in ('FLEXIBLE','SHIFT')", name='ck_employee_role'),
    )
    op.create_index('ix_employees_shift_id', 'employees', ['shift_id'])
    op.create_index('ix_emp_role_active', 'employees', ['role', 'active'])

    op.create_table(
        'holiday_rules',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=32), nullable=False, server_default='NATIONAL'),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('month', sa.SmallInteger(), nullable=True),
        sa.Column('day', sa.SmallInteger(), nullable=True),
        sa.Column('lunar_month', sa.SmallInteger(), nullable=True),
        sa.Column('lunar_day', sa.SmallInteger(), nullable=True),
        sa.Column('formula_code', sa.String(length=50), nullable=True),
        sa.Column('year_from', sa.Integer(), nullable=True),
        sa.Column('year_to', sa.Integer(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("kind in ('FIXED','LUNAR','FORMULA')", name='ck_holiday_rule_kind'),
    )
    op.create_index('ix_holiday_rule_years', 'holiday_rules', ['year_from', 'year_to'])

    op.create_table(
        'holiday_cache',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('date', sa.Date(), nullable=False, unique=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=32), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_holiday_cache_year', 'holiday_cache', ['year'])

    op.create_table(
        'day_records',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('employee_code', sa.String(length=32), nullable=False),
        sa.Column('employee_name', sa.String(length=160), nullable=True),
        sa.Column('work_date', sa.Date(), nullable=False),
        sa.Column('first_in', sa.DateTime(), nullable=False),
        sa.Column('last_out', sa.DateTime(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='PRESENT'),
        sa.Column('verification_method', sa.String(length=32), nullable=True),
        sa.Column('source_device_id', sa.String(length=64), nullable=True),
        sa.Column('source_batch_id', sa.String(length=64), nullable=True),
        sa.Column('deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("status in ('PRESENT','LATE')", name='ck_day_record_status'),
    )
    op.create_index('ix_day_records_employee_id', 'day_records', ['employee_id'])
    op.create_index('ix_day_records_employee_code', 'day_records', ['employee_code'])
    op.create_index('ix_day_records_source_device_id', 'day_records', ['source_device_id'])
    op.create_index('ix_day_records_source_batch_id', 'day_records', ['source_batch_id'])
    op.create_index('ix_day_record_period', 'day_records', ['employee_id', 'work_date', 'deleted'])
    # duplicate-guard key and one-active-record-per-day, both over live rows only
    op.create_index(
        'uq_day_record_first_in', 'day_records', ['employee_id', 'work_date', 'first_in'],
        unique=True,
        postgresql_where=sa.text('deleted = false'),
        sqlite_where=sa.text('deleted = 0'),
    )
    op.create_index(
        'uq_day_record_employee_day', 'day_records', ['employee_id', 'work_date'],
        unique=True,
        postgresql_where=sa.text('deleted = false'),
        sqlite_where=sa.text('deleted = 0'),
    )


def downgrade() -> None:
    op.drop_index('uq_day_record_employee_day', table_name='day_records')
    op.drop_index('uq_day_record_first_in', table_name='day_records')
    op.drop_index('ix_day_record_period', table_name='day_records')
    op.drop_index('ix_day_records_source_batch_id', table_name='day_records')
    op.drop_index('ix_day_records_source_device_id', table_name='day_records')
    op.drop_index('ix_day_records_employee_code', table_name='day_records')
    op.drop_index('ix_day_records_employee_id', table_name='day_records')
    op.drop_table('day_records')
    op.drop_index('ix_holiday_cache_year', table_name='holiday_cache')
    op.drop_table('holiday_cache')
    op.drop_index('ix_holiday_rule_years', table_name='holiday_rules')
    op.drop_table('holiday_rules')
    op.drop_index('ix_emp_role_active', table_name='employees')
    op.drop_index('ix_employees_shift_id', table_name='employees')
    op.drop_table('employees')
    op.drop_table('shifts')
