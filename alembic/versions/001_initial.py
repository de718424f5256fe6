"""001 Initial schema - beds, customers, packages, bed allocations, invoices

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'beds',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('bed_number', sa.String(20), nullable=False, unique=True),
        sa.Column('display_name', sa.String(100), nullable=True),
        sa.Column('grid_row', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('grid_col', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('bed_type', sa.String(30), server_default='standard'),
        sa.Column('hourly_rate', sa.Numeric(10, 2), server_default='0'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='available'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('is_deleted', sa.Boolean(), server_default=sa.false()),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_bed_grid', 'beds', ['grid_row', 'grid_col'])
    op.create_index('ix_beds_is_deleted', 'beds', ['is_deleted'])

    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('phone', sa.String(20), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index('ix_customers_phone', 'customers', ['phone'], unique=True)

    op.create_table(
        'packages',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), server_default='0'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        'bed_allocations',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('booking_number', sa.String(20), nullable=False, unique=True),
        sa.Column('bed_id', sa.Integer(), sa.ForeignKey('beds.id', ondelete='CASCADE'), nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id', ondelete='SET NULL'), nullable=True),
        sa.Column('package_id', sa.Integer(), sa.ForeignKey('packages.id', ondelete='SET NULL'), nullable=True),
        sa.Column('membership_package_id', sa.Integer(), nullable=True),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='confirmed'),
        sa.Column('payment_status', sa.String(20), nullable=False, server_default='unpaid'),
        sa.Column('total_amount', sa.Numeric(10, 2), server_default='0'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        sa.CheckConstraint('end_time > start_time', name='ck_allocation_window'),
    )
    op.create_index('ix_allocation_bed_window', 'bed_allocations', ['bed_id', 'start_time', 'end_time'])
    op.create_index('ix_allocation_status_start', 'bed_allocations', ['status', 'start_time'])

    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('invoice_number', sa.String(20), nullable=False, unique=True),
        sa.Column('allocation_id', sa.Integer(), sa.ForeignKey('bed_allocations.id', ondelete='SET NULL'), nullable=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id', ondelete='SET NULL'), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
        sa.Column('payment_status', sa.String(20), nullable=False, server_default='unpaid'),
        sa.Column('total_amount', sa.Numeric(10, 2), server_default='0'),
        sa.Column('paid_amount', sa.Numeric(10, 2), server_default='0'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index('ix_invoice_allocation', 'invoices', ['allocation_id'])


def downgrade():
    op.drop_index('ix_invoice_allocation', table_name='invoices')
    op.drop_table('invoices')
    op.drop_index('ix_allocation_status_start', table_name='bed_allocations')
    op.drop_index('ix_allocation_bed_window', table_name='bed_allocations')
    op.drop_table('bed_allocations')
    op.drop_table('packages')
    op.drop_index('ix_customers_phone', table_name='customers')
    op.drop_table('customers')
    op.drop_index('ix_beds_is_deleted', table_name='beds')
    op.drop_index('ix_bed_grid', table_name='beds')
    op.drop_table('beds')
