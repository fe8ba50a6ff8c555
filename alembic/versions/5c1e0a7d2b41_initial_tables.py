"""initial tables

Revision ID: 5c1e0a7d2b41
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import sqlmodel


# revision identifiers, used by Alembic.
revision: str = '5c1e0a7d2b41'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('email', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('phone', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('mobile', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('address', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_user_email'), 'user', ['email'], unique=True)
    op.create_index(op.f('ix_user_mobile'), 'user', ['mobile'], unique=False)

    op.create_table(
        'admin',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('email', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('name', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('password', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('role', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_admin_username'), 'admin', ['username'], unique=True)
    op.create_index(op.f('ix_admin_email'), 'admin', ['email'], unique=True)

    op.create_table(
        'payment',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('currency', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('payment_mode', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('gateway', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('status', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('receipt_number', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('razorpay_order_id', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('razorpay_payment_id', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('razorpay_signature', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('phonepe_transaction_id', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('cashfree_order_id', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('cashfree_payment_id', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('cashfree_payment_method', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('cashfree_payment_status', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('cashfree_payment_time', sa.DateTime(), nullable=True),
        sa.Column('utr', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_payment_user_id'), 'payment', ['user_id'], unique=False)
    op.create_index(op.f('ix_payment_status'), 'payment', ['status'], unique=False)
    op.create_index(op.f('ix_payment_receipt_number'), 'payment', ['receipt_number'], unique=True)
    op.create_index(op.f('ix_payment_razorpay_order_id'), 'payment', ['razorpay_order_id'], unique=False)
    op.create_index(op.f('ix_payment_cashfree_order_id'), 'payment', ['cashfree_order_id'], unique=False)

    op.create_table(
        'receipt',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('payment_id', sa.Integer(), nullable=False),
        sa.Column('receipt_number', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('generated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['payment_id'], ['payment.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_receipt_payment_id'), 'receipt', ['payment_id'], unique=True)

    op.create_table(
        'reminder',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('payment_id', sa.Integer(), nullable=False),
        sa.Column('channel', sa.Enum('email', 'whatsapp', name='reminderchannel'), nullable=False),
        sa.Column('message', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('status', sa.Enum('sent', 'error', name='reminderstatus'), nullable=False),
        sa.Column('error', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('sent_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['payment_id'], ['payment.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_reminder_payment_id'), 'reminder', ['payment_id'], unique=False)


def downgrade():
    op.drop_index(op.f('ix_reminder_payment_id'), table_name='reminder')
    op.drop_table('reminder')
    op.drop_index(op.f('ix_receipt_payment_id'), table_name='receipt')
    op.drop_table('receipt')
    op.drop_index(op.f('ix_payment_cashfree_order_id'), table_name='payment')
    op.drop_index(op.f('ix_payment_razorpay_order_id'), table_name='payment')
    op.drop_index(op.f('ix_payment_receipt_number'), table_name='payment')
    op.drop_index(op.f('ix_payment_status'), table_name='payment')
    op.drop_index(op.f('ix_payment_user_id'), table_name='payment')
    op.drop_table('payment')
    op.drop_index(op.f('ix_admin_email'), table_name='admin')
    op.drop_index(op.f('ix_admin_username'), table_name='admin')
    op.drop_table('admin')
    op.drop_index(op.f('ix_user_mobile'), table_name='user')
    op.drop_index(op.f('ix_user_email'), table_name='user')
    op.drop_table('user')
    sa.Enum(name='reminderstatus').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='reminderchannel').drop(op.get_bind(), checkfirst=True)
