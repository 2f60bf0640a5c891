"""initial_ledger_schema

Revision ID: a1c3e5f7b9d2
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1c3e5f7b9d2'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'member',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('member_number', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('nik', sa.String(length=32), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('joined_date', sa.Date(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('member', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_member_member_number'), ['member_number'], unique=True)

    op.create_table(
        'member_activity',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['member_id'], ['member.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('member_activity', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_member_activity_member_id'), ['member_id'], unique=False)

    op.create_table(
        'savings_movement',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('category', sa.String(length=20), nullable=False),
        sa.Column('kind', sa.String(length=20), nullable=False),
        sa.Column('movement_date', sa.DateTime(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('balance_after', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['member_id'], ['member.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('savings_movement', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_savings_movement_member_id'), ['member_id'], unique=False)
        batch_op.create_index('idx_savings_movement_key_date', ['member_id', 'category', 'movement_date', 'id'], unique=False)

    op.create_table(
        'savings_balance',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('category', sa.String(length=20), nullable=False),
        sa.Column('balance', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('last_movement_date', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['member_id'], ['member.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('member_id', 'category', name='uq_savings_balance_member_category')
    )
    with op.batch_alter_table('savings_balance', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_savings_balance_member_id'), ['member_id'], unique=False)

    op.create_table(
        'loan',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('loan_number', sa.String(length=64), nullable=True),
        sa.Column('application_date', sa.DateTime(), nullable=False),
        sa.Column('approval_date', sa.DateTime(), nullable=True),
        sa.Column('disbursement_date', sa.Date(), nullable=True),
        sa.Column('settled_date', sa.Date(), nullable=True),
        sa.Column('principal', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('term_months', sa.Integer(), nullable=False),
        sa.Column('flat_rate_percent', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['member_id'], ['member.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('loan', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_loan_member_id'), ['member_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_loan_loan_number'), ['loan_number'], unique=True)
        batch_op.create_index(batch_op.f('ix_loan_status'), ['status'], unique=False)

    op.create_table(
        'installment',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('loan_id', sa.Integer(), nullable=False),
        sa.Column('sequence_number', sa.Integer(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('amount_due', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('payment_date', sa.Date(), nullable=True),
        sa.Column('amount_paid', sa.Numeric(precision=15, scale=2), nullable=True),
        sa.Column('late_fee', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['loan_id'], ['loan.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('loan_id', 'sequence_number', name='uq_installment_loan_sequence')
    )
    with op.batch_alter_table('installment', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_installment_loan_id'), ['loan_id'], unique=False)

    op.create_table(
        'system_setting',
        sa.Column('setting_key', sa.String(length=128), nullable=False),
        sa.Column('setting_value', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('setting_key')
    )


def downgrade() -> None:
    op.drop_table('system_setting')
    with op.batch_alter_table('installment', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_installment_loan_id'))
    op.drop_table('installment')
    with op.batch_alter_table('loan', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_loan_status'))
        batch_op.drop_index(batch_op.f('ix_loan_loan_number'))
        batch_op.drop_index(batch_op.f('ix_loan_member_id'))
    op.drop_table('loan')
    with op.batch_alter_table('savings_balance', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_savings_balance_member_id'))
    op.drop_table('savings_balance')
    with op.batch_alter_table('savings_movement', schema=None) as batch_op:
        batch_op.drop_index('idx_savings_movement_key_date')
        batch_op.drop_index(batch_op.f('ix_savings_movement_member_id'))
    op.drop_table('savings_movement')
    with op.batch_alter_table('member_activity', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_member_activity_member_id'))
    op.drop_table('member_activity')
    with op.batch_alter_table('member', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_member_member_number'))
    op.drop_table('member')
