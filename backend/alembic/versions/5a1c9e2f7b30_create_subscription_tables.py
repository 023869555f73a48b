"""create_subscription_tables

Revision ID: 5a1c9e2f7b30
Revises:
Create Date: 2026-10-19 09:12:44.318207

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5a1c9e2f7b30'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # Create process_subscriptions table
    op.create_table(
        'process_subscriptions',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('order_id', sa.BigInteger(), nullable=False),
        sa.Column('order_item_id', sa.BigInteger(), nullable=False),
        sa.Column('user_id', sa.BigInteger(), nullable=True),
        sa.Column('product_id', sa.BigInteger(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=True),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('processor_subscription_id', sa.String(length=255), nullable=True),
        sa.Column('processor_customer_id', sa.String(length=255), nullable=True),
        sa.Column('license_key', sa.String(length=255), nullable=True),
        sa.Column('billing_period', sa.String(length=20), nullable=False),
        sa.Column('billing_interval', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('trial_days', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('trial_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('next_payment', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_payment', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id', 'order_item_id', name='uq_subscription_order_item')
    )
    op.create_index(op.f('ix_process_subscriptions_id'), 'process_subscriptions', ['id'], unique=False)
    op.create_index(op.f('ix_process_subscriptions_order_id'), 'process_subscriptions', ['order_id'], unique=False)
    op.create_index(op.f('ix_process_subscriptions_user_id'), 'process_subscriptions', ['user_id'], unique=False)
    op.create_index(op.f('ix_process_subscriptions_product_id'), 'process_subscriptions', ['product_id'], unique=False)
    op.create_index(op.f('ix_process_subscriptions_processor_subscription_id'), 'process_subscriptions', ['processor_subscription_id'], unique=False)
    op.create_index(op.f('ix_process_subscriptions_status'), 'process_subscriptions', ['status'], unique=False)
    op.create_index('idx_subscription_status_next_payment', 'process_subscriptions', ['status', 'next_payment'], unique=False)
    op.create_index('idx_subscription_user_product', 'process_subscriptions', ['user_id', 'product_id'], unique=False)

    # Create order_notes table
    op.create_table(
        'order_notes',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('order_id', sa.BigInteger(), nullable=False),
        sa.Column('note', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_order_notes_id'), 'order_notes', ['id'], unique=False)
    op.create_index(op.f('ix_order_notes_order_id'), 'order_notes', ['order_id'], unique=False)

    # Create order_meta table
    op.create_table(
        'order_meta',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('order_id', sa.BigInteger(), nullable=False),
        sa.Column('meta_key', sa.String(length=255), nullable=False),
        sa.Column('meta_value', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id', 'meta_key', name='uq_order_meta_key')
    )
    op.create_index(op.f('ix_order_meta_id'), 'order_meta', ['id'], unique=False)
    op.create_index(op.f('ix_order_meta_order_id'), 'order_meta', ['order_id'], unique=False)

    # Create processor_references table
    op.create_table(
        'processor_references',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('kind', sa.String(length=20), nullable=False),
        sa.Column('local_key', sa.String(length=255), nullable=False),
        sa.Column('remote_id', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('kind', 'local_key', name='uq_processor_reference')
    )
    op.create_index(op.f('ix_processor_references_id'), 'processor_references', ['id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_processor_references_id'), table_name='processor_references')
    op.drop_table('processor_references')

    op.drop_index(op.f('ix_order_meta_order_id'), table_name='order_meta')
    op.drop_index(op.f('ix_order_meta_id'), table_name='order_meta')
    op.drop_table('order_meta')

    op.drop_index(op.f('ix_order_notes_order_id'), table_name='order_notes')
    op.drop_index(op.f('ix_order_notes_id'), table_name='order_notes')
    op.drop_table('order_notes')

    op.drop_index('idx_subscription_user_product', table_name='process_subscriptions')
    op.drop_index('idx_subscription_status_next_payment', table_name='process_subscriptions')
    op.drop_index(op.f('ix_process_subscriptions_status'), table_name='process_subscriptions')
    op.drop_index(op.f('ix_process_subscriptions_processor_subscription_id'), table_name='process_subscriptions')
    op.drop_index(op.f('ix_process_subscriptions_product_id'), table_name='process_subscriptions')
    op.drop_index(op.f('ix_process_subscriptions_user_id'), table_name='process_subscriptions')
    op.drop_index(op.f('ix_process_subscriptions_order_id'), table_name='process_subscriptions')
    op.drop_index(op.f('ix_process_subscriptions_id'), table_name='process_subscriptions')
    op.drop_table('process_subscriptions')
