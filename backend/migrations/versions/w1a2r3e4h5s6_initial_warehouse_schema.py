"""initial warehouse schema

Revision ID: w1a2r3e4h5s6
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete warehouse schema from scratch:
- products: current stock snapshot per product
- users: accounts with per-user permission flags
- stock_transactions: append-only stock ledger
- session_tokens: hashed bearer tokens
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'w1a2r3e4h5s6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # products: stock snapshot (quantity/total_weight follow the ledger)
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('company', sa.String(length=255), nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False),
        sa.Column('box_weight', sa.Float(), nullable=True),
        sa.Column('pallet_weight', sa.Float(), nullable=True),
        sa.Column('boxes_per_pallet', sa.Integer(), nullable=True),
        sa.Column('quantity', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_products_company', 'products', ['company'])
    op.create_index('ix_products_updated_at', 'products', ['updated_at'])
    op.create_index('ix_products_company_name', 'products', ['company', 'name'])

    # ============================================================================
    # users: email identity + permission flags
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('can_add_products', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('can_delete_products', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('can_manage_transactions', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('can_view_reports', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )

    # ============================================================================
    # stock_transactions: append-only ledger
    # ============================================================================
    op.create_table(
        'stock_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=8), nullable=False),
        sa.Column('quantity', sa.Float(), nullable=False),
        sa.Column('total_weight', sa.Float(), nullable=False),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('request_id', sa.String(length=64), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('request_id'),
    )
    op.create_index('ix_stock_transactions_product_id', 'stock_transactions', ['product_id'])
    op.create_index('ix_stock_transactions_type', 'stock_transactions', ['type'])
    op.create_index('ix_stock_transactions_occurred_at', 'stock_transactions', ['occurred_at'])
    op.create_index('ix_stock_transactions_product_occurred', 'stock_transactions', ['product_id', 'occurred_at'])

    # ============================================================================
    # session_tokens: hashed bearer tokens
    # ============================================================================
    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token_hash'),
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_user_active', 'session_tokens', ['user_id', 'is_revoked'])


def downgrade():
    op.drop_index('ix_session_tokens_user_active', table_name='session_tokens')
    op.drop_index('ix_session_tokens_user_id', table_name='session_tokens')
    op.drop_table('session_tokens')

    op.drop_index('ix_stock_transactions_product_occurred', table_name='stock_transactions')
    op.drop_index('ix_stock_transactions_occurred_at', table_name='stock_transactions')
    op.drop_index('ix_stock_transactions_type', table_name='stock_transactions')
    op.drop_index('ix_stock_transactions_product_id', table_name='stock_transactions')
    op.drop_table('stock_transactions')

    op.drop_table('users')

    op.drop_index('ix_products_company_name', table_name='products')
    op.drop_index('ix_products_updated_at', table_name='products')
    op.drop_index('ix_products_company', table_name='products')
    op.drop_table('products')
