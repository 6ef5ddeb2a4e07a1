"""Initial schema - catalog, placements, raw exchange archive and sync run log

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-02-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'catalog_items',
        sa.Column('store_identity', sa.String(), nullable=False),
        sa.Column('offer_id', sa.String(), nullable=False),
        sa.Column('product_id', sa.BigInteger(), nullable=True),
        sa.Column('marketplace_sku', sa.String(), nullable=True),
        sa.Column('seller_sku', sa.String(), nullable=True),
        sa.Column('sku_variants', sa.JSON(), nullable=True),
        sa.Column('barcode', sa.String(), nullable=True),
        sa.Column('brand', sa.String(), nullable=True),
        sa.Column('category_id', sa.BigInteger(), nullable=True),
        sa.Column('category_name', sa.String(), nullable=True),
        sa.Column('type_id', sa.BigInteger(), nullable=True),
        sa.Column('type_name', sa.String(), nullable=True),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('photo_url', sa.String(), nullable=True),
        sa.Column('visibility', sa.String(), nullable=False),
        sa.Column('hidden_reasons', sa.Text(), nullable=True),
        sa.Column('remote_created_at', sa.String(), nullable=True),
        sa.Column('archived', sa.Boolean(), nullable=False),
        sa.Column('last_synced_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('store_identity', 'offer_id'),
    )
    op.create_index('ix_catalog_items_marketplace_sku', 'catalog_items', ['marketplace_sku'])
    op.create_index('idx_catalog_items_store_seller_sku', 'catalog_items', ['store_identity', 'seller_sku'])

    op.create_table(
        'placement_rows',
        sa.Column('store_identity', sa.String(), nullable=False),
        sa.Column('warehouse_id', sa.BigInteger(), nullable=False),
        sa.Column('sku', sa.String(), nullable=False),
        sa.Column('warehouse_name', sa.String(), nullable=True),
        sa.Column('ozon_sku', sa.String(), nullable=True),
        sa.Column('seller_sku', sa.String(), nullable=True),
        sa.Column('placement_zone', sa.String(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('store_identity', 'warehouse_id', 'sku'),
    )
    op.create_index('idx_placement_rows_store_ozon_sku', 'placement_rows', ['store_identity', 'ozon_sku'])
    op.create_index('idx_placement_rows_store_seller_sku', 'placement_rows', ['store_identity', 'seller_sku'])

    op.create_table(
        'api_endpoint_registry',
        sa.Column('registry_key', sa.String(), nullable=False),
        sa.Column('method', sa.String(), nullable=False),
        sa.Column('endpoint', sa.String(), nullable=False),
        sa.Column('entity_hint', sa.String(), nullable=True),
        sa.Column('key_candidates', sa.JSON(), nullable=False),
        sa.Column('observed_paths', sa.JSON(), nullable=False),
        sa.Column('sample_count', sa.Integer(), nullable=False),
        sa.Column('first_seen_at', sa.DateTime(), nullable=False),
        sa.Column('last_seen_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('registry_key'),
    )

    op.create_table(
        'api_raw_exchanges',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('store_identity', sa.String(), nullable=True),
        sa.Column('method', sa.String(), nullable=False),
        sa.Column('endpoint', sa.String(), nullable=False),
        sa.Column('registry_key', sa.String(), nullable=False),
        sa.Column('entity_hint', sa.String(), nullable=True),
        sa.Column('request_body', sa.Text(), nullable=True),
        sa.Column('request_truncated', sa.Boolean(), nullable=False),
        sa.Column('response_body', sa.Text(), nullable=True),
        sa.Column('response_truncated', sa.Boolean(), nullable=False),
        sa.Column('response_sha256', sa.String(), nullable=True),
        sa.Column('http_status', sa.Integer(), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('fetched_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['registry_key'], ['api_endpoint_registry.registry_key']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_api_raw_exchanges_store_time', 'api_raw_exchanges', ['store_identity', 'fetched_at'])
    op.create_index('idx_api_raw_exchanges_endpoint_time', 'api_raw_exchanges', ['endpoint', 'fetched_at'])
    op.create_index('idx_api_raw_exchanges_registry_time', 'api_raw_exchanges', ['registry_key', 'fetched_at'])

    op.create_table(
        'sync_run_log',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('kind', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('finished_at', sa.DateTime(), nullable=True),
        sa.Column('item_count', sa.Integer(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('error_detail', sa.Text(), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('store_identity', sa.String(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sync_run_log_kind', 'sync_run_log', ['kind'])
    op.create_index('ix_sync_run_log_started_at', 'sync_run_log', ['started_at'])
    op.create_index('ix_sync_run_log_store_identity', 'sync_run_log', ['store_identity'])


def downgrade() -> None:
    op.drop_index('ix_sync_run_log_store_identity', table_name='sync_run_log')
    op.drop_index('ix_sync_run_log_started_at', table_name='sync_run_log')
    op.drop_index('ix_sync_run_log_kind', table_name='sync_run_log')
    op.drop_table('sync_run_log')

    op.drop_index('idx_api_raw_exchanges_registry_time', table_name='api_raw_exchanges')
    op.drop_index('idx_api_raw_exchanges_endpoint_time', table_name='api_raw_exchanges')
    op.drop_index('idx_api_raw_exchanges_store_time', table_name='api_raw_exchanges')
    op.drop_table('api_raw_exchanges')
    op.drop_table('api_endpoint_registry')

    op.drop_index('idx_placement_rows_store_seller_sku', table_name='placement_rows')
    op.drop_index('idx_placement_rows_store_ozon_sku', table_name='placement_rows')
    op.drop_table('placement_rows')

    op.drop_index('idx_catalog_items_store_seller_sku', table_name='catalog_items')
    op.drop_index('ix_catalog_items_marketplace_sku', table_name='catalog_items')
    op.drop_table('catalog_items')
