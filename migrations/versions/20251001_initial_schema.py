"""initial promotions schema

Revision ID: 20251001_initial_schema
Revises:
Create Date: 2025-10-01 09:12:41.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '20251001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'end_users',
        sa.Column('smartico_user_id', sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column('user_ext_id', sa.String(length=255), nullable=True),
        sa.Column('core_sm_brand_id', sa.BigInteger(), nullable=True),
        sa.Column('crm_brand_id', sa.BigInteger(), nullable=True),
        sa.Column('ext_brand_id', sa.String(length=255), nullable=True),
        sa.Column('crm_brand_name', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('smartico_user_id > 0', name='ck_end_users_smartico_user_id_positive'),
    )
    op.create_index('ix_end_users_user_ext_id', 'end_users', ['user_ext_id'])
    op.create_index('ix_end_users_crm_brand_id', 'end_users', ['crm_brand_id'])
    op.create_index('ix_end_users_updated_at', 'end_users', ['updated_at'])

    # Promotion names were not unique yet; see 20251002_dedupe_promotions.
    op.create_table(
        'promotions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('rules', sa.Text(), nullable=True),
        sa.Column('start_date', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('end_date', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('status', sa.String(length=20), server_default='active', nullable=False),
        sa.Column('brand', sa.String(length=100), nullable=True),
        sa.Column('kind', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint("status in ('active','inactive','scheduled','expired')", name='ck_promotions_status'),
    )
    op.create_index('ix_promotions_status', 'promotions', ['status'])
    op.create_index('ix_promotions_created_at', 'promotions', ['created_at'])

    op.create_table(
        'user_promotions',
        sa.Column('smartico_user_id', sa.BigInteger(), sa.ForeignKey('end_users.smartico_user_id', ondelete='CASCADE'), primary_key=True),
        sa.Column('promotion_id', sa.Integer(), sa.ForeignKey('promotions.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('linked_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('start_date', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('end_date', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('rules', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), server_default='active', nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint("status in ('active','inactive','expired')", name='ck_user_promotions_status'),
    )
    op.create_index('ix_user_promotions_promotion_id_status', 'user_promotions', ['promotion_id', 'status'])
    op.create_index('ix_user_promotions_user_status', 'user_promotions', ['smartico_user_id', 'status'])

    op.create_table(
        'user_promotion_history',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('smartico_user_id', sa.BigInteger(), sa.ForeignKey('end_users.smartico_user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('promotion_id', sa.Integer(), sa.ForeignKey('promotions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('filename', sa.String(length=255), nullable=True),
        sa.Column('added_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('rules', sa.Text(), nullable=True),
        sa.Column('start_date', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('end_date', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('operation_type', sa.String(length=20), nullable=False),
        sa.CheckConstraint(
            "operation_type in ('insert','update','delete','manual_insert')",
            name='ck_user_promotion_history_operation_type',
        ),
    )
    op.create_index('ix_user_promotion_history_user_added', 'user_promotion_history', ['smartico_user_id', 'added_at'])
    op.create_index('ix_user_promotion_history_promotion_id', 'user_promotion_history', ['promotion_id'])
    op.create_index('ix_user_promotion_history_filename', 'user_promotion_history', ['filename'])

    op.create_table(
        'staging_imports',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('smartico_user_id', sa.BigInteger(), nullable=False),
        sa.Column('user_ext_id', sa.String(length=255), nullable=True),
        sa.Column('core_sm_brand_id', sa.BigInteger(), nullable=True),
        sa.Column('crm_brand_id', sa.BigInteger(), nullable=True),
        sa.Column('ext_brand_id', sa.String(length=255), nullable=True),
        sa.Column('crm_brand_name', sa.String(length=255), nullable=True),
        sa.Column('promotion_name', sa.String(length=255), nullable=True),
        sa.Column('rules', sa.Text(), nullable=True),
        sa.Column('start_date', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('end_date', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('filename', sa.String(length=255), nullable=False),
        sa.Column('imported_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('processed', sa.Boolean(), server_default=sa.false(), nullable=False),
    )
    op.create_index('ix_staging_imports_filename_processed', 'staging_imports', ['filename', 'processed'])

    op.create_table(
        'import_jobs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('filename', sa.String(length=255), nullable=False),
        sa.Column('original_filename', sa.String(length=255), nullable=True),
        sa.Column('promotion_name', sa.String(length=255), nullable=True),
        sa.Column('mode', sa.String(length=20), server_default='full', nullable=False),
        sa.Column('status', sa.Text(), sa.CheckConstraint("status IN ('pending', 'running', 'completed', 'failed')"), server_default='pending', nullable=False),
        sa.Column('progress', sa.Integer(), server_default='0', nullable=False),
        sa.Column('total', sa.Integer(), nullable=True),
        sa.Column('started_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('finished_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('error_log', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('result_summary', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint("mode in ('full','users_only')", name='ck_import_jobs_mode'),
    )
    op.create_index('ix_import_jobs_status_created_at', 'import_jobs', ['status', 'created_at'])
    op.create_index('ix_import_jobs_filename', 'import_jobs', ['filename'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_import_jobs_filename', table_name='import_jobs')
    op.drop_index('ix_import_jobs_status_created_at', table_name='import_jobs')
    op.drop_table('import_jobs')
    op.drop_index('ix_staging_imports_filename_processed', table_name='staging_imports')
    op.drop_table('staging_imports')
    op.drop_index('ix_user_promotion_history_filename', table_name='user_promotion_history')
    op.drop_index('ix_user_promotion_history_promotion_id', table_name='user_promotion_history')
    op.drop_index('ix_user_promotion_history_user_added', table_name='user_promotion_history')
    op.drop_table('user_promotion_history')
    op.drop_index('ix_user_promotions_user_status', table_name='user_promotions')
    op.drop_index('ix_user_promotions_promotion_id_status', table_name='user_promotions')
    op.drop_table('user_promotions')
    op.drop_index('ix_promotions_created_at', table_name='promotions')
    op.drop_index('ix_promotions_status', table_name='promotions')
    op.drop_table('promotions')
    op.drop_index('ix_end_users_updated_at', table_name='end_users')
    op.drop_index('ix_end_users_crm_brand_id', table_name='end_users')
    op.drop_index('ix_end_users_user_ext_id', table_name='end_users')
    op.drop_table('end_users')
