"""dedupe promotions and enforce unique promotion names

Imports used to look promotions up by exact name and insert when missing,
so concurrent or differently-cased imports created duplicate rows. This
revision adds a normalized ``name_key``, folds duplicates into the oldest
promotion (moving links and history), and makes ``name_key`` unique.

Revision ID: 20251002_dedupe_promotions
Revises: 20251001_initial_schema
Create Date: 2025-10-02 14:03:27.540917

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20251002_dedupe_promotions'
down_revision: Union[str, None] = '20251001_initial_schema'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _name_key(name) -> str:
    # Same normalization as betpromo.db.models.promotion_name_key
    return " ".join((name or "").split()).casefold()


def upgrade() -> None:
    """Upgrade schema."""
    conn = op.get_bind()
    op.add_column('promotions', sa.Column('name_key', sa.String(length=255), nullable=True))
    op.add_column('staging_imports', sa.Column('promotion_key', sa.String(length=255), nullable=True))

    # 1. Backfill normalized keys
    keep_by_key = {}
    duplicates = []
    for promo_id, name in conn.execute(sa.text("SELECT id, name FROM promotions ORDER BY id")):
        key = _name_key(name)
        conn.execute(sa.text("UPDATE promotions SET name_key = :key WHERE id = :id"), {"key": key, "id": promo_id})
        if key in keep_by_key:
            duplicates.append((promo_id, keep_by_key[key]))
        else:
            keep_by_key[key] = promo_id
    for staged_name, in conn.execute(sa.text("SELECT DISTINCT promotion_name FROM staging_imports WHERE promotion_name IS NOT NULL")).fetchall():
        conn.execute(
            sa.text("UPDATE staging_imports SET promotion_key = :key WHERE promotion_name = :name"),
            {"key": _name_key(staged_name), "name": staged_name},
        )

    # 2. Fold each duplicate into the oldest promotion with the same key
    for dup_id, keep_id in duplicates:
        # Links that would collide with an existing link on the kept promotion
        conn.execute(
            sa.text(
                "DELETE FROM user_promotions WHERE promotion_id = :dup AND smartico_user_id IN "
                "(SELECT smartico_user_id FROM user_promotions WHERE promotion_id = :keep)"
            ),
            {"dup": dup_id, "keep": keep_id},
        )
        conn.execute(sa.text("UPDATE user_promotions SET promotion_id = :keep WHERE promotion_id = :dup"), {"dup": dup_id, "keep": keep_id})
        conn.execute(sa.text("UPDATE user_promotion_history SET promotion_id = :keep WHERE promotion_id = :dup"), {"dup": dup_id, "keep": keep_id})
        conn.execute(sa.text("DELETE FROM promotions WHERE id = :dup"), {"dup": dup_id})

    # 3. Enforce
    op.alter_column('promotions', 'name_key', existing_type=sa.String(length=255), nullable=False)
    op.create_index('ux_promotions_name_key', 'promotions', ['name_key'], unique=True)
    op.create_index('ix_staging_imports_promotion_key', 'staging_imports', ['promotion_key'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_staging_imports_promotion_key', table_name='staging_imports')
    op.drop_index('ux_promotions_name_key', table_name='promotions')
    op.drop_column('staging_imports', 'promotion_key')
    op.drop_column('promotions', 'name_key')
