import pytest
from alembic import command
from sqlalchemy import inspect, text
from sqlalchemy.exc import IntegrityError


pytestmark = pytest.mark.integration

INITIAL = "20251001_initial_schema"


def test_alembic_upgrade_and_downgrade_cycle(pg_engine, alembic_config):
    """Migrations upgrade from base to head and cleanly downgrade back to base."""
    command.downgrade(alembic_config, "base")
    assert "promotions" not in inspect(pg_engine).get_table_names()

    command.upgrade(alembic_config, "head")
    inspector = inspect(pg_engine)
    indexes = {ix["name"]: ix for ix in inspector.get_indexes("promotions")}
    assert indexes["ux_promotions_name_key"]["unique"]
    staging_columns = {c["name"] for c in inspector.get_columns("staging_imports")}
    assert "promotion_key" in staging_columns


def test_dedupe_migration_folds_duplicate_promotions(pg_engine, alembic_config, pg_sessionmaker):
    command.downgrade(alembic_config, INITIAL)
    try:
        with pg_engine.begin() as conn:
            conn.execute(text("INSERT INTO end_users (smartico_user_id) VALUES (1), (2)"))
            keep, dup_a, dup_b, other = [
                conn.execute(text("INSERT INTO promotions (name) VALUES (:n) RETURNING id"), {"n": n}).scalar_one()
                for n in ("Welcome Bonus", "welcome  bonus", "WELCOME BONUS", "Cashback")
            ]
            conn.execute(
                text(
                    "INSERT INTO user_promotions (smartico_user_id, promotion_id) VALUES "
                    "(1, :keep), (1, :dup_a), (2, :dup_b), (2, :other)"
                ),
                {"keep": keep, "dup_a": dup_a, "dup_b": dup_b, "other": other},
            )
            conn.execute(
                text(
                    "INSERT INTO user_promotion_history (smartico_user_id, promotion_id, status, operation_type) "
                    "VALUES (2, :dup_b, 'active', 'insert')"
                ),
                {"dup_b": dup_b},
            )
            conn.execute(
                text("INSERT INTO staging_imports (smartico_user_id, promotion_name, filename) VALUES (3, ' Cashback ', 'x.csv')")
            )

        command.upgrade(alembic_config, "head")

        with pg_engine.connect() as conn:
            promos = conn.execute(text("SELECT id, name_key FROM promotions ORDER BY id")).all()
            assert [tuple(p) for p in promos] == [(keep, "welcome bonus"), (other, "cashback")]
            links = conn.execute(
                text("SELECT smartico_user_id, promotion_id FROM user_promotions ORDER BY 1, 2")
            ).all()
            assert [tuple(link) for link in links] == [(1, keep), (2, keep), (2, other)]
            history_promo = conn.execute(text("SELECT promotion_id FROM user_promotion_history")).scalar_one()
            assert history_promo == keep
            staged_key = conn.execute(text("SELECT promotion_key FROM staging_imports")).scalar_one()
            assert staged_key == "cashback"

            with pytest.raises(IntegrityError):
                conn.execute(text("INSERT INTO promotions (name, name_key) VALUES ('Cashback!', 'cashback')"))
    finally:
        command.upgrade(alembic_config, "head")
