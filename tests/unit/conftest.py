import pytest

from betpromo.db import models


@pytest.fixture
def user_factory(db_session):
    def _create(user_id: int, **fields):
        user = models.EndUser(smartico_user_id=user_id, **fields)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _create


@pytest.fixture
def promotion_factory(db_session):
    def _create(name: str, status: str = "active", **fields):
        promo = models.Promotion(name=name, name_key=models.promotion_name_key(name), status=status, **fields)
        db_session.add(promo)
        db_session.commit()
        db_session.refresh(promo)
        return promo
    return _create
