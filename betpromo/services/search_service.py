"""
User search across smartico ids and external ids.

Full search is paginated; quick search returns at most ten users ranked by
exact id match first, then exact external id match, then recency.
"""
import logging
from typing import Dict, List, Literal

from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session

from betpromo.db import models
from betpromo.services.user_service import attach_promotions
from betpromo.utils.errors import ValidationFailed

logger = logging.getLogger(__name__)

SearchType = Literal["smartico_user_id", "user_ext_id", "both"]
QUICK_SEARCH_LIMIT = 10
MAX_PAGE_SIZE = 100


def _as_user_id(term: str):
    """The term as a smartico id, or None when it cannot be one."""
    if not (term.isascii() and term.isdigit()):
        return None
    value = int(term)
    return value if 0 < value <= models.MAX_USER_ID else None


def _match(term: str, search_type: str):
    U = models.EndUser
    clauses = []
    user_id = _as_user_id(term)
    if search_type in ("smartico_user_id", "both") and user_id is not None:
        clauses.append(U.smartico_user_id == user_id)
    if search_type in ("user_ext_id", "both"):
        clauses.append(func.lower(U.user_ext_id).contains(term.lower(), autoescape=True))
    return or_(*clauses) if clauses else None


def search_users(db: Session, term: str, search_type: SearchType = "both", page: int = 1, limit: int = 10) -> Dict:
    term = (term or "").strip()
    if not term:
        raise ValidationFailed("Search term is required")
    if search_type not in ("smartico_user_id", "user_ext_id", "both"):
        raise ValidationFailed("search_type must be smartico_user_id, user_ext_id or both")
    if page < 1 or not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValidationFailed(f"page must be positive and limit between 1 and {MAX_PAGE_SIZE}")

    condition = _match(term, search_type)
    if condition is None:
        users, total = [], 0
    else:
        U = models.EndUser
        query = db.query(U).filter(condition)
        total = query.count()
        users = query.order_by(U.updated_at.desc(), U.smartico_user_id).offset((page - 1) * limit).limit(limit).all()
    return {
        "items": attach_promotions(db, users, current_only=True),
        "total": total,
        "page": page,
        "limit": limit,
        "has_next": page * limit < total,
        "has_prev": page > 1,
    }


def quick_search(db: Session, term: str) -> List[Dict]:
    term = (term or "").strip()
    if not term:
        return []
    U = models.EndUser
    user_id = _as_user_id(term)
    rank = case(
        (U.smartico_user_id == (user_id if user_id is not None else -1), 0),
        (U.user_ext_id == term, 1),
        else_=2,
    )
    users = (
        db.query(U)
        .filter(_match(term, "both"))
        .order_by(rank, U.updated_at.desc(), U.smartico_user_id)
        .limit(QUICK_SEARCH_LIMIT)
        .all()
    )
    return attach_promotions(db, users, current_only=True)
