"""/v1/scores - the caller's Good4It score and its history"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from good4it_gateway.api.dependencies import get_current_user_id
from good4it_gateway.api.v1.schemas import ScoreHistoryItem, ScoreHistoryResponse, ScoreResponse
from good4it_gateway.config import settings
from good4it_gateway.infrastructure.database.repositories import ScoreLedgerRepository
from good4it_gateway.infrastructure.database.session import get_db

router = APIRouter()


def _ledger(db: Session) -> ScoreLedgerRepository:
    return ScoreLedgerRepository(db, settings.score_min, settings.score_max, settings.score_default)


@router.get("/scores/me", response_model=ScoreResponse)
def get_my_score(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return ScoreResponse(
        user_id=user_id,
        score=_ledger(db).get_score(user_id),
        min_score=settings.score_min,
        max_score=settings.score_max,
    )


@router.get("/scores/me/history", response_model=ScoreHistoryResponse)
def get_my_score_history(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Most recent score changes first"""
    records = _ledger(db).history(user_id, limit=limit, offset=offset)
    return ScoreHistoryResponse(
        user_id=user_id,
        history=[ScoreHistoryItem.model_validate(r) for r in records],
    )
