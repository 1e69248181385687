from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, field_validator, model_validator
from sqlmodel import Session, select

from app.database import get_session
from app.models.pair import Pair
from app.routes.tournaments import get_tournament_or_404

router = APIRouter()


class PairCreate(BaseModel):
    category: str
    player1_name: str
    player1_ref: Optional[str] = None
    player2_name: Optional[str] = None
    player2_ref: Optional[str] = None
    confirmed: bool = False

    @field_validator("category", "player1_name")
    @classmethod
    def validate_required(cls, v):
        if not v or not v.strip():
            raise ValueError("value is required")
        return v.strip()

    @field_validator("player1_ref", "player2_ref", "player2_name")
    @classmethod
    def normalize_optional(cls, v):
        if v is None:
            return None
        v = v.strip()
        return v or None

    @model_validator(mode="after")
    def validate_distinct_players(self):
        if self.player1_ref and self.player1_ref == self.player2_ref:
            raise ValueError("player1_ref and player2_ref must differ")
        return self


class PairResponse(BaseModel):
    id: int
    tournament_id: int
    category: str
    player1_name: str
    player1_ref: Optional[str]
    player2_name: Optional[str]
    player2_ref: Optional[str]
    confirmed: bool
    created_at: datetime

    class Config:
        from_attributes = True


@router.get("/tournaments/{tournament_id}/pairs", response_model=List[PairResponse])
def list_pairs(
    tournament_id: int,
    category: Optional[str] = Query(None),
    confirmed: Optional[bool] = Query(None),
    session: Session = Depends(get_session),
):
    """List pairs in registration order, optionally filtered"""
    get_tournament_or_404(session, tournament_id)

    query = select(Pair).where(Pair.tournament_id == tournament_id)
    if category is not None:
        query = query.where(Pair.category == category)
    if confirmed is not None:
        query = query.where(Pair.confirmed == confirmed)
    return session.exec(query.order_by(Pair.id)).all()


@router.post("/tournaments/{tournament_id}/pairs", response_model=PairResponse, status_code=201)
def create_pair(tournament_id: int, pair_data: PairCreate, session: Session = Depends(get_session)):
    """Register a pair (admin entry)"""
    tournament = get_tournament_or_404(session, tournament_id)

    if tournament.categories and pair_data.category not in tournament.categories:
        raise HTTPException(
            status_code=400,
            detail=f"Category '{pair_data.category}' is not declared for this tournament: {tournament.categories}",
        )

    pair = Pair(tournament_id=tournament_id, **pair_data.model_dump())
    session.add(pair)
    session.commit()
    session.refresh(pair)
    return pair


@router.post("/pairs/{pair_id}/confirm", response_model=PairResponse)
def confirm_pair(pair_id: int, session: Session = Depends(get_session)):
    """Mark a pair confirmed; confirming twice is a no-op"""
    pair = session.get(Pair, pair_id)
    if not pair:
        raise HTTPException(status_code=404, detail="Pair not found")

    if not pair.confirmed:
        pair.confirmed = True
        session.add(pair)
        session.commit()
        session.refresh(pair)
    return pair
