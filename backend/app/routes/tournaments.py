from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator, model_validator
from sqlmodel import Session, select

from app.database import get_session
from app.models.tournament import Tournament
from app.settings import DEFAULT_COURTS

router = APIRouter()


class TournamentCreate(BaseModel):
    name: str
    location: Optional[str] = None
    start_date: date
    end_date: date
    available_courts: int = DEFAULT_COURTS
    categories: Optional[List[str]] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("available_courts")
    @classmethod
    def validate_courts(cls, v):
        if v < 1:
            raise ValueError("available_courts must be >= 1")
        return v

    @field_validator("categories")
    @classmethod
    def normalize_categories(cls, v):
        """Strip blanks and duplicates, keep declaration order"""
        if v is None:
            return None
        seen: List[str] = []
        for category in v:
            category = category.strip()
            if category and category not in seen:
                seen.append(category)
        return seen

    @model_validator(mode="after")
    def validate_date_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be >= start_date")
        return self


class TournamentResponse(BaseModel):
    id: int
    name: str
    location: Optional[str]
    start_date: date
    end_date: date
    available_courts: int
    categories: Optional[List[str]] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


def get_tournament_or_404(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


@router.get("/tournaments", response_model=List[TournamentResponse])
def list_tournaments(session: Session = Depends(get_session)):
    """List all tournaments"""
    return session.exec(select(Tournament).order_by(Tournament.start_date, Tournament.id)).all()


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(tournament_data: TournamentCreate, session: Session = Depends(get_session)):
    """Create a new tournament"""
    tournament = Tournament(**tournament_data.model_dump())
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Get a tournament by ID"""
    return get_tournament_or_404(session, tournament_id)
