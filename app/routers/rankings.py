# app/routers/rankings.py
from fastapi import APIRouter, Depends
from supabase import Client

from app.core.config import get_settings
from app.core.supabase_client import get_client
from app.repositories.jam_repo import JamRepository
from app.repositories.ranking_repo import RankingRepository
from app.schemas.ranking import ScoredJam, ScoredUser
from app.services.ranking_service import RankingService

router = APIRouter(prefix="/rankings", tags=["Rankings"])

settings = get_settings()
service = RankingService(JamRepository(), RankingRepository(), limit=settings.RANKING_LIMIT)


@router.get("/jams", response_model=list[ScoredJam])
def top_regular_jams(client: Client = Depends(get_client)):
    """
    Top regular (credit-priced) jams by rating and review volume.
    """
    return service.top_jams(client, is_pro=False)


@router.get("/pro-jams", response_model=list[ScoredJam])
def top_pro_jams(client: Client = Depends(get_client)):
    """
    Top pro (euro-priced) jams, same scoring as regular jams.
    """
    return service.top_jams(client, is_pro=True)


@router.get("/users", response_model=list[ScoredUser])
def top_users(client: Client = Depends(get_client)):
    """
    Top jam makers by jams created, sales and reviews written.
    """
    return service.top_users(client)
