"""
════════════════════════════════════════════════════════════
ROUTER - Paramètres de l'application
════════════════════════════════════════════════════════════
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.parametres import ParametresApplication
from app.services.parametres import enregistrer_parametres, get_parametres


router = APIRouter(prefix="/parametres", tags=["Paramètres"])


@router.get("", response_model=ParametresApplication)
async def read_parametres(parametres: ParametresApplication = Depends(get_parametres)):
    """Paramètres courants (valeurs enregistrées complétées par les défauts)"""
    return parametres


@router.put("", response_model=ParametresApplication)
async def update_parametres(data: ParametresApplication, db: Session = Depends(get_db)):
    """Remplacer les paramètres (les champs absents reprennent leur valeur par défaut)"""
    return enregistrer_parametres(db, data)
