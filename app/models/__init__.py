"""
════════════════════════════════════════════════════════════
MODELS - SQLAlchemy ORM Models
════════════════════════════════════════════════════════════
"""

from sqlalchemy.orm import declarative_base

Base = declarative_base()

from app.models.devis import Devis, LigneDevis, STATUTS_DEVIS
from app.models.parametres import Parametre
from app.models.compteurs import CompteurNumero

__all__ = [
    "Base",
    "CompteurNumero",
    "Devis",
    "LigneDevis",
    "Parametre",
    "STATUTS_DEVIS"
]
