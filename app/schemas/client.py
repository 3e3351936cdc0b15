"""
════════════════════════════════════════════════════════════
SCHEMAS - Clients (agrégés depuis les devis)
════════════════════════════════════════════════════════════
"""

from typing import Optional, List
from datetime import date

from app.schemas.commun import SchemaBase


class ClientResponse(SchemaBase):
    nom: str
    adresse: Optional[str] = None
    telephone: Optional[str] = None
    email: Optional[str] = None
    siret: Optional[str] = None
    total_devis: int = 0
    total_montant: float = 0.0
    montant_accepte: float = 0.0
    dernier_devis: date
    devis_ids: List[int] = []


class ClientListResponse(SchemaBase):
    clients: List[ClientResponse]
    total: int
