"""
════════════════════════════════════════════════════════════
SCHEMAS - Import de devis
════════════════════════════════════════════════════════════
"""

from typing import List, Optional

from app.schemas.commun import SchemaBase
from app.schemas.devis import DevisDetailResponse, DevisExtrait


class ErreurImport(SchemaBase):
    ligne: int  # numéro de ligne dans la feuille (en-tête = 1)
    message: str


class ResultatImport(SchemaBase):
    success: bool = True
    message: str
    count: int = 0
    echecs: int = 0
    errors: List[ErreurImport] = []
    numeros: List[str] = []


class ResultatImportPdf(SchemaBase):
    """Résultat d'un import PDF: brouillon extrait et, hors aperçu, devis créé"""
    success: bool = True
    message: str
    apercu: bool = False
    extrait: DevisExtrait
    devis: Optional[DevisDetailResponse] = None
