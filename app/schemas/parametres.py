"""
════════════════════════════════════════════════════════════
SCHEMAS - Paramètres de l'application
════════════════════════════════════════════════════════════
"""

from pydantic import Field

from app.config import settings
from app.schemas.commun import SchemaBase


class ParametresEntreprise(SchemaBase):
    nom: str = ""
    adresse: str = ""
    code_postal: str = ""
    ville: str = ""
    telephone: str = ""
    email: str = ""
    siret: str = ""
    tva_intracommunautaire: str = ""


class ParametresDevis(SchemaBase):
    taux_tva_defaut: float = Field(default_factory=lambda: settings.DEVIS_TAUX_TVA_DEFAUT, ge=0)
    duree_validite_defaut: int = Field(default_factory=lambda: settings.DEVIS_DUREE_VALIDITE_JOURS, ge=0)
    prefixe_numero: str = Field(
        default_factory=lambda: settings.DEVIS_PREFIXE,
        min_length=1,
        max_length=10,
        pattern=r"^[A-Za-z0-9]+$"
    )
    conditions_generales: str = ""
    notes_par_defaut: str = ""


class ParametresAffichage(SchemaBase):
    format_date: str = "fr-FR"
    devise: str = "EUR"
    langue: str = "fr"


class ParametresApplication(SchemaBase):
    entreprise: ParametresEntreprise = Field(default_factory=ParametresEntreprise)
    devis: ParametresDevis = Field(default_factory=ParametresDevis)
    affichage: ParametresAffichage = Field(default_factory=ParametresAffichage)
