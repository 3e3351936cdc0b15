"""
════════════════════════════════════════════════════════════
SCHEMAS - Devis et lignes de devis
════════════════════════════════════════════════════════════
"""

from pydantic import EmailStr, Field, field_validator
from typing import Optional, List
from datetime import date, datetime
from enum import Enum

from app.schemas.commun import SchemaBase


class StatutDevis(str, Enum):
    brouillon = "brouillon"
    envoye = "envoyé"
    accepte = "accepté"
    refuse = "refusé"
    en_cours = "en cours"
    termine = "terminé"
    annule = "annulé"


def _normaliser_statut(valeur):
    if isinstance(valeur, str):
        return valeur.strip().lower()
    return valeur


# ──────────────────────────────────────────────────────────
# Lignes de devis
# ──────────────────────────────────────────────────────────

class LigneDevisCreate(SchemaBase):
    description: str
    quantite: float = 1
    unite: str = "unité"
    prix_unitaire: float = 0
    taux_tva: Optional[float] = None  # None = taux du devis
    ordre: Optional[int] = None
    is_section: bool = False


class LigneDevisResponse(SchemaBase):
    id: int
    description: str
    quantite: Optional[float] = None
    unite: Optional[str] = None
    prix_unitaire: Optional[float] = None
    taux_tva: Optional[float] = None
    montant_ht: Optional[float] = None
    montant_tva: Optional[float] = None
    montant_ttc: Optional[float] = None
    ordre: int
    is_section: bool = False


# ──────────────────────────────────────────────────────────
# Devis
# ──────────────────────────────────────────────────────────

class DevisCreate(SchemaBase):
    client: str = Field(min_length=1)
    client_adresse: Optional[str] = None
    client_telephone: Optional[str] = None
    client_email: Optional[EmailStr] = None
    client_siret: Optional[str] = None
    type_travaux: str = Field(min_length=1)
    date_devis: Optional[date] = None
    date_validite: Optional[date] = None
    date_debut_travaux: Optional[date] = None
    taux_tva: Optional[float] = None
    statut: StatutDevis = StatutDevis.brouillon
    materiaux: Optional[str] = None
    notes: Optional[str] = None
    lignes: List[LigneDevisCreate] = []

    normaliser_statut = field_validator("statut", mode="before")(_normaliser_statut)


class DevisUpdate(SchemaBase):
    """Mise à jour partielle: seuls les champs fournis sont modifiés"""
    client: Optional[str] = Field(default=None, min_length=1)
    client_adresse: Optional[str] = None
    client_telephone: Optional[str] = None
    client_email: Optional[EmailStr] = None
    client_siret: Optional[str] = None
    type_travaux: Optional[str] = Field(default=None, min_length=1)
    date_devis: Optional[date] = None
    date_validite: Optional[date] = None
    date_debut_travaux: Optional[date] = None
    taux_tva: Optional[float] = None
    statut: Optional[StatutDevis] = None
    materiaux: Optional[str] = None
    notes: Optional[str] = None
    lignes: Optional[List[LigneDevisCreate]] = None

    normaliser_statut = field_validator("statut", mode="before")(_normaliser_statut)


class StatutUpdate(SchemaBase):
    statut: StatutDevis

    normaliser_statut = field_validator("statut", mode="before")(_normaliser_statut)


class DevisResponse(SchemaBase):
    id: int
    numero_devis: str
    client: str
    client_adresse: Optional[str] = None
    client_telephone: Optional[str] = None
    client_email: Optional[str] = None
    client_siret: Optional[str] = None
    type_travaux: str
    date_devis: date
    date_validite: Optional[date] = None
    date_debut_travaux: Optional[date] = None
    taux_tva: float
    montant_ht: float
    montant_tva: float
    montant_ttc: float
    statut: StatutDevis
    materiaux: Optional[str] = None
    notes: Optional[str] = None
    nom_fichier_pdf: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DevisDetailResponse(DevisResponse):
    """Devis avec ses lignes"""
    lignes: List[LigneDevisResponse] = []
    nb_lignes: int = 0


class DevisListResponse(SchemaBase):
    devis: List[DevisResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class DevisMessageResponse(SchemaBase):
    success: bool
    message: str


# ──────────────────────────────────────────────────────────
# Options de filtres (autocomplétion)
# ──────────────────────────────────────────────────────────

class DevisOptionsResponse(SchemaBase):
    clients: List[str] = []
    type_travaux: List[str] = []
    statuts: List[str] = []
    materiaux: List[str] = []


# ──────────────────────────────────────────────────────────
# Brouillon extrait d'un PDF
# ──────────────────────────────────────────────────────────

class LigneExtraite(SchemaBase):
    description: str
    quantite: Optional[float] = None
    unite: Optional[str] = None
    prix_unitaire: Optional[float] = None
    taux_tva: Optional[float] = None
    montant_ht: Optional[float] = None
    montant_tva: Optional[float] = None
    montant_ttc: Optional[float] = None
    ordre: int
    is_section: bool = False


class DevisExtrait(SchemaBase):
    """Brouillon de devis produit par l'extraction d'un PDF (non persisté)"""
    client: str
    client_adresse: Optional[str] = None
    type_travaux: str = "Non spécifié"
    date_devis: str  # ISO, non validé (recopie littérale du document)
    taux_tva: float
    montant_ht: float = 0
    montant_tva: float = 0
    montant_ttc: float = 0
    statut: StatutDevis = StatutDevis.brouillon
    notes: Optional[str] = None
    reference_affaire: Optional[str] = None
    affaire_suivie_par: Optional[str] = None
    lieu: Optional[str] = None
    entreprise: Optional[str] = None
    entreprise_adresse: Optional[str] = None
    lignes: List[LigneExtraite] = []
