"""
════════════════════════════════════════════════════════════
SCHEMAS - Dashboard & Statistiques
════════════════════════════════════════════════════════════
"""

from typing import List

from app.schemas.commun import SchemaBase


# ──────────────────────────────────────────────────────────
# Totaux
# ──────────────────────────────────────────────────────────

class TotauxGlobaux(SchemaBase):
    """Montants cumulés de tous les devis"""
    devis: int = 0
    montant_ht: float = 0.0
    montant_tva: float = 0.0
    montant_ttc: float = 0.0


class TotalPeriode(SchemaBase):
    devis: int = 0
    montant_ttc: float = 0.0


class TotalEnAttente(SchemaBase):
    devis: int = 0


# ──────────────────────────────────────────────────────────
# Répartitions
# ──────────────────────────────────────────────────────────

class StatParStatut(SchemaBase):
    statut: str
    count: int
    montant_ttc: float = 0.0


class StatParType(SchemaBase):
    type: str
    count: int
    montant_ttc: float = 0.0


class EvolutionMois(SchemaBase):
    """Point mensuel (mois au format AAAA-MM)"""
    mois: str
    count: int = 0
    montant: float = 0.0


# ──────────────────────────────────────────────────────────
# Réponse complète
# ──────────────────────────────────────────────────────────

class DashboardStats(SchemaBase):
    total: TotauxGlobaux
    ce_mois: TotalPeriode
    acceptes: TotalPeriode
    en_attente: TotalEnAttente
    par_statut: List[StatParStatut] = []
    par_type: List[StatParType] = []
    evolution: List[EvolutionMois] = []
