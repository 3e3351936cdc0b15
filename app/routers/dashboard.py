"""
════════════════════════════════════════════════════════════
ROUTER - Dashboard & Statistiques
════════════════════════════════════════════════════════════
"""

import calendar
from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db, execute_query
from app.schemas.dashboard import (
    DashboardStats,
    TotauxGlobaux,
    TotalPeriode,
    TotalEnAttente,
    StatParStatut,
    StatParType,
    EvolutionMois
)


router = APIRouter(prefix="/dashboard", tags=["Dashboard"])

NB_MOIS_EVOLUTION = 6
NB_TYPES_TRAVAUX = 5


def _mois_precedents(aujourd_hui: date, nb_mois: int) -> list:
    """Mois AAAA-MM des nb_mois derniers mois, du plus ancien au mois courant"""
    mois = []
    annee, numero = aujourd_hui.year, aujourd_hui.month
    for _ in range(nb_mois):
        mois.append(f"{annee:04d}-{numero:02d}")
        numero -= 1
        if numero == 0:
            annee, numero = annee - 1, 12
    return list(reversed(mois))


# ──────────────────────────────────────────────────────────
# Statistiques principales
# ──────────────────────────────────────────────────────────

@router.get("/stats", response_model=DashboardStats)
async def get_dashboard_stats(db: Session = Depends(get_db)):
    """Obtenir les statistiques du tableau de bord"""
    aujourd_hui = date.today()
    debut_mois = aujourd_hui.replace(day=1)
    fin_mois = aujourd_hui.replace(day=calendar.monthrange(aujourd_hui.year, aujourd_hui.month)[1])

    totaux = execute_query(db, """
        SELECT
            COUNT(*) AS devis,
            COALESCE(SUM(montant_ht), 0) AS montant_ht,
            COALESCE(SUM(montant_tva), 0) AS montant_tva,
            COALESCE(SUM(montant_ttc), 0) AS montant_ttc
        FROM devis
    """, fetch_one=True)

    ce_mois = execute_query(db, """
        SELECT COUNT(*) AS devis, COALESCE(SUM(montant_ttc), 0) AS montant_ttc
        FROM devis
        WHERE date_devis >= :debut AND date_devis <= :fin
    """, {"debut": debut_mois.isoformat(), "fin": fin_mois.isoformat()}, fetch_one=True)

    acceptes = execute_query(db, """
        SELECT COUNT(*) AS devis, COALESCE(SUM(montant_ttc), 0) AS montant_ttc
        FROM devis
        WHERE statut = 'accepté'
    """, fetch_one=True)

    en_attente = execute_query(db, """
        SELECT COUNT(*) AS devis
        FROM devis
        WHERE statut IN ('brouillon', 'envoyé')
    """, fetch_one=True)

    par_statut = execute_query(db, """
        SELECT statut, COUNT(*) AS count, COALESCE(SUM(montant_ttc), 0) AS montant_ttc
        FROM devis
        GROUP BY statut
        ORDER BY count DESC, statut
    """)

    par_type = execute_query(db, """
        SELECT type_travaux, COUNT(*) AS count, COALESCE(SUM(montant_ttc), 0) AS montant_ttc
        FROM devis
        GROUP BY type_travaux
        ORDER BY count DESC, type_travaux
        LIMIT :limite
    """, {"limite": NB_TYPES_TRAVAUX})

    # Évolution mensuelle (mois sans devis inclus à zéro)
    mois = _mois_precedents(aujourd_hui, NB_MOIS_EVOLUTION)
    evolution = {m: {"count": 0, "montant": 0.0} for m in mois}
    rows = execute_query(db, """
        SELECT date_devis, montant_ttc
        FROM devis
        WHERE date_devis >= :debut
    """, {"debut": f"{mois[0]}-01"})

    for row in rows:
        cle = str(row["date_devis"])[:7]
        if cle in evolution:
            evolution[cle]["count"] += 1
            evolution[cle]["montant"] += float(row["montant_ttc"] or 0)

    return DashboardStats(
        total=TotauxGlobaux(
            devis=totaux["devis"],
            montant_ht=float(totaux["montant_ht"]),
            montant_tva=float(totaux["montant_tva"]),
            montant_ttc=float(totaux["montant_ttc"])
        ),
        ce_mois=TotalPeriode(devis=ce_mois["devis"], montant_ttc=float(ce_mois["montant_ttc"])),
        acceptes=TotalPeriode(devis=acceptes["devis"], montant_ttc=float(acceptes["montant_ttc"])),
        en_attente=TotalEnAttente(devis=en_attente["devis"]),
        par_statut=[
            StatParStatut(statut=r["statut"], count=r["count"], montant_ttc=float(r["montant_ttc"]))
            for r in par_statut
        ],
        par_type=[
            StatParType(type=r["type_travaux"], count=r["count"], montant_ttc=float(r["montant_ttc"]))
            for r in par_type
        ],
        evolution=[
            EvolutionMois(mois=m, count=v["count"], montant=round(v["montant"], 2))
            for m, v in evolution.items()
        ]
    )
