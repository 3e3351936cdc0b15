"""
════════════════════════════════════════════════════════════
SERVICE - Numérotation des devis
════════════════════════════════════════════════════════════
Format: PREFIXE-AAAA-NNN (ex: DEV-2024-001), séquence remise à 1
chaque année.

La dernière séquence attribuée est conservée dans compteurs_numeros:
un numéro n'est jamais réattribué, même après suppression du devis.
"""

import re
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import CompteurNumero, Devis


_RE_SEQUENCE = re.compile(r"\s*(\d+)")


def prefixe_annee(prefixe: str, annee: int) -> str:
    """Construire la base commune des numéros d'une année (ex: DEV-2024-)"""
    return f"{prefixe}-{annee}-"


def sequence_numero(numero: Optional[str], base: str) -> int:
    """Séquence d'un numéro de la base donnée, 0 si absent ou illisible"""
    if numero and numero.startswith(base):
        match = _RE_SEQUENCE.match(numero[len(base):])
        if match:
            return int(match.group(1))
    return 0


def numero_suivant(dernier: Optional[str], base: str) -> str:
    """
    Calculer le numéro qui suit `dernier` pour la base donnée.

    Un numéro absent ou illisible (données corrompues) redémarre la
    séquence à 1 plutôt que de bloquer la création.
    """
    return f"{base}{sequence_numero(dernier, base) + 1:03d}"


def allouer_numero_devis(
    db: Session,
    prefixe: str = "DEV",
    annee: Optional[int] = None
) -> str:
    """
    Allouer le prochain numéro de devis de l'année.

    Le compteur est avancé dans la transaction courante, sans commit:
    il est enregistré avec le devis par creer_devis(). La séquence
    repart du plus grand des deux: compteur ou plus grand numéro
    existant (devis antérieurs au compteur).

    Aucun verrou n'est pris: un conflit concurrent lève IntegrityError
    (numero_devis unique, clé du compteur) au commit et creer_devis()
    rejoue l'allocation.
    """
    base = prefixe_annee(prefixe, annee or date.today().year)

    dernier = db.execute(
        select(Devis.numero_devis)
        .where(Devis.numero_devis.like(f"{base}%"))
        .order_by(Devis.numero_devis.desc())
        .limit(1)
    ).scalar_one_or_none()

    compteur = db.get(CompteurNumero, base)
    if compteur is None:
        compteur = CompteurNumero(base=base, dernier=0)
        db.add(compteur)

    compteur.dernier = max(compteur.dernier or 0, sequence_numero(dernier, base)) + 1
    return f"{base}{compteur.dernier:03d}"
