"""
════════════════════════════════════════════════════════════
SERVICE - Calcul des montants HT / TVA / TTC
════════════════════════════════════════════════════════════
Les montants sont des Decimal arrondis au centime (arrondi
commercial, demi vers l'extérieur).

Règle ligne:   HT = q x PU ; TVA = HT x taux / 100 ; TTC = HT + TVA
Règle devis:   somme des montants de lignes déjà arrondis, puis
               nouvel arrondi de chaque somme.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, NamedTuple, Optional


CENTIME = Decimal("0.01")
ZERO = Decimal("0.00")


class Montants(NamedTuple):
    ht: Decimal
    tva: Decimal
    ttc: Decimal


def en_decimal(valeur) -> Decimal:
    """Convertir une valeur en Decimal, NaN si non numérique"""
    if isinstance(valeur, Decimal):
        return valeur
    if valeur is None or isinstance(valeur, bool):
        return Decimal("NaN")
    try:
        # str() évite de récupérer les artefacts binaires des float
        return Decimal(str(valeur).strip())
    except InvalidOperation:
        return Decimal("NaN")


def arrondir(valeur) -> Decimal:
    """Arrondir au centime, demi vers l'extérieur"""
    montant = en_decimal(valeur)
    if not montant.is_finite():
        return montant
    return montant.quantize(CENTIME, rounding=ROUND_HALF_UP)


def calculer_ligne(quantite, prix_unitaire, taux_tva) -> Montants:
    """
    Calculer les montants d'une ligne de devis

    Args:
        quantite: Quantité
        prix_unitaire: Prix unitaire HT
        taux_tva: Taux de TVA en pourcentage (20 pour 20 %)

    Returns:
        Montants(ht, tva, ttc), avec ttc == ht + tva
    """
    ht = arrondir(en_decimal(quantite) * en_decimal(prix_unitaire))
    tva = arrondir(ht * en_decimal(taux_tva) / 100)
    return Montants(ht=ht, tva=tva, ttc=ht + tva)


def calculer_totaux(montants: Iterable[Optional[Montants]]) -> Montants:
    """
    Totaliser des montants de lignes déjà arrondis.

    Les lignes de section (None) sont ignorées. Chaque somme est
    arrondie à nouveau: le TTC total peut donc s'écarter d'un centime
    de HT + TVA.
    """
    total_ht = ZERO
    total_tva = ZERO
    total_ttc = ZERO

    for m in montants:
        if m is None:
            continue
        total_ht += m.ht
        total_tva += m.tva
        total_ttc += m.ttc

    return Montants(
        ht=arrondir(total_ht),
        tva=arrondir(total_tva),
        ttc=arrondir(total_ttc)
    )


def depuis_ttc(montant_ttc, taux_tva) -> Montants:
    """Retrouver HT et TVA à partir d'un TTC (le TTC est conservé tel quel)"""
    ttc = arrondir(montant_ttc)
    taux = en_decimal(taux_tva)
    ht = arrondir(ttc / (1 + taux / 100))
    tva = arrondir(ht * taux / 100)
    return Montants(ht=ht, tva=tva, ttc=ttc)


def depuis_ht(montant_ht, taux_tva) -> Montants:
    """Compléter TVA et TTC à partir d'un HT"""
    ht = arrondir(montant_ht)
    tva = arrondir(ht * en_decimal(taux_tva) / 100)
    return Montants(ht=ht, tva=tva, ttc=ht + tva)
