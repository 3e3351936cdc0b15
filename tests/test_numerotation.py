"""Numérotation annuelle des devis."""

from datetime import date

from app.models import CompteurNumero, Devis
from app.services.numerotation import (
    allouer_numero_devis, numero_suivant, prefixe_annee, sequence_numero
)


def _ajouter(db, numero):
    db.add(Devis(
        numero_devis=numero,
        client="Client",
        type_travaux="Travaux",
        date_devis=date(2024, 1, 1),
        statut="brouillon"
    ))
    db.commit()


def _allouer_et_enregistrer(db, prefixe="DEV", annee=2024):
    numero = allouer_numero_devis(db, prefixe, annee)
    _ajouter(db, numero)
    return numero


def test_prefixe_annee():
    assert prefixe_annee("DEV", 2024) == "DEV-2024-"


def test_numero_suivant():
    assert numero_suivant("DEV-2024-007", "DEV-2024-") == "DEV-2024-008"
    assert numero_suivant(None, "DEV-2024-") == "DEV-2024-001"


def test_numero_suivant_suffixe_illisible():
    assert numero_suivant("DEV-2024-abc", "DEV-2024-") == "DEV-2024-001"


def test_allocation_suit_le_maximum(db):
    _ajouter(db, "DEV-2024-003")
    _ajouter(db, "DEV-2024-007")
    _ajouter(db, "DEV-2023-042")

    assert allouer_numero_devis(db, "DEV", 2024) == "DEV-2024-008"


def test_allocation_nouvelle_annee(db):
    _ajouter(db, "DEV-2024-007")

    assert allouer_numero_devis(db, "DEV", 2025) == "DEV-2025-001"


def test_allocation_annee_courante_par_defaut(db):
    annee = date.today().year
    assert allouer_numero_devis(db) == f"DEV-{annee}-001"


def test_allocation_par_prefixe(db):
    _ajouter(db, "DEV-2024-010")

    assert allouer_numero_devis(db, "FAC", 2024) == "FAC-2024-001"


def test_sequence_numero():
    assert sequence_numero("DEV-2024-012", "DEV-2024-") == 12
    assert sequence_numero("FAC-2024-012", "DEV-2024-") == 0
    assert sequence_numero(None, "DEV-2024-") == 0


def test_compteur_enregistre_avec_le_devis(db):
    assert _allouer_et_enregistrer(db) == "DEV-2024-001"
    assert _allouer_et_enregistrer(db) == "DEV-2024-002"

    assert db.get(CompteurNumero, "DEV-2024-").dernier == 2


def test_numero_supprime_jamais_reattribue(db):
    _allouer_et_enregistrer(db)
    _allouer_et_enregistrer(db)

    dernier = db.query(Devis).filter_by(numero_devis="DEV-2024-002").one()
    db.delete(dernier)
    db.commit()

    assert allouer_numero_devis(db, "DEV", 2024) == "DEV-2024-003"


def test_compteur_rattrape_les_numeros_existants(db):
    _allouer_et_enregistrer(db)
    _ajouter(db, "DEV-2024-010")

    assert allouer_numero_devis(db, "DEV", 2024) == "DEV-2024-011"
