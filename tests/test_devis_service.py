"""Création et mise à jour des devis (couche service)."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from app.config import settings
from app.models import Devis
from app.schemas.devis import DevisUpdate, LigneDevisCreate
from app.schemas.parametres import ParametresApplication, ParametresDevis
from app.services import devis as service_devis
from app.services.devis import (
    construire_lignes, creer_devis, creer_devis_depuis_pdf, mettre_a_jour_devis
)
from app.services.extraction_pdf import extraire_devis


def _donnees(**champs):
    donnees = {"client": "Dupont", "type_travaux": "Rénovation", "date_devis": date(2024, 3, 1)}
    donnees.update(champs)
    return donnees


def test_construire_lignes():
    lignes = construire_lignes([
        LigneDevisCreate(description="Gros oeuvre", is_section=True),
        LigneDevisCreate(description="Maçonnerie", quantite=2, prix_unitaire=100),
        LigneDevisCreate(description="   ", quantite=1, prix_unitaire=10),
        LigneDevisCreate(description="Peinture", quantite=1.5, prix_unitaire=33.33, taux_tva=10),
    ], 20)

    assert [l.description for l in lignes] == ["Gros oeuvre", "Maçonnerie", "Peinture"]
    assert [l.ordre for l in lignes] == [0, 1, 2]
    assert lignes[0].montant_ht is None
    assert lignes[1].montant_ttc == Decimal("240.00")
    assert lignes[2].montant_ht == Decimal("50.00")
    assert lignes[2].montant_tva == Decimal("5.00")


def test_creer_devis_calcule_les_totaux(db):
    devis = creer_devis(db, _donnees(), ParametresApplication(), lignes=[
        LigneDevisCreate(description="Maçonnerie", quantite=2, prix_unitaire=100),
        LigneDevisCreate(description="Peinture", quantite=1.5, prix_unitaire=33.33, taux_tva=10),
    ])

    assert devis.numero_devis == f"DEV-{date.today().year}-001"
    assert devis.montant_ht == Decimal("250.00")
    assert devis.montant_tva == Decimal("45.00")
    assert devis.montant_ttc == Decimal("295.00")
    assert devis.statut == "brouillon"
    assert devis.date_validite == date(2024, 3, 31)
    assert len(devis.lignes) == 2


def test_creer_devis_valeurs_des_parametres(db):
    parametres = ParametresApplication(devis=ParametresDevis(
        taux_tva_defaut=10,
        duree_validite_defaut=15,
        prefixe_numero="Q",
        notes_par_defaut="Devis valable sous réserve de visite"
    ))

    devis = creer_devis(db, _donnees(), parametres)

    assert devis.numero_devis.startswith("Q-")
    assert devis.taux_tva == Decimal("10")
    assert devis.date_validite == date(2024, 3, 16)
    assert devis.notes == "Devis valable sous réserve de visite"
    assert devis.montant_ttc == Decimal("0")


def test_creer_devis_rejoue_la_numerotation_en_cas_de_conflit(db, monkeypatch):
    annee = date.today().year
    creer_devis(db, _donnees(), ParametresApplication())

    # Le premier numéro proposé est déjà pris (allocation concurrente)
    proposes = iter([f"DEV-{annee}-001", f"DEV-{annee}-002"])
    monkeypatch.setattr(service_devis, "allouer_numero_devis", lambda db, prefixe: next(proposes))

    devis = creer_devis(db, _donnees(client="Martin"), ParametresApplication())

    assert devis.numero_devis == f"DEV-{annee}-002"
    assert db.query(Devis).count() == 2


def test_creer_devis_abandonne_apres_les_essais(db, monkeypatch):
    annee = date.today().year
    creer_devis(db, _donnees(), ParametresApplication())

    monkeypatch.setattr(settings, "NUMEROTATION_TENTATIVES", 2)
    monkeypatch.setattr(service_devis, "allouer_numero_devis", lambda db, prefixe: f"DEV-{annee}-001")

    with pytest.raises(IntegrityError):
        creer_devis(db, _donnees(client="Martin"), ParametresApplication())
    assert db.query(Devis).count() == 1


def test_mise_a_jour_partielle(db):
    devis = creer_devis(db, _donnees(), ParametresApplication(), lignes=[
        LigneDevisCreate(description="Maçonnerie", quantite=2, prix_unitaire=100),
    ])

    devis = mettre_a_jour_devis(db, devis, DevisUpdate(notes="Accès par la cour", statut="Envoyé"))

    assert devis.notes == "Accès par la cour"
    assert devis.statut == "envoyé"
    assert devis.client == "Dupont"
    assert len(devis.lignes) == 1
    assert devis.montant_ttc == Decimal("240.00")


def test_mise_a_jour_remplace_les_lignes(db):
    devis = creer_devis(db, _donnees(), ParametresApplication(), lignes=[
        LigneDevisCreate(description="Maçonnerie", quantite=2, prix_unitaire=100),
        LigneDevisCreate(description="Peinture", quantite=1, prix_unitaire=50),
    ])

    devis = mettre_a_jour_devis(db, devis, DevisUpdate(lignes=[
        LigneDevisCreate(description="Carrelage", quantite=10, prix_unitaire=30),
    ]))

    assert [l.description for l in devis.lignes] == ["Carrelage"]
    assert devis.montant_ht == Decimal("300.00")
    assert devis.montant_ttc == Decimal("360.00")


def test_devis_depuis_pdf_garde_les_montants_du_tableau(db):
    texte = """\
Client : Dupont
N° | Désignation | Qté | Unité | P.U. HT | Total HT
1 | Forfait pose | 3 | u | 33,33 | 100,00
2 | Main d'oeuvre | 1 | forfait | | 250,00
TOTAL H.T. | | | | | 350,00
TVA 20,00 % | | | | | 70,00
TOTAL T.T.C. | | | | | 420,00
"""
    extrait = extraire_devis(texte, aujourd_hui=date(2024, 3, 1))

    devis = creer_devis_depuis_pdf(db, extrait, ParametresApplication(), nom_fichier="devis.pdf")

    pose, main_oeuvre = devis.lignes
    assert pose.montant_ht == Decimal("100.00")
    assert pose.montant_ttc == Decimal("120.00")
    assert main_oeuvre.montant_ht == Decimal("250.00")
    assert main_oeuvre.prix_unitaire == Decimal("0.00")
    assert devis.montant_ht == Decimal("350.00")
    assert devis.montant_ht == sum(l.montant_ht for l in devis.lignes)
    assert devis.montant_ttc == sum(l.montant_ttc for l in devis.lignes)
