"""Import de devis depuis un tableur."""

from datetime import date, datetime
from decimal import Decimal

from types import SimpleNamespace

import pytest
import xlrd

from app.models import Devis
from app.schemas.parametres import ParametresApplication
from app.services.import_tableur import importer_lignes, lire_date, lire_tableur, normaliser_cle


def _ligne(**champs):
    ligne = {
        "Client": "Dupont",
        "Type Travaux": "Peinture",
        "Date Devis": "2024-03-10",
        "Montant": 1200,
        "Statut": "brouillon",
    }
    ligne.update(champs)
    return ligne


def test_normaliser_cle():
    assert normaliser_cle(" Type  Travaux ") == "typetravaux"
    assert normaliser_cle("DateDevis") == "datedevis"
    assert normaliser_cle("Matériaux") == "materiaux"


def test_lire_date():
    assert lire_date("15/01/2024") == date(2024, 1, 15)
    assert lire_date("2024-01-15") == date(2024, 1, 15)
    assert lire_date(datetime(2024, 1, 15, 10, 30)) == date(2024, 1, 15)
    with pytest.raises(ValueError):
        lire_date("15 janvier")


def test_ligne_en_erreur_n_arrete_pas_l_import(db):
    lignes = [
        _ligne(Client="Dupont"),
        _ligne(Client="Martin", Montant="abc"),
        _ligne(Client="Durand", **{"Date Devis": "15/01/2024"}),
    ]

    resultat = importer_lignes(db, lignes, ParametresApplication())

    assert resultat.count == 2
    assert resultat.echecs == 1
    assert len(resultat.errors) == 1
    assert resultat.errors[0].ligne == 3
    assert "Montant invalide" in resultat.errors[0].message
    assert db.query(Devis).count() == 2


def test_montant_importe_est_ttc(db):
    resultat = importer_lignes(db, [_ligne(Montant="1 200,00")], ParametresApplication())

    devis = db.query(Devis).filter_by(numero_devis=resultat.numeros[0]).one()
    assert devis.montant_ttc == Decimal("1200.00")
    assert devis.montant_ht == Decimal("1000.00")
    assert devis.montant_tva == Decimal("200.00")
    assert devis.date_devis == date(2024, 3, 10)
    assert devis.date_validite == date(2024, 4, 9)


def test_taux_tva_de_la_ligne(db):
    resultat = importer_lignes(db, [_ligne(Montant=110, TauxTVA="10")], ParametresApplication())

    devis = db.query(Devis).filter_by(numero_devis=resultat.numeros[0]).one()
    assert devis.montant_ht == Decimal("100.00")
    assert devis.taux_tva == Decimal("10")


def test_champs_obligatoires_et_statut(db):
    lignes = [
        _ligne(Client="  "),
        _ligne(Statut="validé"),
        _ligne(Statut="Accepté", Materiaux="Placo", Notes="RAS"),
    ]

    resultat = importer_lignes(db, lignes, ParametresApplication())

    assert resultat.count == 1
    assert [e.ligne for e in resultat.errors] == [2, 3]
    assert "client" in resultat.errors[0].message
    assert "Statut invalide" in resultat.errors[1].message

    devis = db.query(Devis).one()
    assert devis.statut == "accepté"
    assert devis.materiaux == "Placo"


def test_numeros_sequentiels(db):
    resultat = importer_lignes(db, [_ligne(), _ligne()], ParametresApplication())

    annee = date.today().year
    assert resultat.numeros == [f"DEV-{annee}-001", f"DEV-{annee}-002"]


def test_lire_csv_point_virgule():
    contenu = (
        "client;typeTravaux;dateDevis;montant;statut\n"
        "Dupont;Peinture;10/03/2024;1 200,50;envoyé\n"
        ";;;;\n"
        "Martin;Plomberie;2024-03-11;300;brouillon\n"
    ).encode("utf-8")

    lignes = lire_tableur(contenu, "export.CSV")

    assert len(lignes) == 2
    assert lignes[0]["client"] == "Dupont"
    assert lignes[0]["montant"] == "1 200,50"


def test_format_non_supporte():
    with pytest.raises(ValueError):
        lire_tableur(b"data", "devis.ods")


def _cellule(ctype, valeur=""):
    return SimpleNamespace(ctype=ctype, value=valeur)


def test_lecture_xls(monkeypatch):
    lignes_feuille = [
        [_cellule(xlrd.XL_CELL_TEXT, "Client"), _cellule(xlrd.XL_CELL_TEXT, "Date Devis"),
         _cellule(xlrd.XL_CELL_TEXT, "Montant"), _cellule(xlrd.XL_CELL_EMPTY)],
        [_cellule(xlrd.XL_CELL_TEXT, "Dupont"), _cellule(xlrd.XL_CELL_DATE, 45366.0),
         _cellule(xlrd.XL_CELL_NUMBER, 1200.0), _cellule(xlrd.XL_CELL_EMPTY)],
        [_cellule(xlrd.XL_CELL_BLANK), _cellule(xlrd.XL_CELL_EMPTY),
         _cellule(xlrd.XL_CELL_TEXT, "  "), _cellule(xlrd.XL_CELL_EMPTY)],
    ]
    feuille = SimpleNamespace(
        nrows=len(lignes_feuille),
        row=lambda i: lignes_feuille[i],
        row_values=lambda i: [c.value for c in lignes_feuille[i]],
    )
    classeur = SimpleNamespace(datemode=0, sheet_by_index=lambda index: feuille)
    monkeypatch.setattr(xlrd, "open_workbook", lambda file_contents: classeur)

    lignes = lire_tableur(b"\xd0\xcf\x11\xe0", "ancien.XLS")

    assert lignes == [{"Client": "Dupont", "Date Devis": datetime(2024, 3, 15), "Montant": 1200.0}]


def test_xls_illisible():
    with pytest.raises(ValueError, match="illisible"):
        lire_tableur(b"pas un classeur", "devis.xls")


def test_xlsx_illisible():
    with pytest.raises(ValueError):
        lire_tableur(b"pas un classeur", "devis.xlsx")
