"""Imports (tableur, PDF) et exports (Excel, PDF) via l'API."""

from io import BytesIO

from openpyxl import Workbook, load_workbook

from app.models import Devis
from app.schemas.parametres import ParametresApplication
from app.services.export_pdf import format_montant, generer_pdf_devis
from app.services.extraction_pdf import lire_texte_pdf
from app.routers import devis as routes_devis


XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

TEXTE_PDF = """\
SARL BATI PLUS
Client : Martin Immobilier
Référence Affaire : Salle de bain
Lyon, le 12/04/2024
N° | Désignation | Qté | Unité | P.U. HT | Total HT
1 | Carrelage | 10,00 | m² | 50,00 | 500,00
TOTAL H.T. | | | | | 500,00
TVA 10,00 % | | | | | 50,00
TOTAL T.T.C. | | | | | 550,00
"""


def _classeur(lignes):
    wb = Workbook()
    ws = wb.active
    ws.append(["Client", "Type Travaux", "Date Devis", "Montant", "Statut", "Matériaux"])
    for ligne in lignes:
        ws.append(ligne)
    output = BytesIO()
    wb.save(output)
    return output.getvalue()


# ──────────────────────────────────────────────────────────
# Excel
# ──────────────────────────────────────────────────────────

def test_export_excel(client, nouveau_devis):
    avec_lignes = nouveau_devis(client="Dupont", lignes=[
        {"description": "Préparation", "isSection": True},
        {"description": "Peinture", "quantite": 2, "prixUnitaire": 50},
    ])
    nouveau_devis(client="Martin", dateDevis="2024-01-01")

    response = client.get("/api/devis/export/excel")
    assert response.status_code == 200
    assert response.headers["content-type"] == XLSX

    wb = load_workbook(BytesIO(response.content))
    assert wb.sheetnames == ["Devis", "Lignes détaillées"]

    ws = wb["Devis"]
    assert ws["A1"].value == "N° Devis"
    assert ws["A2"].value == avec_lignes["numeroDevis"]
    assert ws["H2"].value == "01/03/2024"
    assert ws["N2"].value == 120.0
    assert ws["R2"].value == 2
    assert ws.max_row == 3

    ws_lignes = wb["Lignes détaillées"]
    assert [ws_lignes.cell(row=r, column=3).value for r in range(2, 5)] == ["Préparation", "Peinture", "Total"]


def test_export_excel_filtre(client, nouveau_devis):
    nouveau_devis(client="Dupont")
    nouveau_devis(client="Martin")

    response = client.get("/api/devis/export/excel", params={"client": "mart"})
    ws = load_workbook(BytesIO(response.content))["Devis"]
    assert ws.max_row == 2
    assert ws["B2"].value == "Martin"


def test_import_xlsx(client):
    contenu = _classeur([
        ["Dupont", "Peinture", "2024-03-10", 1200, "brouillon", "Acrylique"],
        ["Martin", "Plomberie", "2024-03-11", "beaucoup", "envoyé", None],
        ["Durand", "Toiture", "15/03/2024", 2400, "Accepté", None],
    ])

    response = client.post("/api/devis/import", files={"file": ("devis.xlsx", contenu, XLSX)})
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["count"] == 2
    assert data["echecs"] == 1
    assert data["errors"][0]["ligne"] == 3
    assert len(data["numeros"]) == 2

    liste = client.get("/api/devis", params={"sortBy": "client", "sortOrder": "asc"}).json()
    assert [d["client"] for d in liste["devis"]] == ["Dupont", "Durand"]
    assert liste["devis"][0]["montantHT"] == 1000.0
    assert liste["devis"][0]["materiaux"] == "Acrylique"


def test_import_csv(client):
    contenu = "client;typeTravaux;dateDevis;montant;statut\nDupont;Peinture;10/03/2024;120;envoyé\n"

    response = client.post("/api/devis/import", files={"file": ("devis.csv", contenu.encode("utf-8"), "text/csv")})
    assert response.json()["count"] == 1


def test_import_fichier_refuse(client):
    response = client.post("/api/devis/import", files={"file": ("devis.ods", b"data", "application/octet-stream")})
    assert response.status_code == 400
    assert response.json()["detail"] == "Format de fichier non supporté. Utilisez .xlsx, .xls ou .csv"

    response = client.post("/api/devis/import", files={"file": ("devis.xls", b"data", "application/vnd.ms-excel")})
    assert response.status_code == 400
    assert response.json()["detail"] == "Fichier Excel illisible"

    response = client.post("/api/devis/import", files={"file": ("devis.xlsx", b"", XLSX)})
    assert response.status_code == 400

    response = client.post("/api/devis/import", files={"file": ("devis.xlsx", _classeur([]), XLSX)})
    assert response.status_code == 400
    assert response.json()["detail"] == "Le fichier est vide ou invalide"


# ──────────────────────────────────────────────────────────
# PDF
# ──────────────────────────────────────────────────────────

def test_format_montant():
    assert format_montant(1234.5) == "1 234,50 €"
    assert format_montant(None) == ""


def test_export_pdf(client, nouveau_devis):
    devis = nouveau_devis(notes="Accès par la cour", lignes=[
        {"description": "Préparation", "isSection": True},
        {"description": "Peinture", "quantite": 2, "prixUnitaire": 50},
    ])

    response = client.get(f"/api/devis/{devis['id']}/export/pdf")
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")

    assert client.get("/api/devis/9999/export/pdf").status_code == 404


def test_pdf_genere_est_relisible(db, nouveau_devis):
    cree = nouveau_devis(client="Martin Immobilier", lignes=[
        {"description": "Carrelage", "quantite": 10, "prixUnitaire": 50},
    ])
    devis = db.get(Devis, cree["id"])

    texte = lire_texte_pdf(generer_pdf_devis(devis, ParametresApplication()))

    assert cree["numeroDevis"] in texte
    assert "Martin Immobilier" in texte
    assert "Carrelage" in texte


def test_pdf_original_absent(client, nouveau_devis):
    devis = nouveau_devis()
    response = client.get(f"/api/devis/{devis['id']}/pdf")
    assert response.status_code == 404


def test_import_pdf_apercu(client, monkeypatch):
    monkeypatch.setattr(routes_devis, "lire_texte_pdf", lambda contenu: TEXTE_PDF)

    response = client.post(
        "/api/devis/import/pdf",
        params={"apercu": "true"},
        files={"file": ("devis.pdf", b"%PDF-1.4 contenu", "application/pdf")}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["apercu"] is True
    assert data["devis"] is None
    assert data["extrait"]["client"] == "Martin Immobilier"
    assert data["extrait"]["dateDevis"] == "2024-04-12"
    assert data["extrait"]["montantTTC"] == 550.0
    assert client.get("/api/devis").json()["total"] == 0


def test_import_pdf_enregistre(client, monkeypatch):
    monkeypatch.setattr(routes_devis, "lire_texte_pdf", lambda contenu: TEXTE_PDF)

    response = client.post(
        "/api/devis/import/pdf",
        files={"file": ("devis-martin.pdf", b"%PDF-1.4 contenu", "application/pdf")}
    )
    assert response.status_code == 200
    devis = response.json()["devis"]
    assert devis["client"] == "Martin Immobilier"
    assert devis["typeTravaux"] == "Salle de bain"
    assert devis["dateDevis"] == "2024-04-12"
    assert devis["tauxTVA"] == 10.0
    assert devis["montantHT"] == 500.0
    assert devis["montantTTC"] == 550.0
    assert devis["statut"] == "brouillon"
    assert devis["nomFichierPdf"] == "devis-martin.pdf"
    assert devis["lignes"][0]["description"] == "Carrelage"

    original = client.get(f"/api/devis/{devis['id']}/pdf")
    assert original.status_code == 200
    assert original.content == b"%PDF-1.4 contenu"


def test_import_pdf_illisible(client, monkeypatch):
    monkeypatch.setattr(routes_devis, "lire_texte_pdf", lambda contenu: "Bonjour,\nà bientôt.")

    response = client.post("/api/devis/import/pdf", files={"file": ("lettre.pdf", b"%PDF-1.4", "application/pdf")})
    assert response.status_code == 422

    response = client.post("/api/devis/import/pdf", files={"file": ("devis.docx", b"data", "application/msword")})
    assert response.status_code == 400
