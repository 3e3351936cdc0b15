"""
════════════════════════════════════════════════════════════
SERVICE - Export Excel des devis
════════════════════════════════════════════════════════════
Feuilles:
    Devis               une ligne par devis
    Lignes détaillées   une ligne par ligne de devis (ou les totaux
                        pour un devis sans lignes)
"""

from io import BytesIO
from typing import List

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.utils import get_column_letter

from app.models import Devis


HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="2D5A87", end_color="2D5A87", fill_type="solid")
HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center", wrap_text=True)
SECTION_FONT = Font(bold=True, italic=True)
THIN_BORDER = Border(
    left=Side(style='thin'),
    right=Side(style='thin'),
    top=Side(style='thin'),
    bottom=Side(style='thin')
)
FORMAT_MONTANT = '#,##0.00'

# (en-tête, largeur)
COLONNES_DEVIS = [
    ("N° Devis", 15),
    ("Client", 25),
    ("Adresse", 30),
    ("Téléphone", 15),
    ("Email", 25),
    ("SIRET", 15),
    ("Type travaux", 20),
    ("Date devis", 12),
    ("Date validité", 12),
    ("Date début travaux", 15),
    ("Montant HT", 12),
    ("Taux TVA", 10),
    ("Montant TVA", 12),
    ("Montant TTC", 12),
    ("Statut", 12),
    ("Matériaux", 30),
    ("Notes", 40),
    ("Nb lignes", 10),
]
MONTANTS_DEVIS = {11, 13, 14}

COLONNES_LIGNES = [
    ("N° Devis", 15),
    ("Client", 25),
    ("Description", 40),
    ("Quantité", 10),
    ("Unité", 10),
    ("Prix unitaire", 12),
    ("Taux TVA", 10),
    ("Montant HT", 12),
    ("Montant TVA", 12),
    ("Montant TTC", 12),
]
MONTANTS_LIGNES = {6, 8, 9, 10}


def _date_fr(valeur) -> str:
    return valeur.strftime("%d/%m/%Y") if valeur else ""


def _nombre(valeur):
    return float(valeur) if valeur is not None else None


def _ecrire_entetes(ws, colonnes):
    for col, (header, width) in enumerate(colonnes, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGNMENT
        cell.border = THIN_BORDER
        ws.column_dimensions[get_column_letter(col)].width = width

    # Figer la première ligne
    ws.freeze_panes = "A2"


def _ecrire_ligne(ws, row_num, data, colonnes_montant, font=None):
    for col, value in enumerate(data, 1):
        cell = ws.cell(row=row_num, column=col, value=value)
        cell.border = THIN_BORDER
        if col in colonnes_montant:
            cell.number_format = FORMAT_MONTANT
        if font is not None:
            cell.font = font


def generer_classeur(devis_list: List[Devis]) -> BytesIO:
    """Construire le classeur Excel et le retourner prêt à être envoyé"""
    wb = Workbook()

    # Feuille principale
    ws = wb.active
    ws.title = "Devis"
    _ecrire_entetes(ws, COLONNES_DEVIS)

    for row_num, d in enumerate(devis_list, 2):
        _ecrire_ligne(ws, row_num, [
            d.numero_devis,
            d.client,
            d.client_adresse or "",
            d.client_telephone or "",
            d.client_email or "",
            d.client_siret or "",
            d.type_travaux,
            _date_fr(d.date_devis),
            _date_fr(d.date_validite),
            _date_fr(d.date_debut_travaux),
            _nombre(d.montant_ht),
            _nombre(d.taux_tva),
            _nombre(d.montant_tva),
            _nombre(d.montant_ttc),
            d.statut,
            d.materiaux or "",
            d.notes or "",
            len(d.lignes),
        ], MONTANTS_DEVIS)

    # Lignes détaillées
    ws_lignes = wb.create_sheet("Lignes détaillées")
    _ecrire_entetes(ws_lignes, COLONNES_LIGNES)

    row_num = 2
    for d in devis_list:
        if not d.lignes:
            _ecrire_ligne(ws_lignes, row_num, [
                d.numero_devis, d.client, "Total", "", "", "",
                _nombre(d.taux_tva),
                _nombre(d.montant_ht),
                _nombre(d.montant_tva),
                _nombre(d.montant_ttc),
            ], MONTANTS_LIGNES)
            row_num += 1
            continue

        for ligne in d.lignes:
            _ecrire_ligne(ws_lignes, row_num, [
                d.numero_devis,
                d.client,
                ligne.description,
                _nombre(ligne.quantite),
                ligne.unite or "",
                _nombre(ligne.prix_unitaire),
                _nombre(ligne.taux_tva),
                _nombre(ligne.montant_ht),
                _nombre(ligne.montant_tva),
                _nombre(ligne.montant_ttc),
            ], MONTANTS_LIGNES, font=SECTION_FONT if ligne.is_section else None)
            row_num += 1

    output = BytesIO()
    wb.save(output)
    output.seek(0)
    return output
