"""
════════════════════════════════════════════════════════════
SERVICE - Génération du PDF d'un devis (ReportLab)
════════════════════════════════════════════════════════════
"""

import logging
from decimal import Decimal
from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import cm
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from app.models import Devis
from app.schemas.parametres import ParametresApplication


logger = logging.getLogger(__name__)

COULEUR_PRINCIPALE = colors.HexColor("#2D5A87")
COULEUR_SECTION = colors.HexColor("#E8EEF5")


def format_montant(valeur, devise: str = "EUR") -> str:
    """1234.5 -> '1 234,50 €'"""
    if valeur is None:
        return ""
    texte = f"{Decimal(valeur):,.2f}".replace(",", " ").replace(".", ",")
    return f"{texte} €" if devise == "EUR" else f"{texte} {devise}"


def format_quantite(valeur) -> str:
    if valeur is None:
        return ""
    return f"{Decimal(valeur).normalize():f}".replace(".", ",")


def _p(texte, style) -> Paragraph:
    return Paragraph(escape(str(texte or "")).replace("\n", "<br/>"), style)


def _bloc_entreprise(parametres: ParametresApplication) -> str:
    e = parametres.entreprise
    lignes = [f"<b>{escape(e.nom)}</b>" if e.nom else ""]
    lignes.append(escape(e.adresse))
    lignes.append(escape(" ".join(x for x in (e.code_postal, e.ville) if x)))
    if e.telephone:
        lignes.append(f"Tél : {escape(e.telephone)}")
    if e.email:
        lignes.append(f"Email : {escape(e.email)}")
    if e.siret:
        lignes.append(f"SIRET : {escape(e.siret)}")
    if e.tva_intracommunautaire:
        lignes.append(f"TVA intracom. : {escape(e.tva_intracommunautaire)}")
    return "<br/>".join(l for l in lignes if l)


def _bloc_client(devis: Devis) -> str:
    lignes = [f"<b>{escape(devis.client)}</b>"]
    if devis.client_adresse:
        lignes.append(escape(devis.client_adresse).replace("\n", "<br/>"))
    if devis.client_telephone:
        lignes.append(f"Tél : {escape(devis.client_telephone)}")
    if devis.client_email:
        lignes.append(f"Email : {escape(devis.client_email)}")
    if devis.client_siret:
        lignes.append(f"SIRET : {escape(devis.client_siret)}")
    return "<br/>".join(lignes)


def generer_pdf_devis(devis: Devis, parametres: ParametresApplication) -> bytes:
    """Générer le PDF d'un devis et retourner son contenu"""
    logger.debug(f"[PDF] Génération du PDF pour le devis {devis.numero_devis}")
    buffer = BytesIO()
    devise = parametres.affichage.devise

    try:
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=1.5 * cm,
            rightMargin=1.5 * cm,
            topMargin=1.5 * cm,
            bottomMargin=2 * cm,
            title=f"Devis {devis.numero_devis}"
        )
        elements = []
        styles = getSampleStyleSheet()
        normal_style = styles["Normal"]
        title_style = ParagraphStyle(name="Titre", parent=styles["Heading1"], textColor=COULEUR_PRINCIPALE)
        right_style = ParagraphStyle(name="Droite", parent=normal_style, alignment=TA_RIGHT)
        bold_style = ParagraphStyle(name="Gras", parent=normal_style, fontName="Helvetica-Bold")
        small_style = ParagraphStyle(name="Petit", parent=normal_style, fontSize=8, leading=10)
        footer_style = ParagraphStyle(name="Footer", fontSize=8, textColor=colors.gray, alignment=TA_CENTER)

        # En-tête: entreprise à gauche, client à droite
        entete = Table(
            [[Paragraph(_bloc_entreprise(parametres), normal_style),
              Paragraph(_bloc_client(devis), right_style)]],
            colWidths=[9 * cm, 9 * cm]
        )
        entete.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
        elements.append(entete)
        elements.append(Spacer(1, 0.8 * cm))

        elements.append(Paragraph(f"Devis N° {escape(devis.numero_devis)}", title_style))
        infos = [f"Date : {devis.date_devis.strftime('%d/%m/%Y')}"]
        if devis.date_validite:
            infos.append(f"Valable jusqu'au : {devis.date_validite.strftime('%d/%m/%Y')}")
        if devis.date_debut_travaux:
            infos.append(f"Début des travaux : {devis.date_debut_travaux.strftime('%d/%m/%Y')}")
        infos.append(f"Objet : {escape(devis.type_travaux)}")
        elements.append(Paragraph("<br/>".join(infos), normal_style))
        elements.append(Spacer(1, 0.5 * cm))

        # Tableau des lignes
        data = [[
            Paragraph("<b>Désignation</b>", normal_style),
            Paragraph("<b>Qté</b>", normal_style),
            Paragraph("<b>Unité</b>", normal_style),
            Paragraph("<b>P.U. HT</b>", normal_style),
            Paragraph("<b>TVA</b>", normal_style),
            Paragraph("<b>Total HT</b>", normal_style),
        ]]
        commandes_style = [
            ("BACKGROUND", (0, 0), (-1, 0), COULEUR_PRINCIPALE),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ("ALIGN", (1, 1), (-1, -1), "RIGHT"),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.darkgrey),
            ("FONTSIZE", (0, 1), (-1, -1), 9),
            ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
        ]

        for index, ligne in enumerate(devis.lignes, 1):
            if ligne.is_section:
                data.append([_p(ligne.description, bold_style), "", "", "", "", ""])
                commandes_style += [
                    ("SPAN", (0, index), (-1, index)),
                    ("BACKGROUND", (0, index), (-1, index), COULEUR_SECTION),
                ]
                continue
            data.append([
                _p(ligne.description, normal_style),
                format_quantite(ligne.quantite),
                ligne.unite or "",
                format_montant(ligne.prix_unitaire, devise),
                f"{Decimal(ligne.taux_tva or 0).normalize():f} %",
                format_montant(ligne.montant_ht, devise),
            ])

        if len(data) > 1:
            table = Table(data, colWidths=[7.5 * cm, 1.6 * cm, 1.6 * cm, 2.7 * cm, 1.6 * cm, 3 * cm], repeatRows=1)
            table.setStyle(TableStyle(commandes_style))
            elements.append(table)
            elements.append(Spacer(1, 0.5 * cm))

        # Totaux
        totaux = Table([
            ["Total HT", format_montant(devis.montant_ht, devise)],
            [f"TVA {Decimal(devis.taux_tva).normalize():f} %", format_montant(devis.montant_tva, devise)],
            ["Total TTC", format_montant(devis.montant_ttc, devise)],
        ], colWidths=[4 * cm, 3.5 * cm], hAlign="RIGHT")
        totaux.setStyle(TableStyle([
            ("ALIGN", (1, 0), (1, -1), "RIGHT"),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.darkgrey),
            ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
            ("BACKGROUND", (0, -1), (-1, -1), COULEUR_SECTION),
        ]))
        elements.append(totaux)
        elements.append(Spacer(1, 0.8 * cm))

        if devis.materiaux:
            elements.append(Paragraph("<b>Matériaux</b>", normal_style))
            elements.append(_p(devis.materiaux, normal_style))
            elements.append(Spacer(1, 0.3 * cm))

        if devis.notes:
            elements.append(Paragraph("<b>Notes</b>", normal_style))
            elements.append(_p(devis.notes, normal_style))
            elements.append(Spacer(1, 0.3 * cm))

        if parametres.devis.conditions_generales:
            elements.append(Paragraph("<b>Conditions générales</b>", normal_style))
            elements.append(_p(parametres.devis.conditions_generales, small_style))
            elements.append(Spacer(1, 0.3 * cm))

        elements.append(Spacer(1, 0.5 * cm))
        elements.append(Paragraph("Bon pour accord, date et signature du client :", normal_style))

        e = parametres.entreprise
        pied = " - ".join(x for x in (e.nom, e.siret and f"SIRET {e.siret}", e.tva_intracommunautaire) if x)

        def add_footer(canvas, doc):
            canvas.saveState()
            footer = Paragraph(escape(f"{pied} - Page {doc.page}" if pied else f"Page {doc.page}"), footer_style)
            w, h = footer.wrap(doc.width, doc.bottomMargin)
            footer.drawOn(canvas, doc.leftMargin, h)
            canvas.restoreState()

        doc.build(elements, onFirstPage=add_footer, onLaterPages=add_footer)
    except Exception as e:
        logger.error(f"[PDF] Erreur génération PDF du devis {devis.numero_devis}: {e}", exc_info=True)
        raise

    logger.debug(f"[PDF] PDF généré pour le devis {devis.numero_devis}")
    return buffer.getvalue()
