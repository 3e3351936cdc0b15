"""
════════════════════════════════════════════════════════════
SERVICE - Extraction d'un devis depuis le texte d'un PDF
════════════════════════════════════════════════════════════
Chaque étape est une fonction indépendante qui cherche un motif
dans le texte brut et retourne None si rien n'est trouvé. Les
résultats sont assemblés dans un brouillon (_Brouillon) puis
convertis en DevisExtrait.

Tableau attendu (cellules séparées par des « | ») :

    N° | Désignation | Qté | Unité | P.U. HT | Total HT
    1  | Dépose cloison | 12,00 | m² | 45,00 | 540,00
    ...
    TOTAL H.T.   | | | | | 1 028,80
    TVA 20,00 %  | | | | | 205,76
    TOTAL T.T.C. | | | | | 1 234,56
"""

import io
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

import pdfplumber
from pdfminer.psparser import PSException
from pdfplumber.utils.exceptions import PdfminerException

from app.schemas.devis import DevisExtrait, LigneExtraite
from app.services.montants import (
    Montants, ZERO, arrondir, calculer_ligne, calculer_totaux, depuis_ht, depuis_ttc
)


logger = logging.getLogger(__name__)

CLIENT_NON_SPECIFIE = "Client non spécifié"
TYPE_TRAVAUX_DEFAUT = "Non spécifié"

# Nombre au format français: 1 234,56 (espace ou espace insécable en milliers)
_NOMBRE = r"\d{1,3}(?:[ \u00a0\u202f]?\d{3})*(?:[,.]\d+)?"
# Séparateurs de cellules entre un libellé et son montant
_SEP = r"(?:[ \t]*[|:])*[ \t]*"
# Forme acceptée après nettoyage (ni exposant, ni NaN, ni infini)
_RE_NOMBRE_NETTOYE = re.compile(r"-?\d{1,15}(?:\.\d+)?")

_RE_REFERENCE = re.compile(r"R[ée]f[ée]rence[ \t]+Affaire[ \t]*:?[ \t]*(?P<valeur>[^\n]*)", re.I)
_RE_SUIVIE_PAR = re.compile(r"Affaire[ \t]+suivie[ \t]+par[ \t]*:?[ \t]*(?P<nom>[^\n]*)", re.I)
_RE_FIN_NOM = re.compile(
    r"[ \t]*(?:\b(?:T[ée]l[ée]phone|T[ée]l|Email|E-mail|Mail|R[ée]f[ée]rence|Date|DEVIS|Client)\b|\|)",
    re.I
)
_RE_LIEU_DATE = re.compile(
    r"(?P<lieu>[A-Za-zÀ-ÖØ-öø-ÿ][A-Za-zÀ-ÖØ-öø-ÿ' \-]*?),[ \t]*le[ \t]+"
    r"(?P<jour>\d{1,2})/(?P<mois>\d{1,2})/(?P<annee>\d{4})"
)
_RE_FAIT_A = re.compile(r"^Fait[ \t]+[àa][ \t]+", re.I)
_RE_MAJUSCULES = re.compile(r"^[A-ZÀ-ÖØ-Þ][A-ZÀ-ÖØ-Þ '\-&.]*$")
_MOTS_DOCUMENT = {"DEVIS", "FACTURE", "BON DE COMMANDE"}

_RE_CLIENT = re.compile(r"^[ \t]*Client[ \t]*:[ \t]*(?P<nom>[^\n|]+)", re.I | re.M)
_RE_CLIENT_MARQUEUR = re.compile(
    r"^[ \t]*(?:DEVIS|Affaire)\b(?:[ \t]+N°[ \t]*[\w\-/.]+(?=[ \t:]))?[ \t]*[:\-–][ \t]*(?P<nom>[^\n|]*[A-Za-zÀ-ÿ][^\n|]*)",
    re.I
)

_RE_TOTAL_HT = re.compile(r"TOTAL[ \t]+H\.?[ \t]*T\.?" + _SEP + r"(?P<montant>" + _NOMBRE + r")", re.I)
_RE_TOTAL_TTC = re.compile(r"TOTAL[ \t]+T\.?[ \t]*T\.?[ \t]*C\.?" + _SEP + r"(?P<montant>" + _NOMBRE + r")", re.I)
_RE_TVA = re.compile(
    r"T\.?V\.?A\.?[ \t]*\(?[ \t]*(?:à[ \t]*)?(?P<taux>\d{1,2}(?:[,.]\d+)?)[ \t]*%\)?"
    r"(?:(?:[ \t]*[|:])+[ \t]*(?P<montant>" + _NOMBRE + r"))?",
    re.I
)

_RE_ENTETE_TABLEAU = re.compile(r"N°[ \t]*\|[ \t]*D[ée]signation", re.I)
_RE_SEPARATEUR = re.compile(r"^[-=_:+ ]*$")
_RE_LIGNE_TOTAL = re.compile(r"^(?:TOTAL|SOUS[- ]TOTAL|T\.?V\.?A\b|NET\b)", re.I)
_RE_FIN_TABLEAU = re.compile(r"^(?:TOTAL[ \t]+T\.?[ \t]*T\.?[ \t]*C|NET[ \t]+[àa][ \t]+PAYER)", re.I)
_RE_NUMERO_LIGNE = re.compile(r"^\d+(?:\.\d+)*\.?$")


# ──────────────────────────────────────────────────────────
# Brouillon en cours de construction
# ──────────────────────────────────────────────────────────

@dataclass
class _Ligne:
    description: str
    ordre: int
    is_section: bool = False
    quantite: Optional[Decimal] = None
    unite: Optional[str] = None
    prix_unitaire: Optional[Decimal] = None
    montants: Optional[Montants] = None


@dataclass
class _Brouillon:
    reference_affaire: Optional[str] = None
    affaire_suivie_par: Optional[str] = None
    lieu: Optional[str] = None
    date_devis: Optional[str] = None
    entreprise: Optional[str] = None
    entreprise_adresse: Optional[str] = None
    client: Optional[str] = None
    taux_tva: Optional[Decimal] = None
    totaux: Montants = field(default_factory=lambda: Montants(ZERO, ZERO, ZERO))
    lignes: List[_Ligne] = field(default_factory=list)


# ──────────────────────────────────────────────────────────
# Outils
# ──────────────────────────────────────────────────────────

def nombre_fr(texte: Optional[str]) -> Optional[Decimal]:
    """Convertir '1 234,56' en Decimal('1234.56'), None si illisible ou non fini"""
    if not texte:
        return None
    nettoye = re.sub(r"[ \u00a0\u202f€]", "", texte).replace(",", ".")
    if not _RE_NOMBRE_NETTOYE.fullmatch(nettoye):
        return None
    return Decimal(nettoye)


def _nettoyer(valeur: Optional[str]) -> Optional[str]:
    if valeur is None:
        return None
    valeur = valeur.strip().strip("|").strip()
    return valeur or None


def _cellules(ligne: str) -> List[str]:
    return [c.strip() for c in ligne.strip().strip("|").split("|")]


def _lignes_non_vides(texte: str) -> List[str]:
    return [l.strip() for l in texte.splitlines() if l.strip()]


# ──────────────────────────────────────────────────────────
# Étapes d'extraction
# ──────────────────────────────────────────────────────────

def _extraire_reference_affaire(texte: str) -> Optional[str]:
    match = _RE_REFERENCE.search(texte)
    return _nettoyer(match.group("valeur")) if match else None


def _extraire_suivie_par(texte: str) -> Optional[str]:
    match = _RE_SUIVIE_PAR.search(texte)
    if not match:
        return None
    nom = _RE_FIN_NOM.split(match.group("nom"), maxsplit=1)[0]
    return _nettoyer(nom)


def _extraire_lieu_date(texte: str) -> Tuple[Optional[str], Optional[str]]:
    """Lieu et date ISO (réordonnancement littéral, sans contrôle calendaire)"""
    match = _RE_LIEU_DATE.search(texte)
    if not match:
        return None, None
    lieu = _RE_FAIT_A.sub("", match.group("lieu").strip())
    date_iso = f"{match.group('annee')}-{match.group('mois').zfill(2)}-{match.group('jour').zfill(2)}"
    return lieu or None, date_iso


def _extraire_entreprise(texte: str) -> Tuple[Optional[str], Optional[str]]:
    """Nom de l'entreprise émettrice (ligne en majuscules) et son adresse"""
    lignes = _lignes_non_vides(texte)
    for i, ligne in enumerate(lignes[:5]):
        if ligne.upper() in _MOTS_DOCUMENT or not _RE_MAJUSCULES.match(ligne):
            continue
        adresse = None
        if i + 1 < len(lignes) and re.search(r"\d", lignes[i + 1]):
            adresse = lignes[i + 1]
        return ligne, adresse
    return None, None


def _extraire_client(texte: str) -> Optional[str]:
    match = _RE_CLIENT.search(texte)
    if match and _nettoyer(match.group("nom")):
        return _nettoyer(match.group("nom"))

    for ligne in texte.splitlines():
        if _RE_REFERENCE.search(ligne) or _RE_SUIVIE_PAR.search(ligne):
            continue
        match = _RE_CLIENT_MARQUEUR.match(ligne)
        if match and _nettoyer(match.group("nom")):
            return _nettoyer(match.group("nom"))
    return None


def _extraire_totaux(texte: str, taux: Decimal) -> Tuple[Montants, Optional[Decimal]]:
    """Totaux HT / TVA / TTC du pied de tableau et taux de TVA trouvé"""
    match_ht = _RE_TOTAL_HT.search(texte)
    match_ttc = _RE_TOTAL_TTC.search(texte)
    match_tva = _RE_TVA.search(texte)

    ht = nombre_fr(match_ht.group("montant")) if match_ht else None
    ttc = nombre_fr(match_ttc.group("montant")) if match_ttc else None
    taux_trouve = nombre_fr(match_tva.group("taux")) if match_tva else None
    tva = nombre_fr(match_tva.group("montant")) if match_tva else None

    if taux_trouve is not None:
        taux = taux_trouve

    if ttc and not ht:
        return depuis_ttc(ttc, taux), taux_trouve
    if ht and not ttc:
        if tva is not None:
            return Montants(arrondir(ht), arrondir(tva), arrondir(ht + tva)), taux_trouve
        return depuis_ht(ht, taux), taux_trouve
    if ht and ttc:
        if tva is None:
            tva = ttc - ht
        return Montants(arrondir(ht), arrondir(tva), arrondir(ttc)), taux_trouve
    return Montants(ZERO, ZERO, ZERO), taux_trouve


def _extraire_lignes(texte: str, taux: Decimal) -> List[_Ligne]:
    """Lignes du tableau situé après l'en-tête « N° | Désignation »"""
    entete = _RE_ENTETE_TABLEAU.search(texte)
    if not entete:
        return []

    debut = texte.find("\n", entete.end())
    if debut < 0:
        return []

    lignes: List[_Ligne] = []
    for brute in texte[debut + 1:].splitlines():
        if "|" not in brute:
            continue
        cellules = _cellules(brute)
        if all(_RE_SEPARATEUR.match(c) for c in cellules):
            continue
        premiere = next((c for c in cellules if c), "")
        if _RE_FIN_TABLEAU.match(premiere):
            break
        if _RE_LIGNE_TOTAL.match(premiere) or _RE_ENTETE_TABLEAU.search(brute):
            continue

        cellules += [""] * (6 - len(cellules))
        numero, description, qte, unite, pu, total = cellules[:6]

        quantite = nombre_fr(qte) or ZERO
        prix = nombre_fr(pu) or ZERO
        montant = nombre_fr(total) or ZERO

        # Intitulé de section écrit dans la colonne N°
        if not description and numero and not _RE_NUMERO_LIGNE.match(numero):
            description = numero
        if not description:
            continue

        if quantite == 0 and prix == 0 and montant == 0:
            lignes.append(_Ligne(description=description, ordre=len(lignes), is_section=True))
        elif quantite > 0:
            if montant > 0:
                # Le montant imprimé fait foi (arrondi déjà appliqué par l'émetteur)
                montants = depuis_ht(montant, taux)
            else:
                montants = calculer_ligne(quantite, prix, taux)
            lignes.append(_Ligne(
                description=description,
                ordre=len(lignes),
                quantite=quantite,
                unite=unite or None,
                prix_unitaire=prix,
                montants=montants
            ))

    return lignes


# ──────────────────────────────────────────────────────────
# Point d'entrée
# ──────────────────────────────────────────────────────────

def extraire_devis(
    texte: str,
    aujourd_hui: Optional[date] = None,
    taux_defaut=20
) -> Optional[DevisExtrait]:
    """
    Construire un brouillon de devis à partir du texte brut d'un PDF.

    Args:
        texte: Texte extrait du document (toutes pages confondues)
        aujourd_hui: Date utilisée si le document n'est pas daté
        taux_defaut: Taux de TVA utilisé si le document n'en indique pas

    Returns:
        DevisExtrait, ou None si ni client ni montant TTC n'ont été trouvés
    """
    texte = texte or ""
    brouillon = _Brouillon()

    brouillon.reference_affaire = _extraire_reference_affaire(texte)
    brouillon.affaire_suivie_par = _extraire_suivie_par(texte)
    brouillon.lieu, brouillon.date_devis = _extraire_lieu_date(texte)
    brouillon.entreprise, brouillon.entreprise_adresse = _extraire_entreprise(texte)
    brouillon.client = (
        _extraire_client(texte)
        or brouillon.reference_affaire
        or brouillon.entreprise
    )

    brouillon.totaux, brouillon.taux_tva = _extraire_totaux(texte, Decimal(str(taux_defaut)))
    taux = brouillon.taux_tva if brouillon.taux_tva is not None else Decimal(str(taux_defaut))
    brouillon.lignes = _extraire_lignes(texte, taux)

    lignes_chiffrees = [l for l in brouillon.lignes if not l.is_section]
    if brouillon.totaux.ttc == 0 and lignes_chiffrees:
        brouillon.totaux = calculer_totaux(l.montants for l in lignes_chiffrees)

    if brouillon.client is None and brouillon.totaux.ttc == 0:
        logger.info("Extraction PDF: aucun client ni montant TTC trouvé")
        return None

    return _en_devis_extrait(brouillon, taux, aujourd_hui or date.today())


def _en_devis_extrait(brouillon: _Brouillon, taux: Decimal, aujourd_hui: date) -> DevisExtrait:
    notes = []
    if brouillon.reference_affaire:
        notes.append(f"Référence affaire : {brouillon.reference_affaire}")
    if brouillon.affaire_suivie_par:
        notes.append(f"Affaire suivie par : {brouillon.affaire_suivie_par}")

    lignes = []
    for ligne in brouillon.lignes:
        if ligne.is_section:
            lignes.append(LigneExtraite(description=ligne.description, ordre=ligne.ordre, is_section=True))
            continue
        lignes.append(LigneExtraite(
            description=ligne.description,
            quantite=float(ligne.quantite),
            unite=ligne.unite,
            prix_unitaire=float(ligne.prix_unitaire),
            taux_tva=float(taux),
            montant_ht=float(ligne.montants.ht),
            montant_tva=float(ligne.montants.tva),
            montant_ttc=float(ligne.montants.ttc),
            ordre=ligne.ordre
        ))

    return DevisExtrait(
        client=brouillon.client or CLIENT_NON_SPECIFIE,
        type_travaux=brouillon.reference_affaire or TYPE_TRAVAUX_DEFAUT,
        date_devis=brouillon.date_devis or aujourd_hui.isoformat(),
        taux_tva=float(taux),
        montant_ht=float(brouillon.totaux.ht),
        montant_tva=float(brouillon.totaux.tva),
        montant_ttc=float(brouillon.totaux.ttc),
        notes="\n".join(notes) or None,
        reference_affaire=brouillon.reference_affaire,
        affaire_suivie_par=brouillon.affaire_suivie_par,
        lieu=brouillon.lieu,
        entreprise=brouillon.entreprise,
        entreprise_adresse=brouillon.entreprise_adresse,
        lignes=lignes
    )


def lire_texte_pdf(contenu: bytes) -> str:
    """
    Texte de toutes les pages d'un PDF, pages mises bout à bout.

    Raises:
        ValueError: fichier qui n'est pas un PDF lisible
    """
    try:
        with pdfplumber.open(io.BytesIO(contenu)) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
    except (PdfminerException, PSException) as e:
        raise ValueError("Fichier PDF illisible") from e
    return "\n".join(pages)
