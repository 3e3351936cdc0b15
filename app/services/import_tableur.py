"""
════════════════════════════════════════════════════════════
SERVICE - Import de devis depuis un tableur (.xlsx / .xls / .csv)
════════════════════════════════════════════════════════════
Colonnes obligatoires: client, typeTravaux, dateDevis, montant (TTC), statut
Colonnes optionnelles: materiaux, notes, clientAdresse, clientTelephone,
clientEmail, clientSiret, tauxTVA, dateValidite

Chaque ligne est traitée et enregistrée indépendamment: une ligne en
erreur n'empêche pas l'import des autres.
"""

import csv
import io
import logging
import re
import unicodedata
import zipfile
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

import xlrd
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from xlrd.compdoc import CompDocError

from app.models import STATUTS_DEVIS
from app.schemas.import_export import ErreurImport, ResultatImport
from app.schemas.parametres import ParametresApplication
from app.services.devis import creer_devis
from app.services.montants import depuis_ttc, en_decimal


logger = logging.getLogger(__name__)

EXTENSIONS_SUPPORTEES = (".xlsx", ".xls", ".csv")

CHAMPS_OBLIGATOIRES = ("client", "typetravaux", "datedevis", "montant", "statut")

# Clé normalisée -> colonne du devis
CHAMPS_TEXTE_OPTIONNELS = {
    "materiaux": "materiaux",
    "notes": "notes",
    "clientadresse": "client_adresse",
    "clienttelephone": "client_telephone",
    "clientemail": "client_email",
    "clientsiret": "client_siret",
}

_RE_ESPACES = re.compile(r"\s+")
_RE_DATE_FR = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


# ──────────────────────────────────────────────────────────
# Lecture du fichier
# ──────────────────────────────────────────────────────────

def extension(nom_fichier: Optional[str]) -> str:
    nom = (nom_fichier or "").lower()
    return nom[nom.rfind("."):] if "." in nom else ""


def lire_tableur(contenu: bytes, nom_fichier: str) -> List[Dict[str, Any]]:
    """
    Lire la première feuille d'un tableur en liste de dictionnaires
    (en-tête -> valeur). Les lignes entièrement vides sont ignorées.

    Raises:
        ValueError: format non supporté ou fichier illisible
    """
    ext = extension(nom_fichier)
    if ext == ".xlsx":
        return _lire_xlsx(contenu)
    if ext == ".xls":
        return _lire_xls(contenu)
    if ext == ".csv":
        return _lire_csv(contenu)
    raise ValueError(
        f"Format de fichier non supporté. Utilisez {', '.join(EXTENSIONS_SUPPORTEES[:-1])} ou {EXTENSIONS_SUPPORTEES[-1]}"
    )


def _lire_xlsx(contenu: bytes) -> List[Dict[str, Any]]:
    try:
        wb = load_workbook(io.BytesIO(contenu), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError) as e:
        raise ValueError("Fichier Excel illisible") from e

    try:
        ws = wb.worksheets[0]
        rows_iter = ws.iter_rows(values_only=True)
        try:
            header = next(rows_iter)
        except StopIteration:
            return []

        lignes = []
        for row in rows_iter:
            if all(v is None or (isinstance(v, str) and not v.strip()) for v in row):
                continue
            lignes.append({
                str(cle): valeur
                for cle, valeur in zip(header, row)
                if cle is not None
            })
        return lignes
    finally:
        wb.close()


def _valeur_xls(cellule, datemode):
    if cellule.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
        return None
    if cellule.ctype == xlrd.XL_CELL_DATE:
        return xlrd.xldate_as_datetime(cellule.value, datemode)
    return cellule.value


def _lire_xls(contenu: bytes) -> List[Dict[str, Any]]:
    try:
        classeur = xlrd.open_workbook(file_contents=contenu)
    except (xlrd.XLRDError, CompDocError) as e:
        raise ValueError("Fichier Excel illisible") from e

    ws = classeur.sheet_by_index(0)
    if ws.nrows == 0:
        return []

    header = ws.row_values(0)
    lignes = []
    for i in range(1, ws.nrows):
        row = [_valeur_xls(c, classeur.datemode) for c in ws.row(i)]
        if all(v is None or (isinstance(v, str) and not v.strip()) for v in row):
            continue
        lignes.append({
            str(cle): valeur
            for cle, valeur in zip(header, row)
            if cle not in (None, "")
        })
    return lignes


def _lire_csv(contenu: bytes) -> List[Dict[str, Any]]:
    try:
        texte = contenu.decode("utf-8-sig")
    except UnicodeDecodeError:
        texte = contenu.decode("latin-1")

    try:
        dialecte = csv.Sniffer().sniff(texte[:4096], delimiters=";,")
        delimiteur = dialecte.delimiter
    except csv.Error:
        delimiteur = ";"

    reader = csv.DictReader(io.StringIO(texte), delimiter=delimiteur)
    return [
        {cle: valeur for cle, valeur in row.items() if cle is not None}
        for row in reader
        if any((v or "").strip() for v in row.values() if isinstance(v, str))
    ]


# ──────────────────────────────────────────────────────────
# Conversion des valeurs
# ──────────────────────────────────────────────────────────

def normaliser_cle(cle: str) -> str:
    """Minuscules, sans espaces ni accents (ex: 'Matériaux' -> 'materiaux')"""
    sans_accents = "".join(
        c for c in unicodedata.normalize("NFKD", str(cle)) if not unicodedata.combining(c)
    )
    return _RE_ESPACES.sub("", sans_accents.lower())


def _texte(valeur) -> Optional[str]:
    if valeur is None:
        return None
    texte = str(valeur).strip()
    return texte or None


def lire_date(valeur) -> date:
    """Accepte date/datetime, AAAA-MM-JJ[...] et JJ/MM/AAAA"""
    if isinstance(valeur, datetime):
        return valeur.date()
    if isinstance(valeur, date):
        return valeur

    texte = str(valeur).strip()
    match = _RE_DATE_FR.match(texte)
    if match:
        jour, mois, annee = (int(x) for x in match.groups())
        return date(annee, mois, jour)
    return date.fromisoformat(texte[:10])


def lire_nombre(valeur) -> Decimal:
    """Nombre de cellule ou texte ('1 234,56'); NaN si illisible"""
    if isinstance(valeur, (int, float, Decimal)) and not isinstance(valeur, bool):
        return en_decimal(valeur)
    texte = _RE_ESPACES.sub("", str(valeur)).replace(",", ".")
    return en_decimal(texte)


def _valider_ligne(row: Dict[str, Any], parametres: ParametresApplication):
    """
    Valider une ligne normalisée.

    Returns:
        (donnees du devis, montants)

    Raises:
        ValueError: message d'erreur destiné au rapport d'import
    """
    valeurs = {cle: _texte(row.get(cle)) if cle != "datedevis" else row.get(cle) for cle in CHAMPS_OBLIGATOIRES}
    if isinstance(valeurs["datedevis"], str) and not valeurs["datedevis"].strip():
        valeurs["datedevis"] = None

    manquants = [cle for cle in CHAMPS_OBLIGATOIRES if valeurs[cle] is None]
    if manquants:
        raise ValueError(f"Champs obligatoires manquants: {', '.join(manquants)}")

    try:
        date_devis = lire_date(valeurs["datedevis"])
    except ValueError:
        raise ValueError(f"Date invalide: {valeurs['datedevis']}")

    montant = lire_nombre(row.get("montant"))
    if not montant.is_finite():
        raise ValueError(f"Montant invalide: {valeurs['montant']}")

    statut = valeurs["statut"].lower()
    if statut not in STATUTS_DEVIS:
        raise ValueError(f"Statut invalide (doit être: {', '.join(STATUTS_DEVIS)})")

    taux = en_decimal(parametres.devis.taux_tva_defaut)
    if _texte(row.get("tauxtva")) is not None:
        taux = lire_nombre(row["tauxtva"])
        if not taux.is_finite() or taux < 0:
            raise ValueError(f"Taux de TVA invalide: {row['tauxtva']}")

    donnees = {
        "client": valeurs["client"],
        "type_travaux": valeurs["typetravaux"],
        "date_devis": date_devis,
        "statut": statut,
        "taux_tva": taux,
    }

    if _texte(row.get("datevalidite")) is not None:
        try:
            donnees["date_validite"] = lire_date(row["datevalidite"])
        except ValueError:
            raise ValueError(f"Date de validité invalide: {row['datevalidite']}")

    for cle, colonne in CHAMPS_TEXTE_OPTIONNELS.items():
        donnees[colonne] = _texte(row.get(cle))

    return donnees, depuis_ttc(montant, taux)


# ──────────────────────────────────────────────────────────
# Import
# ──────────────────────────────────────────────────────────

def importer_lignes(
    db: Session,
    lignes: List[Dict[str, Any]],
    parametres: ParametresApplication
) -> ResultatImport:
    """
    Créer un devis par ligne de tableur.

    Le numéro de ligne rapporté en erreur est celui de la feuille
    (index + 2, l'en-tête occupant la ligne 1).
    """
    numeros = []
    erreurs = []

    for index, row in enumerate(lignes):
        numero_ligne = index + 2
        row_normalise = {normaliser_cle(cle): valeur for cle, valeur in row.items()}

        try:
            donnees, montants = _valider_ligne(row_normalise, parametres)
        except ValueError as e:
            logger.warning(f"Import ligne {numero_ligne} rejetée: {e}")
            erreurs.append(ErreurImport(ligne=numero_ligne, message=str(e)))
            continue

        try:
            devis = creer_devis(db, donnees, parametres, montants=montants)
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning(f"Import ligne {numero_ligne} non enregistrée: {e}")
            erreurs.append(ErreurImport(ligne=numero_ligne, message=f"Erreur d'enregistrement: {e.__class__.__name__}"))
            continue

        numeros.append(devis.numero_devis)

    logger.info(f"Import tableur: {len(numeros)} devis créés, {len(erreurs)} ligne(s) en erreur")

    return ResultatImport(
        success=True,
        message=f"{len(numeros)} devis créés avec succès",
        count=len(numeros),
        echecs=len(erreurs),
        errors=erreurs,
        numeros=numeros
    )
