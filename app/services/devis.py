"""
════════════════════════════════════════════════════════════
SERVICE - Création et mise à jour des devis
════════════════════════════════════════════════════════════
"""

import logging
from datetime import date, timedelta
from typing import Optional, List, Iterable, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.models import Devis, LigneDevis
from app.schemas.devis import DevisExtrait, DevisUpdate, LigneDevisCreate, LigneExtraite
from app.schemas.parametres import ParametresApplication
from app.services.montants import Montants, arrondir, calculer_ligne, calculer_totaux, en_decimal
from app.services.numerotation import allouer_numero_devis


logger = logging.getLogger(__name__)


def _valeur_statut(statut) -> str:
    return getattr(statut, "value", statut)


# ──────────────────────────────────────────────────────────
# Lignes et totaux
# ──────────────────────────────────────────────────────────

def construire_lignes(
    lignes: Iterable[Union[LigneDevisCreate, LigneExtraite]],
    taux_devis
) -> List[LigneDevis]:
    """
    Transformer les lignes saisies (ou extraites d'un PDF) en lignes persistables.

    Les lignes sans description sont ignorées. Une ligne de section
    n'a aucun montant. L'ordre suit la position dans la liste.
    Une ligne extraite garde les montants imprimés sur le document.
    """
    resultat = []

    for ligne in lignes:
        description = (ligne.description or "").strip()
        if not description:
            continue

        ordre = len(resultat)

        if ligne.is_section:
            resultat.append(LigneDevis(description=description, ordre=ordre, is_section=True))
            continue

        taux = ligne.taux_tva if ligne.taux_tva is not None else taux_devis
        quantite = ligne.quantite or 0
        prix = ligne.prix_unitaire or 0
        if isinstance(ligne, LigneExtraite) and ligne.montant_ht is not None:
            m = Montants(arrondir(ligne.montant_ht), arrondir(ligne.montant_tva), arrondir(ligne.montant_ttc))
        else:
            m = calculer_ligne(quantite, prix, taux)
        resultat.append(LigneDevis(
            description=description,
            quantite=en_decimal(quantite),
            unite=ligne.unite,
            prix_unitaire=arrondir(prix),
            taux_tva=en_decimal(taux),
            montant_ht=m.ht,
            montant_tva=m.tva,
            montant_ttc=m.ttc,
            ordre=ordre,
            is_section=False
        ))

    return resultat


def montants_ligne(ligne: LigneDevis) -> Optional[Montants]:
    if ligne.is_section or ligne.montant_ht is None:
        return None
    return Montants(ht=ligne.montant_ht, tva=ligne.montant_tva, ttc=ligne.montant_ttc)


def appliquer_totaux(devis: Devis, montants: Optional[Montants] = None):
    """Reporter sur le devis les totaux des lignes (ou des montants fournis)"""
    if montants is None:
        montants = calculer_totaux(montants_ligne(l) for l in devis.lignes)
    devis.montant_ht = montants.ht
    devis.montant_tva = montants.tva
    devis.montant_ttc = montants.ttc


# ──────────────────────────────────────────────────────────
# Création
# ──────────────────────────────────────────────────────────

def completer_valeurs(donnees: dict, parametres: ParametresApplication) -> dict:
    """Compléter les champs absents avec les paramètres de l'application"""
    valeurs = {k: v for k, v in donnees.items() if v is not None}

    valeurs.setdefault("taux_tva", parametres.devis.taux_tva_defaut)
    valeurs.setdefault("date_devis", date.today())
    valeurs.setdefault(
        "date_validite",
        valeurs["date_devis"] + timedelta(days=parametres.devis.duree_validite_defaut)
    )
    valeurs.setdefault("statut", "brouillon")
    if not valeurs.get("notes") and parametres.devis.notes_par_defaut:
        valeurs["notes"] = parametres.devis.notes_par_defaut

    valeurs["taux_tva"] = en_decimal(valeurs["taux_tva"])
    valeurs["statut"] = _valeur_statut(valeurs["statut"])
    return valeurs


def creer_devis(
    db: Session,
    donnees: dict,
    parametres: ParametresApplication,
    lignes: Optional[List[Union[LigneDevisCreate, LigneExtraite]]] = None,
    montants: Optional[Montants] = None
) -> Devis:
    """
    Créer un devis numéroté.

    Args:
        donnees: Valeurs des colonnes du devis (client, type_travaux, ...)
        parametres: Paramètres courants (TVA, validité, préfixe, notes)
        lignes: Lignes saisies
        montants: Totaux imposés (imports); à défaut, somme des lignes

    Le numéro est alloué sans verrou: en cas de doublon concurrent la
    contrainte d'unicité lève IntegrityError et l'allocation est rejouée.
    """
    valeurs = completer_valeurs(donnees, parametres)
    prefixe = parametres.devis.prefixe_numero
    tentatives = max(1, settings.NUMEROTATION_TENTATIVES)

    for tentative in range(1, tentatives + 1):
        devis = Devis(**valeurs)
        if lignes:
            devis.lignes = construire_lignes(lignes, valeurs["taux_tva"])
        appliquer_totaux(devis, montants)

        devis.numero_devis = allouer_numero_devis(db, prefixe)
        db.add(devis)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            if tentative == tentatives:
                logger.error(f"Numérotation impossible après {tentatives} essais ({devis.numero_devis})")
                raise
            logger.warning(f"Numéro {devis.numero_devis} déjà attribué, nouvel essai ({tentative}/{tentatives})")
            continue

        db.refresh(devis)
        logger.info(f"Devis {devis.numero_devis} créé pour {devis.client}")
        return devis


def creer_devis_depuis_pdf(
    db: Session,
    extrait: DevisExtrait,
    parametres: ParametresApplication,
    contenu: Optional[bytes] = None,
    nom_fichier: Optional[str] = None
) -> Devis:
    """Enregistrer un brouillon extrait d'un PDF, avec le document d'origine"""
    try:
        date_devis = date.fromisoformat(extrait.date_devis)
    except ValueError:
        logger.info(f"Date extraite invalide ({extrait.date_devis}), date du jour utilisée")
        date_devis = date.today()

    donnees = {
        "client": extrait.client,
        "client_adresse": extrait.client_adresse,
        "type_travaux": extrait.type_travaux,
        "date_devis": date_devis,
        "taux_tva": extrait.taux_tva,
        "statut": extrait.statut,
        "notes": extrait.notes,
        "pdf_original": contenu,
        "nom_fichier_pdf": nom_fichier,
    }
    # Les totaux et montants de lignes du document font foi
    montants = Montants(
        ht=arrondir(extrait.montant_ht),
        tva=arrondir(extrait.montant_tva),
        ttc=arrondir(extrait.montant_ttc)
    )
    return creer_devis(db, donnees, parametres, lignes=extrait.lignes, montants=montants)


# ──────────────────────────────────────────────────────────
# Mise à jour
# ──────────────────────────────────────────────────────────

def mettre_a_jour_devis(db: Session, devis: Devis, maj: DevisUpdate) -> Devis:
    """
    Appliquer une mise à jour partielle.

    Seuls les champs envoyés sont modifiés. Si `lignes` est fourni,
    les lignes existantes sont remplacées et les totaux recalculés.
    """
    champs = maj.model_dump(exclude_unset=True, exclude={"lignes"})

    for champ, valeur in champs.items():
        if champ in ("client", "type_travaux", "date_devis", "taux_tva", "statut") and valeur is None:
            # Colonnes obligatoires: null ignoré
            continue
        if champ == "statut":
            valeur = _valeur_statut(valeur)
        elif champ == "taux_tva":
            valeur = en_decimal(valeur)
        setattr(devis, champ, valeur)

    if maj.lignes is not None:
        devis.lignes = construire_lignes(maj.lignes, devis.taux_tva)
        appliquer_totaux(devis)

    db.commit()
    db.refresh(devis)
    logger.info(f"Devis {devis.numero_devis} mis à jour")
    return devis
