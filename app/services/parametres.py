"""
════════════════════════════════════════════════════════════
SERVICE - Paramètres de l'application
════════════════════════════════════════════════════════════
Chaque section (entreprise, devis, affichage) est stockée en JSON
dans la table parametres et fusionnée avec les valeurs par défaut.
"""

import json
import logging

from fastapi import Depends
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.database import get_db
from app.models import Parametre
from app.schemas.parametres import ParametresApplication


logger = logging.getLogger(__name__)

SECTIONS = ("entreprise", "devis", "affichage")


def charger_parametres(db: Session) -> ParametresApplication:
    """Lire les paramètres enregistrés, complétés par les valeurs par défaut"""
    parametres = ParametresApplication()

    for ligne in db.query(Parametre).filter(Parametre.cle.in_(SECTIONS)).all():
        section = getattr(parametres, ligne.cle)
        try:
            enregistre = json.loads(ligne.valeur)
            if not isinstance(enregistre, dict):
                raise ValueError(f"objet JSON attendu, {type(enregistre).__name__} trouvé")
            valeurs = {**section.model_dump(), **enregistre}
            setattr(parametres, ligne.cle, type(section).model_validate(valeurs))
        except (ValueError, ValidationError) as e:
            # Section illisible: on garde les valeurs par défaut
            logger.warning(f"Paramètres '{ligne.cle}' ignorés: {e}")

    return parametres


def enregistrer_parametres(db: Session, parametres: ParametresApplication) -> ParametresApplication:
    """Remplacer toutes les sections enregistrées"""
    for cle in SECTIONS:
        valeur = getattr(parametres, cle).model_dump_json()
        ligne = db.get(Parametre, cle)
        if ligne is None:
            db.add(Parametre(cle=cle, valeur=valeur))
        else:
            ligne.valeur = valeur
    db.commit()
    logger.info("Paramètres de l'application mis à jour")
    return charger_parametres(db)


def get_parametres(db: Session = Depends(get_db)) -> ParametresApplication:
    """Dependency FastAPI: paramètres courants"""
    return charger_parametres(db)
