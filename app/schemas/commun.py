"""
════════════════════════════════════════════════════════════
SCHEMAS - Base commune
════════════════════════════════════════════════════════════
Les champs sont nommés en snake_case côté Python et exposés en
camelCase dans le JSON (numeroDevis, montantHT, tauxTVA, ...).
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


# Sigles conservés en majuscules dans les noms JSON
_ALIAS_SPECIAUX = {
    "montant_ht": "montantHT",
    "montant_tva": "montantTVA",
    "montant_ttc": "montantTTC",
    "taux_tva": "tauxTVA",
    "taux_tva_defaut": "tauxTVADefaut",
}


def alias_camel(nom: str) -> str:
    return _ALIAS_SPECIAUX.get(nom) or to_camel(nom)


class SchemaBase(BaseModel):
    model_config = ConfigDict(
        alias_generator=alias_camel,
        populate_by_name=True,
        from_attributes=True
    )
