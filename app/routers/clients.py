"""
════════════════════════════════════════════════════════════
ROUTER - Clients (regroupement des devis par client)
════════════════════════════════════════════════════════════
Un client n'est pas une entité stockée: il est identifié par son
nom, sans tenir compte de la casse ni des espaces en bordure.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db, execute_query
from app.schemas.client import ClientResponse, ClientListResponse


router = APIRouter(prefix="/clients", tags=["Clients"])


@router.get("", response_model=ClientListResponse)
async def list_clients(db: Session = Depends(get_db)):
    """Lister les clients avec leurs statistiques de devis"""

    # Du plus récent au plus ancien: la première occurrence fournit les coordonnées
    rows = execute_query(db, """
        SELECT
            id,
            client,
            client_adresse,
            client_telephone,
            client_email,
            client_siret,
            montant_ttc,
            statut,
            date_devis
        FROM devis
        ORDER BY date_devis DESC, id DESC
    """)

    clients = {}
    for row in rows:
        key = row["client"].strip().lower()

        if key not in clients:
            clients[key] = {
                "nom": row["client"],
                "adresse": row["client_adresse"],
                "telephone": row["client_telephone"],
                "email": row["client_email"],
                "siret": row["client_siret"],
                "total_devis": 0,
                "total_montant": 0.0,
                "montant_accepte": 0.0,
                "dernier_devis": row["date_devis"],
                "devis_ids": []
            }

        client = clients[key]
        montant = float(row["montant_ttc"] or 0)
        client["total_devis"] += 1
        client["total_montant"] += montant
        if row["statut"] == "accepté":
            client["montant_accepte"] += montant
        client["devis_ids"].append(row["id"])

    result = []
    for client in sorted(clients.values(), key=lambda c: c["nom"].lower()):
        client["total_montant"] = round(client["total_montant"], 2)
        client["montant_accepte"] = round(client["montant_accepte"], 2)
        result.append(ClientResponse(**client))

    return ClientListResponse(clients=result, total=len(result))
