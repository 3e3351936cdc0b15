"""
════════════════════════════════════════════════════════════
ROUTER - Devis (CRUD, filtres, exports, imports)
════════════════════════════════════════════════════════════
"""

import logging
import math
from datetime import date, datetime
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, status, Query, UploadFile, File
from fastapi.responses import Response, StreamingResponse
from sqlalchemy import select, func, or_
from sqlalchemy.orm import Session, defer, selectinload

from app.config import settings
from app.database import get_db, execute_query, execute_update
from app.models import Devis
from app.schemas.devis import (
    DevisCreate,
    DevisUpdate,
    StatutUpdate,
    DevisDetailResponse,
    DevisListResponse,
    DevisMessageResponse,
    DevisOptionsResponse,
    DevisResponse
)
from app.schemas.import_export import ResultatImport, ResultatImportPdf
from app.schemas.parametres import ParametresApplication
from app.services.devis import creer_devis, creer_devis_depuis_pdf, mettre_a_jour_devis
from app.services.export_excel import generer_classeur
from app.services.export_pdf import generer_pdf_devis
from app.services.extraction_pdf import extraire_devis, lire_texte_pdf
from app.services.import_tableur import EXTENSIONS_SUPPORTEES, extension, importer_lignes, lire_tableur
from app.services.parametres import get_parametres


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/devis", tags=["Devis"])


COLONNES_TRI = {
    "dateDevis": Devis.date_devis,
    "montantTTC": Devis.montant_ttc,
    "montant": Devis.montant_ttc,
    "client": Devis.client,
    "typeTravaux": Devis.type_travaux,
    "statut": Devis.statut,
    "createdAt": Devis.created_at,
    "numeroDevis": Devis.numero_devis,
}


# ──────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────

def filtres_devis(
    client: Optional[str] = None,
    type_travaux: Optional[str] = Query(None, alias="typeTravaux"),
    statut: Optional[str] = None,
    date_debut: Optional[date] = Query(None, alias="dateDebut"),
    date_fin: Optional[date] = Query(None, alias="dateFin"),
    search: Optional[str] = None,
    montant_min: Optional[float] = Query(None, alias="montantMin"),
    montant_max: Optional[float] = Query(None, alias="montantMax"),
    materiaux: Optional[str] = None
) -> list:
    """
    Conditions de filtrage communes à la liste et à l'export.
    La recherche globale remplace les filtres texte client/typeTravaux/materiaux.
    """
    conditions = []

    if search:
        motif = f"%{search}%"
        conditions.append(or_(
            Devis.client.ilike(motif),
            Devis.type_travaux.ilike(motif),
            Devis.notes.ilike(motif),
            Devis.materiaux.ilike(motif)
        ))
    else:
        if client:
            conditions.append(Devis.client.ilike(f"%{client}%"))
        if type_travaux:
            conditions.append(Devis.type_travaux.ilike(f"%{type_travaux}%"))
        if materiaux:
            conditions.append(Devis.materiaux.ilike(f"%{materiaux}%"))

    if statut:
        conditions.append(Devis.statut == statut.strip().lower())

    # Bornes incluses
    if date_debut:
        conditions.append(Devis.date_devis >= date_debut)
    if date_fin:
        conditions.append(Devis.date_devis <= date_fin)

    if montant_min is not None:
        conditions.append(Devis.montant_ttc >= montant_min)
    if montant_max is not None:
        conditions.append(Devis.montant_ttc <= montant_max)

    return conditions


def get_devis_or_404(db: Session, devis_id: int) -> Devis:
    devis = db.get(Devis, devis_id)
    if not devis:
        raise HTTPException(status_code=404, detail="Devis non trouvé")
    return devis


def _detail(devis: Devis) -> DevisDetailResponse:
    reponse = DevisDetailResponse.model_validate(devis)
    reponse.nb_lignes = len(reponse.lignes)
    return reponse


async def _lire_upload(file: UploadFile) -> bytes:
    contenu = await file.read()
    if not contenu:
        raise HTTPException(status_code=400, detail="Aucun fichier fourni ou fichier vide")
    if len(contenu) > settings.IMPORT_TAILLE_MAX_MO * 1024 * 1024:
        raise HTTPException(
            status_code=400,
            detail=f"Fichier trop volumineux (maximum {settings.IMPORT_TAILLE_MAX_MO} Mo)"
        )
    return contenu


# ──────────────────────────────────────────────────────────
# Liste des devis
# ──────────────────────────────────────────────────────────

@router.get("", response_model=DevisListResponse)
async def list_devis(
    conditions: list = Depends(filtres_devis),
    sort_by: str = Query("dateDevis", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200, alias="pageSize"),
    db: Session = Depends(get_db)
):
    """Lister les devis avec filtres, tri et pagination"""
    colonne = COLONNES_TRI.get(sort_by, Devis.date_devis)
    ordre = colonne.asc() if sort_order == "asc" else colonne.desc()

    total = db.scalar(select(func.count(Devis.id)).where(*conditions))

    devis = db.execute(
        select(Devis)
        .options(defer(Devis.pdf_original))
        .where(*conditions)
        .order_by(ordre, Devis.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    ).scalars().all()

    return DevisListResponse(
        devis=[DevisResponse.model_validate(d) for d in devis],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size) if total else 0
    )


# ──────────────────────────────────────────────────────────
# Options de filtres
# ──────────────────────────────────────────────────────────

@router.get("/options", response_model=DevisOptionsResponse)
async def get_options(db: Session = Depends(get_db)):
    """Valeurs distinctes pour l'autocomplétion des filtres"""

    def distinct(colonne: str):
        rows = execute_query(
            db,
            f"""
                SELECT DISTINCT {colonne} AS valeur
                FROM devis
                WHERE {colonne} IS NOT NULL AND {colonne} <> ''
                ORDER BY {colonne}
            """
        )
        return [row["valeur"] for row in rows]

    return DevisOptionsResponse(
        clients=distinct("client"),
        type_travaux=distinct("type_travaux"),
        statuts=distinct("statut"),
        materiaux=distinct("materiaux")
    )


# ──────────────────────────────────────────────────────────
# Export Excel
# ──────────────────────────────────────────────────────────

@router.get("/export/excel")
async def export_excel(
    conditions: list = Depends(filtres_devis),
    db: Session = Depends(get_db)
):
    """Exporter les devis filtrés (et leurs lignes) en Excel"""
    devis = db.execute(
        select(Devis)
        .options(defer(Devis.pdf_original), selectinload(Devis.lignes))
        .where(*conditions)
        .order_by(Devis.date_devis.desc(), Devis.id.desc())
    ).scalars().all()

    output = generer_classeur(devis)
    filename = f"devis-export-{date.today().isoformat()}.xlsx"
    logger.info(f"Export Excel: {len(devis)} devis")

    return StreamingResponse(
        output,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


# ──────────────────────────────────────────────────────────
# Imports
# ──────────────────────────────────────────────────────────

@router.post("/import", response_model=ResultatImport)
async def import_tableur(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    parametres: ParametresApplication = Depends(get_parametres)
):
    """
    Importer des devis depuis un fichier .xlsx, .xls ou .csv.

    Colonnes: client, typeTravaux, dateDevis, montant (TTC), statut
    (+ materiaux, notes, clientAdresse, clientTelephone, clientEmail,
    clientSiret, tauxTVA, dateValidite).
    """
    if extension(file.filename) not in EXTENSIONS_SUPPORTEES:
        raise HTTPException(
            status_code=400,
            detail=f"Format de fichier non supporté. Utilisez {', '.join(EXTENSIONS_SUPPORTEES[:-1])} ou {EXTENSIONS_SUPPORTEES[-1]}"
        )

    contenu = await _lire_upload(file)

    try:
        lignes = lire_tableur(contenu, file.filename)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if not lignes:
        raise HTTPException(status_code=400, detail="Le fichier est vide ou invalide")

    logger.info(f"Import de {file.filename}: {len(lignes)} ligne(s)")
    return importer_lignes(db, lignes, parametres)


@router.post("/import/pdf", response_model=ResultatImportPdf)
async def import_pdf(
    file: UploadFile = File(...),
    apercu: bool = Query(False, description="Retourner le brouillon sans l'enregistrer"),
    db: Session = Depends(get_db),
    parametres: ParametresApplication = Depends(get_parametres)
):
    """Importer un devis depuis un PDF (extraction heuristique du texte)"""
    if extension(file.filename) != ".pdf":
        raise HTTPException(status_code=400, detail="Format de fichier non supporté. Utilisez .pdf")

    contenu = await _lire_upload(file)

    try:
        texte = lire_texte_pdf(contenu)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    extrait = extraire_devis(texte, taux_defaut=parametres.devis.taux_tva_defaut)
    if extrait is None:
        logger.info(f"Import PDF {file.filename}: document illisible")
        raise HTTPException(
            status_code=422,
            detail="Document illisible: aucun client ni montant total trouvé"
        )

    if apercu:
        return ResultatImportPdf(message="Aperçu du devis extrait", apercu=True, extrait=extrait)

    devis = creer_devis_depuis_pdf(db, extrait, parametres, contenu=contenu, nom_fichier=file.filename)
    return ResultatImportPdf(
        message=f"Devis {devis.numero_devis} créé depuis le PDF",
        extrait=extrait,
        devis=_detail(devis)
    )


# ──────────────────────────────────────────────────────────
# CRUD
# ──────────────────────────────────────────────────────────

@router.post("", response_model=DevisDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_devis(
    data: DevisCreate,
    db: Session = Depends(get_db),
    parametres: ParametresApplication = Depends(get_parametres)
):
    """Créer un devis (numéro attribué automatiquement, totaux calculés)"""
    donnees = data.model_dump(exclude={"lignes"})
    devis = creer_devis(db, donnees, parametres, lignes=data.lignes)
    return _detail(devis)


@router.get("/{devis_id}", response_model=DevisDetailResponse)
async def get_devis(devis_id: int, db: Session = Depends(get_db)):
    """Obtenir un devis et ses lignes"""
    return _detail(get_devis_or_404(db, devis_id))


@router.put("/{devis_id}", response_model=DevisDetailResponse)
async def update_devis(devis_id: int, data: DevisUpdate, db: Session = Depends(get_db)):
    """Mettre à jour un devis (les lignes fournies remplacent les existantes)"""
    devis = get_devis_or_404(db, devis_id)
    return _detail(mettre_a_jour_devis(db, devis, data))


@router.patch("/{devis_id}/statut", response_model=DevisMessageResponse)
async def update_statut(devis_id: int, data: StatutUpdate, db: Session = Depends(get_db)):
    """Changer uniquement le statut d'un devis"""
    affected = execute_update(
        db,
        "UPDATE devis SET statut = :statut, updated_at = :maintenant WHERE id = :id",
        {"statut": data.statut.value, "maintenant": datetime.now(), "id": devis_id}
    )

    if affected == 0:
        raise HTTPException(status_code=404, detail="Devis non trouvé")

    return DevisMessageResponse(success=True, message=f"Statut mis à jour: {data.statut.value}")


@router.delete("/{devis_id}", response_model=DevisMessageResponse)
async def delete_devis(devis_id: int, db: Session = Depends(get_db)):
    """Supprimer un devis et ses lignes"""
    devis = get_devis_or_404(db, devis_id)
    numero = devis.numero_devis

    db.delete(devis)
    db.commit()
    logger.info(f"Devis {numero} supprimé")

    return DevisMessageResponse(success=True, message="Devis supprimé avec succès")


# ──────────────────────────────────────────────────────────
# PDF
# ──────────────────────────────────────────────────────────

@router.get("/{devis_id}/export/pdf")
async def export_pdf(
    devis_id: int,
    db: Session = Depends(get_db),
    parametres: ParametresApplication = Depends(get_parametres)
):
    """Générer le PDF d'un devis"""
    devis = get_devis_or_404(db, devis_id)
    contenu = generer_pdf_devis(devis, parametres)

    return Response(
        content=contenu,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="devis-{devis.numero_devis}.pdf"'}
    )


@router.get("/{devis_id}/pdf")
async def get_pdf_original(devis_id: int, db: Session = Depends(get_db)):
    """Télécharger le PDF d'origine d'un devis importé"""
    devis = get_devis_or_404(db, devis_id)

    if not devis.pdf_original:
        raise HTTPException(status_code=404, detail="Aucun PDF original disponible pour ce devis")

    filename = devis.nom_fichier_pdf or f"devis-{devis.numero_devis}.pdf"
    return Response(
        content=devis.pdf_original,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"}
    )
