"""
════════════════════════════════════════════════════════════
GESTION DEVIS - API Backend
════════════════════════════════════════════════════════════

Démarrage:
    uvicorn main:app --reload --host 0.0.0.0 --port 8000

Documentation:
    - Swagger UI: http://localhost:8000/docs
    - ReDoc: http://localhost:8000/redoc
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db, init_db
from app.routers import (
    clients_router,
    dashboard_router,
    devis_router,
    parametres_router
)


logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} démarrée")
    yield


# ──────────────────────────────────────────────────────────
# Application FastAPI
# ──────────────────────────────────────────────────────────

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
## API REST de gestion des devis de travaux

Cette API permet de gérer:
- **Devis** - CRUD, lignes, numérotation automatique, filtres
- **Imports** - Tableur (.xlsx, .csv) et PDF (extraction du texte)
- **Exports** - Excel et PDF
- **Clients** - Regroupement des devis par client
- **Dashboard** - Statistiques
- **Paramètres** - Entreprise, valeurs par défaut des devis, affichage
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


# ──────────────────────────────────────────────────────────
# CORS Middleware
# ──────────────────────────────────────────────────────────

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ──────────────────────────────────────────────────────────
# Routers
# ──────────────────────────────────────────────────────────

app.include_router(devis_router, prefix="/api")
app.include_router(clients_router, prefix="/api")
app.include_router(dashboard_router, prefix="/api")
app.include_router(parametres_router, prefix="/api")


# ──────────────────────────────────────────────────────────
# Routes de base
# ──────────────────────────────────────────────────────────

@app.get("/", tags=["Root"])
async def root():
    """Page d'accueil de l'API"""
    return {
        "message": "Bienvenue sur l'API Gestion Devis",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/health"
    }


@app.get("/health", tags=["Health"])
async def health_check(db: Session = Depends(get_db)):
    """Vérification de l'état de l'API"""

    # Test connexion DB
    db_status = "ok"
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Base de données indisponible: {e}")
        db_status = f"error: {str(e)}"

    return {
        "status": "healthy" if db_status == "ok" else "unhealthy",
        "database": db_status,
        "version": settings.APP_VERSION
    }


# ──────────────────────────────────────────────────────────
# Démarrage
# ──────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
