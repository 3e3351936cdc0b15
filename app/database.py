"""
════════════════════════════════════════════════════════════
DATABASE - Connexion SQLAlchemy (MySQL par défaut)
════════════════════════════════════════════════════════════
"""

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, Session
from typing import Optional, List, Dict, Any

from app.config import settings


# ──────────────────────────────────────────────────────────
# SQLAlchemy Engine - Lazy initialization
# ──────────────────────────────────────────────────────────

_engine = None
_SessionLocal = None


def get_engine():
    """Obtenir l'engine SQLAlchemy (création lazy)"""
    global _engine
    if _engine is None:
        url = settings.DATABASE_URL
        if url.startswith("sqlite"):
            # Les requêtes FastAPI tournent dans un pool de threads
            _engine = create_engine(
                url,
                connect_args={"check_same_thread": False},
                echo=settings.DEBUG
            )
        else:
            _engine = create_engine(
                url,
                pool_pre_ping=True,
                pool_recycle=3600,
                echo=settings.DEBUG
            )
    return _engine


def get_session_local():
    """Obtenir la SessionLocal (création lazy)"""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=get_engine()
        )
    return _SessionLocal


def reset_engine():
    """Oublier l'engine courant (changement d'URL, tests)"""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


def init_db():
    """Créer les tables manquantes"""
    from app.models import Base
    Base.metadata.create_all(bind=get_engine())


# ──────────────────────────────────────────────────────────
# Dependency Injection pour FastAPI
# ──────────────────────────────────────────────────────────

def get_db():
    """Dependency pour obtenir une session DB"""
    SessionLocal = get_session_local()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# ──────────────────────────────────────────────────────────
# Fonctions utilitaires (requêtes SQL directes)
# ──────────────────────────────────────────────────────────

def execute_query(
    db: Session,
    query: str,
    params: dict = None,
    fetch_one: bool = False
) -> Optional[List[Dict[str, Any]]]:
    """Exécuter une requête SELECT et retourner des dictionnaires"""
    result = db.execute(text(query), params or {})
    rows = result.mappings().all()
    if fetch_one:
        return dict(rows[0]) if rows else None
    return [dict(row) for row in rows]


def execute_update(db: Session, query: str, params: dict = None) -> int:
    """Exécuter une requête UPDATE/DELETE et retourner le nombre de lignes affectées"""
    result = db.execute(text(query), params or {})
    db.commit()
    return result.rowcount
