"""
════════════════════════════════════════════════════════════
CONFIGURATION - Variables d'environnement
════════════════════════════════════════════════════════════
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from pathlib import Path
from typing import Optional


# Chemin vers le fichier .env (à la racine du backend)
ENV_FILE = Path(__file__).resolve().parent.parent / ".env"


class Settings(BaseSettings):
    """Configuration de l'application"""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # Application
    APP_NAME: str = "Gestion Devis API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Base de données MySQL
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_NAME: str = "gestion_devis"
    DB_USER: str = "root"
    DB_PASSWORD: str = ""

    # URL complète (prioritaire sur DB_*), ex: sqlite:///./devis.db
    DB_URL: Optional[str] = None

    # CORS
    CORS_ORIGINS: list = ["http://localhost:3000", "http://localhost:4200"]

    # Devis - valeurs par défaut des paramètres
    DEVIS_PREFIXE: str = "DEV"
    DEVIS_TAUX_TVA_DEFAUT: float = 20.0
    DEVIS_DUREE_VALIDITE_JOURS: int = 30

    # Numérotation: nombre d'essais en cas de conflit sur numero_devis
    NUMEROTATION_TENTATIVES: int = 5

    # Import
    IMPORT_TAILLE_MAX_MO: int = 10

    @property
    def DATABASE_URL(self) -> str:
        """URL de connexion à la base de données"""
        if self.DB_URL:
            return self.DB_URL
        return f"mysql+mysqlconnector://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"


@lru_cache()
def get_settings() -> Settings:
    """Récupérer les settings (avec cache)"""
    return Settings()


settings = get_settings()
