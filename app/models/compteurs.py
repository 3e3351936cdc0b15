"""Modèle CompteurNumero (dernière séquence attribuée par préfixe et année)"""

from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime

from app.models import Base


class CompteurNumero(Base):
    __tablename__ = "compteurs_numeros"

    base = Column(String(30), primary_key=True)  # ex: DEV-2024-
    dernier = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    def __repr__(self):
        return f"<CompteurNumero {self.base}{self.dernier:03d}>"
