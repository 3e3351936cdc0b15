"""Modèle Parametre (sections de paramètres stockées en JSON)"""

from datetime import datetime

from sqlalchemy import Column, String, Text, DateTime

from app.models import Base


class Parametre(Base):
    __tablename__ = "parametres"

    cle = Column(String(50), primary_key=True)
    valeur = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    def __repr__(self):
        return f"<Parametre {self.cle}>"
