"""Modèles Devis et LigneDevis"""

from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, Date, DateTime, Enum, Text,
    LargeBinary, ForeignKey
)
from sqlalchemy.orm import relationship

from app.models import Base


STATUTS_DEVIS = ("brouillon", "envoyé", "accepté", "refusé", "en cours", "terminé", "annulé")


class Devis(Base):
    __tablename__ = "devis"

    id = Column(Integer, primary_key=True)
    numero_devis = Column(String(30), unique=True, nullable=False, index=True)
    client = Column(String(255), nullable=False, index=True)
    client_adresse = Column(Text)
    client_telephone = Column(String(30))
    client_email = Column(String(255))
    client_siret = Column(String(30))
    type_travaux = Column(String(255), nullable=False, index=True)
    date_devis = Column(Date, nullable=False, index=True)
    date_validite = Column(Date)
    date_debut_travaux = Column(Date)
    taux_tva = Column(Numeric(5, 2), nullable=False, default=20)
    montant_ht = Column(Numeric(12, 2), nullable=False, default=0)
    montant_tva = Column(Numeric(12, 2), nullable=False, default=0)
    montant_ttc = Column(Numeric(12, 2), nullable=False, default=0)
    statut = Column(
        Enum(*STATUTS_DEVIS, name="statut_devis"),
        nullable=False,
        default="brouillon",
        index=True
    )
    materiaux = Column(Text)
    notes = Column(Text)
    pdf_original = Column(LargeBinary)
    nom_fichier_pdf = Column(String(255))
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    lignes = relationship(
        "LigneDevis",
        back_populates="devis",
        cascade="all, delete-orphan",
        order_by="LigneDevis.ordre"
    )

    def __repr__(self):
        return f"<Devis {self.numero_devis} - {self.statut}>"


class LigneDevis(Base):
    __tablename__ = "lignes_devis"

    id = Column(Integer, primary_key=True)
    devis_id = Column(Integer, ForeignKey("devis.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(Text, nullable=False)
    quantite = Column(Numeric(12, 3))
    unite = Column(String(30))
    prix_unitaire = Column(Numeric(12, 2))
    taux_tva = Column(Numeric(5, 2))
    montant_ht = Column(Numeric(12, 2))
    montant_tva = Column(Numeric(12, 2))
    montant_ttc = Column(Numeric(12, 2))
    ordre = Column(Integer, nullable=False, default=0)
    is_section = Column(Boolean, nullable=False, default=False)

    devis = relationship("Devis", back_populates="lignes")

    def __repr__(self):
        return f"<LigneDevis {self.ordre} - {self.description[:30]}>"
