"""
API Routers
"""

from app.routers.clients import router as clients_router
from app.routers.dashboard import router as dashboard_router
from app.routers.devis import router as devis_router
from app.routers.parametres import router as parametres_router
