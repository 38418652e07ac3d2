"""
app/api/routers package marker.
"""

from app.api.routers.listing_scrape import router as listing_scrape_router
from app.api.routers.material_import import router as material_import_router

__all__ = [
    "listing_scrape_router",
    "material_import_router",
]
