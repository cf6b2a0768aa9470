"""API routes."""

from fastapi import APIRouter

from stockviewer.routes import catalog, imports, tally

api_router = APIRouter()

# Catalog browsing and price edits
api_router.include_router(catalog.router, prefix="/v1", tags=["catalog"])

# File imports
api_router.include_router(imports.router, prefix="/v1/import", tags=["import"])

# Live Tally refresh
api_router.include_router(tally.router, prefix="/v1/tally", tags=["tally"])
