"""File import endpoints.

POST /v1/import/upload        - multipart upload of an .xlsx / .xml export
POST /v1/import/auto          - import the export at DEFAULT_EXPORT_PATH
GET  /v1/import/default-info  - where the automatic import looks

IngestionError surfaces as a structured 400 (see main.py).
"""

from datetime import datetime, timezone
from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from stockviewer.schemas import DefaultExportInfo, ImportResponse
from stockviewer.routes.deps import get_cache, get_provider
from stockviewer.services.importer import import_from_bytes, import_from_path
from stockviewer.settings import get_settings
from stockviewer.stores.base import StockProvider
from stockviewer.stores.redis import RedisCatalogCache

router = APIRouter()


@router.post("/upload", response_model=ImportResponse)
async def upload_export(
    file: UploadFile = File(...),
    provider: StockProvider = Depends(get_provider),
    cache: RedisCatalogCache | None = Depends(get_cache),
) -> ImportResponse:
    if not file.filename:
        raise HTTPException(status_code=400, detail="Uploaded file has no name")
    content = await file.read()
    result = await import_from_bytes(provider, file.filename, content, cache)
    return ImportResponse.from_result(result)


@router.post("/auto", response_model=ImportResponse)
async def import_default_export(
    provider: StockProvider = Depends(get_provider),
    cache: RedisCatalogCache | None = Depends(get_cache),
) -> ImportResponse:
    path = get_settings().default_export_path
    if not Path(path).is_file():
        raise HTTPException(status_code=404, detail=f"Export file not found: {path}")
    result = await import_from_path(provider, path, cache, source="auto")
    return ImportResponse.from_result(result)


@router.get("/default-info", response_model=DefaultExportInfo)
async def default_export_info() -> DefaultExportInfo:
    path = Path(get_settings().default_export_path)
    if not path.is_file():
        return DefaultExportInfo(path=str(path), exists=False)
    stat = path.stat()
    return DefaultExportInfo(
        path=str(path),
        exists=True,
        file_size=stat.st_size,
        file_mtime=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
    )
