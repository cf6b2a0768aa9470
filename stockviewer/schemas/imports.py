"""Schemas for file import endpoints (/v1/import/*)."""

from datetime import datetime

from pydantic import BaseModel, Field

from stockviewer.services.importer import ImportResult


class ImportResponse(BaseModel):
    source: str
    filename: str
    ext: str
    parsed_count: int = Field(alias="parsedCount")
    upserted_count: int = Field(alias="upsertedCount")
    change_count: int = Field(alias="changeCount")
    path: str | None = None
    file_size: int | None = Field(alias="fileSize", default=None)
    file_mtime: datetime | None = Field(alias="fileMtime", default=None)

    model_config = {"populate_by_name": True}

    @classmethod
    def from_result(cls, result: ImportResult) -> "ImportResponse":
        return cls(
            source=result.source,
            filename=result.filename,
            ext=result.ext,
            parsed_count=result.parsed_count,
            upserted_count=result.upserted_count,
            change_count=result.change_count,
            path=result.path,
            file_size=result.file_size,
            file_mtime=result.file_mtime,
        )


class DefaultExportInfo(BaseModel):
    """Where the automatic import looks, and whether a file is there."""

    path: str
    exists: bool
    file_size: int | None = Field(alias="fileSize", default=None)
    file_mtime: datetime | None = Field(alias="fileMtime", default=None)

    model_config = {"populate_by_name": True}
