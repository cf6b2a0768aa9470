"""Request dependencies: objects owned by the app lifespan."""

from fastapi import Request

from stockviewer.services.scheduler import RefreshScheduler
from stockviewer.stores.base import StockProvider
from stockviewer.stores.redis import RedisCatalogCache


def get_provider(request: Request) -> StockProvider:
    return request.app.state.provider


def get_cache(request: Request) -> RedisCatalogCache | None:
    return getattr(request.app.state, "cache", None)


def get_scheduler(request: Request) -> RefreshScheduler:
    return request.app.state.scheduler
