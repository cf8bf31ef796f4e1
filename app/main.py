"""ASGI entry point: ``uvicorn app.main:app``."""
from app.api.main import app

__all__ = ["app"]
