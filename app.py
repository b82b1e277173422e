"""
ASGI entrypoint exposing the FastAPI `app` for servers like uvicorn.

Run with: `uvicorn app:app --reload`
"""
from betpromo.api.main import app  # noqa: F401
