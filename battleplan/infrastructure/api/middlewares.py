from __future__ import annotations

import os

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

_DEV_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",  # Vite default
    "http://localhost:4173",  # Vite preview
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:4173",
]


def allowed_origins() -> list[str]:
    """CORS origins for the current ``ENV``.

    ``CORS_ORIGINS`` (comma separated) overrides the defaults in any
    environment.
    """
    configured = os.getenv("CORS_ORIGINS")
    if configured:
        return [origin.strip() for origin in configured.split(",") if origin.strip()]
    if os.getenv("ENV", "development") in ("development", "staging"):
        return list(_DEV_ORIGINS)
    return ["*"]


def add_default_middlewares(app: FastAPI) -> None:
    origins = allowed_origins()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # browsers reject credentials with a wildcard origin
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
