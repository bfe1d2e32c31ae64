from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from settings.config import get_settings


def add_cors_middleware(app: FastAPI):
    settings = get_settings()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Upload-Validation", "X-Rate-Limit-Remaining", "X-Rate-Limit-Reset", "Retry-After"],
    )
