"""TaleTree FastAPI application entry point."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from taletree.db.connection import Database
from taletree.dialogue.router import get_dialogue_service
from taletree.dialogue.router import router as dialogue_router
from taletree.dialogue.service import DialogueService
from taletree.summarizer.registry import (
    clear_summarizers,
    list_summarizers,
    register_default_summarizers,
)

# Load .env from the project root (secrets stay out of shell profile)
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

DEFAULT_DB_PATH = "taletree.db"
DEFAULT_CORS_ORIGINS = "http://localhost:3000"


def cors_origins() -> list[str]:
    raw = os.environ.get("TALETREE_CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage database lifecycle and service wiring."""
    db = await Database.connect(os.environ.get("TALETREE_DB_PATH", DEFAULT_DB_PATH))

    # Summarizer clients are built per request from the caller's connection
    register_default_summarizers()

    service = DialogueService(db)
    app.dependency_overrides[get_dialogue_service] = lambda: service

    app.state.db = db
    yield

    clear_summarizers()
    await db.close()


app = FastAPI(
    title="TaleTree",
    description=(
        "Character chat backend that keeps every explored reply"
        " as a branching dialogue tree"
    ),
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(dialogue_router)


@app.get("/api/health")
async def health() -> dict:
    return {"status": "ok", "version": "0.1.0"}


@app.get("/api/summarizers")
async def summarizers() -> list[str]:
    return list_summarizers()
