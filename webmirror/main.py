from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from webmirror.api.router import router
from webmirror.core.log import configure_logging
from webmirror.workers.transport import close_transport

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    # ── Shutdown ─────────────────────────────────────────────────────
    await close_transport()


app = FastAPI(
    title="Web Mirror",
    description="Async service that mirrors web pages and their assets to disk.",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router)


@app.get("/health", tags=["health"])
async def health() -> dict[str, str]:
    return {"status": "ok"}
