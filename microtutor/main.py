"""
Micro-Tutor: Main Application
FastAPI app. Configures logging, CORS, mounts the lesson router.

Run: uvicorn microtutor.main:app --host 0.0.0.0 --port 8000
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from microtutor.config import CORS_ORIGINS, LOG_LEVEL, LLM_MODEL, TOTAL_QUESTIONS
from microtutor.routers import lesson

logger = logging.getLogger("microtutor")

VERSION = "1.0.0"


# ─── Lifespan (startup/shutdown) ─────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )
    logger.info(f"Micro-Tutor v{VERSION} ready (model={LLM_MODEL}, questions={TOTAL_QUESTIONS})")
    yield
    logger.info("Shutting down")


# ─── App ─────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="Micro-Tutor",
    description="LLM-backed micro-lesson tutor",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(lesson.router)


@app.get("/health")
async def health():
    return {"status": "ok", "version": VERSION}
