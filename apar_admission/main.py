"""FastAPI application setup for the inspection admission service."""

from fastapi import FastAPI

from .api import router as api_router

app = FastAPI(title="APAR Inspection Admission")


@app.get("/health")
def health():
    """Liveness probe."""
    return {"status": "ok"}


app.include_router(api_router, prefix="/v1")
