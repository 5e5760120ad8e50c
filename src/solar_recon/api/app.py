"""FastAPI application for the solar reconciliation API."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from solar_recon.api.routes.health import router as health_router
from solar_recon.api.routes.reconciliation import router as reconciliation_router

app = FastAPI(title="Solar Reconciliation API", version="0.1.0")

# CORS for the admin console dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:8080"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(reconciliation_router)
