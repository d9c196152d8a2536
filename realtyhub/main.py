# ---------------------------------------------------------
# realtyhub/main.py
# RealtyHub - Real Estate Marketplace Backend
#
# Run: uvicorn realtyhub.main:app --reload (from repo root)
#
# - FastAPI + SQLite
# - /api/properties    : browse, detail, create/update/delete listings (multipart)
# - /api/subscriptions : plan catalog, subscribe, status, cancel
# - /api/agencies      : register, profile, dashboard stats, public directory
# - /api/ai            : rule-based chatbot and stubbed voice bot
# - /uploads           : uploaded listing images
# ---------------------------------------------------------

from __future__ import annotations

import os
from typing import Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

# Import local modules (robust fallback for different run contexts)
try:
    from realtyhub.config import CORS_ORIGINS, IS_PROD, UPLOAD_DIR, UPLOAD_URL_PREFIX
    from realtyhub.routes_agencies import router as agencies_router
    from realtyhub.routes_assistant import router as assistant_router
    from realtyhub.routes_properties import router as properties_router
    from realtyhub.routes_subscriptions import router as subscriptions_router
except ModuleNotFoundError:
    from config import CORS_ORIGINS, IS_PROD, UPLOAD_DIR, UPLOAD_URL_PREFIX
    from routes_agencies import router as agencies_router
    from routes_assistant import router as assistant_router
    from routes_properties import router as properties_router
    from routes_subscriptions import router as subscriptions_router


# ---------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------
app = FastAPI(title="RealtyHub Backend", version="0.1")

# CORS configuration from config module
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS if IS_PROD else ["*"],  # Restrict origins in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(properties_router)
app.include_router(subscriptions_router)
app.include_router(agencies_router)
app.include_router(assistant_router)

os.makedirs(UPLOAD_DIR, exist_ok=True)
app.mount(UPLOAD_URL_PREFIX, StaticFiles(directory=UPLOAD_DIR), name="uploads")


# ---------------------------------------------------------
# Routes
# ---------------------------------------------------------
@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok", "message": "RealtyHub API is running"}
