# realtyhub/config.py
# Environment-aware configuration for the RealtyHub marketplace backend

import os
from typing import Literal

# Environment detection
ENV: Literal["dev", "staging", "prod"] = os.environ.get("ENV", "dev")  # type: ignore
IS_DEV = (ENV == "dev")
IS_STAGING = (ENV == "staging")
IS_PROD = (ENV == "prod")

# JWT verification (tokens are issued by the auth service)
SECRET_KEY = os.environ.get("SECRET_KEY", "your-secret-key-change-in-production")
ALGORITHM = "HS256"

# Database configuration
DATABASE_PATH = os.environ.get("DATABASE_PATH", "realtyhub.db")

# Image uploads
UPLOAD_DIR = os.environ.get("UPLOAD_DIR", os.path.join("public", "uploads"))
UPLOAD_URL_PREFIX = "/uploads"
MAX_UPLOAD_BYTES = int(os.environ.get("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))  # per file
MAX_UPLOAD_FILES = int(os.environ.get("MAX_UPLOAD_FILES", "10"))
ALLOWED_IMAGE_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif", ".webp"}

# Assistant result caps
CHAT_RESULT_LIMIT = int(os.environ.get("CHAT_RESULT_LIMIT", "5"))
VOICE_RESULT_LIMIT = int(os.environ.get("VOICE_RESULT_LIMIT", "3"))

# CORS origins (expand for staging/prod)
CORS_ORIGINS = [
    "http://localhost:5173",  # Vite default
    "http://127.0.0.1:5173",
]

if IS_STAGING or IS_PROD:
    extra_origins = os.environ.get("CORS_ORIGINS", "")
    if extra_origins:
        CORS_ORIGINS.extend(extra_origins.split(","))

print(f"[CONFIG] Environment: {ENV}")
print(f"[CONFIG] Database: SQLite ({DATABASE_PATH})")
print(f"[CONFIG] Upload dir: {UPLOAD_DIR} (max {MAX_UPLOAD_FILES} files, {MAX_UPLOAD_BYTES} bytes each)")
