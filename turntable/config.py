"""
Environment configuration for the turntable worker.

Values are read once at import time (after loading .env) and exposed as
module-level constants. Provider clients take these as constructor defaults,
so tests can pass explicit values instead of touching the environment.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


# ── Gemini (vision description) ──────────────────────────────────────────────
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"

# ── Image hosting ────────────────────────────────────────────────────────────
IMAGE_HOST = os.getenv("IMAGE_HOST", "imagekit").lower()

IMAGEKIT_PRIVATE_KEY = os.getenv("IMAGEKIT_PRIVATE_KEY", "")
IMAGEKIT_UPLOAD_URL = "https://upload.imagekit.io/api/v1/files/upload"

R2_PUBLIC_URL = os.getenv("R2_PUBLIC_URL", "")
R2_ACCOUNT_ID = os.getenv("R2_ACCOUNT_ID", "")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID", "")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY", "")
R2_BUCKET_NAME = os.getenv("R2_BUCKET_NAME", "assets")

# ── Video synthesis ──────────────────────────────────────────────────────────
VIDEO_PROVIDER = os.getenv("VIDEO_PROVIDER", "vertex").lower()

VERTEX_PROJECT_ID = os.getenv("VERTEX_PROJECT_ID", "")
VERTEX_LOCATION = os.getenv("VERTEX_LOCATION", "us-central1")
VERTEX_VEO_MODEL = os.getenv("VERTEX_VEO_MODEL", "veo-2.0-generate-exp")
GOOGLE_APPLICATION_CREDENTIALS = os.getenv(
    "GOOGLE_APPLICATION_CREDENTIALS", os.path.join(os.getcwd(), "credentials.json")
)

KIE_API_KEY = os.getenv("KIE_API_KEY", "")
KIE_API_BASE = "https://api.kie.ai/api/v1"
KIE_VEO_MODEL = os.getenv("KIE_VEO_MODEL", "veo3_fast")

VEO_POLL_INTERVAL = _float_env("VEO_POLL_INTERVAL", 5.0)  # seconds
VEO_MAX_POLL_ATTEMPTS = _int_env("VEO_MAX_POLL_ATTEMPTS", 60)  # 5 minutes at the default interval

# ── Shopify (product search) ─────────────────────────────────────────────────
SHOPIFY_STORE_URL = os.getenv("SHOPIFY_STORE_URL", "")
SHOPIFY_ACCESS_TOKEN = os.getenv("SHOPIFY_ACCESS_TOKEN", "")
SHOPIFY_API_VERSION = os.getenv("SHOPIFY_API_VERSION", "2024-01")

# ── Runtime ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = _int_env("PORT", 8000)
