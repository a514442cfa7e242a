"""Application-wide configuration constants."""

import os

# --- Identity ---
APP_NAME = "Webcam Relay"
APP_VERSION = "1.0.0"

# --- Networking ---
API_HOST = os.environ.get("HOST", "0.0.0.0")
API_PORT = int(os.environ.get("PORT", "3000"))
CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("CORS_ORIGINS", "*").split(",")
    if origin.strip()
]

# --- Liveness ---
REAPER_INTERVAL = float(os.environ.get("REAPER_INTERVAL", "30"))  # seconds
LIVENESS_WINDOW = float(os.environ.get("LIVENESS_WINDOW", "60"))  # seconds before a source is considered gone

# --- Logging ---
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
