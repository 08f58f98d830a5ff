import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./outreach.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Fernet key for mailbox tokens at rest
# (generate with: python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())")
ENCRYPTION_KEY = os.getenv("ENCRYPTION_KEY")

# Public base URL of this API - tracking pixels and click redirects point here
APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:8000").rstrip("/")

# Frontend base URL for redirects
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000").rstrip("/")

# Gmail OAuth Configuration
# OAuth flow: Google → Backend callback → Frontend settings page
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
GOOGLE_REDIRECT_URI = os.getenv("GOOGLE_REDIRECT_URI", f"{APP_BASE_URL}/gmail/callback")

# AI provider keys - a provider is offered only when its key is set
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
GOOGLE_GEMINI_API_KEY = os.getenv("GOOGLE_GEMINI_API_KEY")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
DEFAULT_AI_PROVIDER = os.getenv("DEFAULT_AI_PROVIDER", "gemini")

# Outbound HTTP timeout for AI providers and the mailbox API
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))

# Refresh mailbox access tokens this long before they expire
TOKEN_REFRESH_BUFFER_MINUTES = int(os.getenv("TOKEN_REFRESH_BUFFER_MINUTES", "5"))

# Draft generation: requests per window per user
GENERATION_RATE_LIMIT = int(os.getenv("GENERATION_RATE_LIMIT", "10"))
GENERATION_RATE_WINDOW_SECONDS = int(os.getenv("GENERATION_RATE_WINDOW_SECONDS", "60"))

# Free tier allowance (lifetime generated drafts)
FREE_EMAIL_LIMIT = int(os.getenv("FREE_EMAIL_LIMIT", "5"))

# Optional shared store for rate limiting; in-memory when unset
REDIS_URL = os.getenv("REDIS_URL")

# Uploaded documents (attachments) live under this directory
UPLOAD_DIR = os.getenv("UPLOAD_DIR", str(Path(__file__).resolve().parent.parent / "uploads"))

ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", f"{FRONTEND_URL},http://localhost:3000").split(",")


def is_configured(value: str | None) -> bool:
    """True for a real credential, False for unset or sample placeholder values"""
    if not value or not value.strip():
        return False
    return not (value.startswith("your-") and value.endswith("-api-key"))
