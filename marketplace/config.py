import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./marketplace.db")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Frontend base URL used to build notification action links
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Real-time push gateway (socket fan-out service). Unset = pushes are only logged
REALTIME_PUSH_URL = os.getenv("REALTIME_PUSH_URL")

# Downstream payment flow that releases funds for completed milestones
PAYMENTS_WEBHOOK_URL = os.getenv("PAYMENTS_WEBHOOK_URL")

# Timeout for fire-and-forget outbound calls (push, payment signal)
OUTBOUND_TIMEOUT_SECONDS = float(os.getenv("OUTBOUND_TIMEOUT_SECONDS", "3.0"))

# Workspace provisioning retries on transient storage errors
PROVISION_MAX_ATTEMPTS = int(os.getenv("PROVISION_MAX_ATTEMPTS", "3"))

# Contract defaults
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "USD")
DEFAULT_CONTRACT_DAYS = int(os.getenv("DEFAULT_CONTRACT_DAYS", "30"))
# Advisory only - pending signatures never expire
CONTRACT_RESPONSE_DAYS = int(os.getenv("CONTRACT_RESPONSE_DAYS", "7"))
