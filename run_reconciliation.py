"""
Workspace Reconciliation Runner
Run this as a separate process (or from cron): python run_reconciliation.py

RECONCILE_INTERVAL_SECONDS=0 runs a single sweep and exits.
"""

import logging
import os
import sys
import time
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent))

from marketplace import models, models_workspace  # noqa: E402,F401
from marketplace.database import SessionLocal  # noqa: E402
from marketplace.services.workspace_reconciliation import (  # noqa: E402
    ensure_workspaces_for_active_contracts,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

INTERVAL_SECONDS = int(os.getenv("RECONCILE_INTERVAL_SECONDS", "300"))


def run_once() -> dict:
    db = SessionLocal()
    try:
        return ensure_workspaces_for_active_contracts(db)
    finally:
        db.close()


if __name__ == "__main__":
    logger.info("🚀 Starting workspace reconciliation...")
    try:
        while True:
            summary = run_once()
            logger.info(f"📊 Sweep finished: {summary}")
            if INTERVAL_SECONDS <= 0:
                break
            time.sleep(INTERVAL_SECONDS)
    except KeyboardInterrupt:
        logger.info("👋 Reconciliation stopped by user")
    except Exception as e:
        logger.error(f"❌ Reconciliation crashed: {e}")
        sys.exit(1)
