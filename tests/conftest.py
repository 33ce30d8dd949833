"""
Pytest configuration for the monitoring backend tests.

Puts backend/ on sys.path so tests import modules the same way the
application does (`from services.dashboard import ...`).
"""

import os
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent

BACKEND_PATH = PROJECT_ROOT / "backend"
if str(BACKEND_PATH) not in sys.path:
    sys.path.insert(0, str(BACKEND_PATH))

# Keep tests away from any developer .env pointing at a live backend
os.environ.setdefault("MONITORING_API_URL", "http://monitoring.test/functions/v1/system-monitoring")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379")
os.environ.setdefault("LOG_JSON", "false")
