# Shared configuration, helpers, and constants for all seed modules

import os
import uuid
from pathlib import Path
from datetime import datetime, timezone
from passlib.context import CryptContext
from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------
# Read directly rather than importing bluegrid.config: seeding must not require
# JWT_SECRET, which that module refuses to load without
_package_dir = Path(__file__).resolve().parent.parent          # bluegrid/
for _env_path in [_package_dir / ".env", _package_dir.parent / ".env", Path.cwd() / ".env"]:
    if _env_path.is_file():
        load_dotenv(_env_path, override=True)
        break
else:
    load_dotenv(override=True)

# ---------------------------------------------------------------------------
# Connection strings
# ---------------------------------------------------------------------------
MONGODB_URL = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
MONGODB_DB  = os.getenv("MONGODB_DB", "bluegrid")

# ---------------------------------------------------------------------------
# Shared clients
# ---------------------------------------------------------------------------
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def new_id() -> str:
    return str(uuid.uuid4())

def now_utc() -> datetime:
    # Stored naive, matching what pymongo hands back to the portal
    return datetime.now(timezone.utc).replace(tzinfo=None)

# Wards used for resident addresses and area-wide schedules
WARDS = [
    "Ward 3, Kottayam Panchayat",
    "Ward 5, Kottayam Panchayat",
    "Ward 7, Kottayam Panchayat",
]
