# BlueGrid Water Portal - Seed Data Importer
# Populates MongoDB with demo users, pipe-damage reports and supply schedules
#
# Usage:  python -m bluegrid.importer      (from repo root)

import asyncio

from pymongo import MongoClient

from .seed.config import MONGODB_URL, MONGODB_DB
from .seed.users import import_users, USERS
from .seed.reports import import_reports, REPORTS
from .seed.schedules import import_schedules


async def main():
    print("=" * 64)
    print("  BlueGrid Water Portal - Data Importer")
    print("=" * 64)

    # ------------------------------------------------------------------
    # 1. Connect MongoDB
    # ------------------------------------------------------------------
    print("\n[1/5] Connecting to MongoDB...")
    mongo_client = MongoClient(MONGODB_URL)
    db = mongo_client[MONGODB_DB]
    print(f"  Connected: {MONGODB_URL} ({MONGODB_DB})")

    # ------------------------------------------------------------------
    # 2. Reset all collections
    # ------------------------------------------------------------------
    print("\n[2/5] Resetting collections...")
    collections = ["users", "profiles", "reports", "schedules", "sessions", "otp_codes"]
    for coll_name in collections:
        db[coll_name].drop()
    print(f"  MongoDB: {', '.join(collections)}")

    # ------------------------------------------------------------------
    # 3. Seed users
    # ------------------------------------------------------------------
    print("\n[3/5] Users")
    profiles = await import_users(db)

    # ------------------------------------------------------------------
    # 4. Seed reports
    # ------------------------------------------------------------------
    print("\n[4/5] Reports")
    await import_reports(db, profiles)

    # ------------------------------------------------------------------
    # 5. Seed schedules
    # ------------------------------------------------------------------
    print("\n[5/5] Schedules")
    n_sched = await import_schedules(db, profiles)

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------
    print("\n" + "=" * 64)
    print("  IMPORT COMPLETE")
    print("=" * 64)
    print(f"  Users:      {len(USERS)}")
    print(f"  Reports:    {len(REPORTS)}")
    print(f"  Schedules:  {n_sched}")
    print()
    print("  Test credentials:")
    for u in USERS:
        print(f"    {u['role']:24s} {u['email']} / {u['password']}")
    print()
    mongo_client.close()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
