# Seed data: Water-supply schedules for today, past and upcoming windows

from datetime import timedelta

from .config import new_id, now_utc, WARDS

# ---------------------------------------------------------------------------
# Raw schedule definitions (hours relative to today 00:00 UTC)
# ---------------------------------------------------------------------------
SCHEDULES = [
    # Area-wide morning supply, already opened
    {"area": WARDS[0], "open_h": 6, "close_h": 9, "state": "open"},
    # Area-wide evening supply, not yet opened
    {"area": WARDS[1], "open_h": 17, "close_h": 20, "state": "scheduled"},
    # Targeted supply for one resident, interrupted by a line repair
    {"resident": "resident3", "open_h": 10, "close_h": 12, "state": "interrupted",
     "reason": "Emergency repair on the distribution main"},
    # Yesterday's supply, closed normally
    {"area": WARDS[2], "open_h": -18, "close_h": -15, "state": "closed"},
]

# ---------------------------------------------------------------------------
# Import function
# ---------------------------------------------------------------------------
async def import_schedules(db, profiles: dict[str, dict]) -> int:
    print("\n  Importing schedules...")
    now = now_utc()
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    controller = profiles["controller"]

    for s in SCHEDULES:
        resident = profiles.get(s.get("resident"))
        open_at = day_start + timedelta(hours=s["open_h"])
        close_at = day_start + timedelta(hours=s["close_h"])
        state = s["state"]
        doc = {
            "_id": new_id(),
            "area": s.get("area") or resident["address"],
            "user_id": resident["_id"] if resident else None,
            "user_name": resident["full_name"] if resident else None,
            "controller_id": controller["_id"],
            "scheduled_open_time": open_at,
            "scheduled_close_time": close_at,
            "actual_open_time": open_at if state in ("open", "interrupted", "closed") else None,
            "actual_close_time": close_at if state == "closed" else None,
            "is_active": state in ("open", "scheduled"),
            "interrupted": state == "interrupted",
            "interruption_reason": s.get("reason"),
            "interrupted_at": open_at + timedelta(minutes=40) if state == "interrupted" else None,
            "created_at": day_start - timedelta(days=1),
            "updated_at": now,
        }
        db.schedules.insert_one(doc)
        print(f"    {doc['area']:32s}  {state}")

    print(f"  => {len(SCHEDULES)} schedules created")
    return len(SCHEDULES)
