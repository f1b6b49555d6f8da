# Seed data: Pipe-damage reports spread across every lifecycle status

from datetime import timedelta

from .config import new_id, now_utc

# ---------------------------------------------------------------------------
# Raw report definitions
# ---------------------------------------------------------------------------
REPORTS = [
    {"reporter": "resident1", "status": "pending", "days_ago": 1,
     "notes": "Water gushing from a cracked joint near the bus stop. Road is flooding.",
     "lat": 9.5916, "lng": 76.5222, "accuracy": 4.2, "quality": "good"},

    {"reporter": "resident2", "status": "pending", "days_ago": 2,
     "notes": "Low pressure and muddy water since yesterday evening.",
     "lat": 9.5874, "lng": 76.5301, "accuracy": 12.0, "quality": "fair"},

    {"reporter": "resident3", "status": "assigned", "technician": "technician1", "days_ago": 4,
     "notes": "Pipe exposed after road digging, small leak at the valve chamber.",
     "lat": 9.5950, "lng": 76.5180, "accuracy": 2.8, "quality": "excellent"},

    {"reporter": "resident1", "status": "in_progress", "technician": "technician2", "days_ago": 6,
     "notes": "Overhead tank inlet pipe burst behind the anganwadi.",
     "lat": 9.5902, "lng": 76.5240, "accuracy": 6.5, "quality": "good"},

    {"reporter": "resident2", "status": "completed", "technician": "technician1", "days_ago": 9,
     "notes": "Leak under the footbridge, water pooling on the path.",
     "lat": 9.5861, "lng": 76.5288, "accuracy": 3.0, "quality": "excellent"},

    {"reporter": "resident3", "status": "awaiting_approval", "technician": "technician2", "days_ago": 12,
     "notes": "Public tap at the junction keeps running, washer broken.",
     "lat": 9.5944, "lng": 76.5199, "accuracy": 8.0, "quality": "good",
     "completion_notes": "Replaced tap washer and tightened the union. No more leakage."},

    {"reporter": "resident1", "status": "approved", "technician": "technician1", "days_ago": 20,
     "notes": "Main line crack near the temple pond.",
     "lat": 9.5921, "lng": 76.5215, "accuracy": 5.1, "quality": "good",
     "completion_notes": "Cut out damaged section and fitted a 2m PVC segment with couplers.",
     "rating": 5, "comment": "Fixed within a day, thank you."},

    {"reporter": "resident2", "status": "approved", "technician": "technician2", "days_ago": 35,
     "notes": "Valve chamber cover broken and valve leaking.",
     "lat": 9.5880, "lng": 76.5310, "accuracy": 9.4, "quality": "fair",
     "completion_notes": "Replaced gland packing and installed new chamber cover."},

    {"reporter": "resident3", "status": "rejected", "technician": "technician1", "days_ago": 15,
     "notes": "Service connection leaking at the meter.",
     "lat": 9.5939, "lng": 76.5188, "accuracy": 18.0, "quality": "fair",
     "completion_notes": "Tightened meter coupling.",
     "rejection_reason": "Resident reports the meter is still leaking; replace the coupling."},
]

# ---------------------------------------------------------------------------
# Import function
# ---------------------------------------------------------------------------
async def import_reports(db, profiles: dict[str, dict]) -> list[dict]:
    """Insert all seed reports. Returns the inserted documents."""
    print("\n  Importing reports...")
    now = now_utc()
    officer = profiles["officer"]
    inserted: list[dict] = []

    for r in REPORTS:
        reporter = profiles[r["reporter"]]
        tech = profiles.get(r.get("technician"))
        status = r["status"]
        created = now - timedelta(days=r["days_ago"])

        # Timestamps follow the path the report took through the workflow
        assigned_at = created + timedelta(hours=5) if tech else None
        accepted_at = None
        if status not in ("pending", "assigned"):
            accepted_at = assigned_at + timedelta(hours=2)
        completed_at = None
        if status in ("completed", "awaiting_approval", "approved", "rejected"):
            completed_at = accepted_at + timedelta(hours=20)
        approved_at = completed_at + timedelta(hours=6) if status == "approved" else None
        updated = approved_at or completed_at or accepted_at or assigned_at or created

        feedback = None
        if r.get("rating"):
            feedback = {"rating": r["rating"], "comment": r.get("comment"),
                        "created_at": approved_at + timedelta(hours=3)}

        doc = {
            "_id": new_id(),
            "user_id": reporter["_id"],
            "full_name": reporter["full_name"],
            "mobile_number": reporter["phone"],
            "address": reporter["address"],
            "location_lat": r["lat"],
            "location_lng": r["lng"],
            "location_accuracy": r["accuracy"],
            "location_quality": r["quality"],
            "location_readings": None,
            "photo_url": None,
            "notes": r["notes"],
            "status": status,
            "assigned_technician_id": tech["_id"] if tech else None,
            "assigned_technician_name": tech["full_name"] if tech else None,
            "assigned_at": assigned_at,
            "accepted_at": accepted_at,
            "completion_notes": r.get("completion_notes"),
            "completion_photo_url": None,
            "completed_at": completed_at,
            "rejection_reason": r.get("rejection_reason"),
            "approved_by": officer["_id"] if approved_at else None,
            "approved_at": approved_at,
            "feedback": feedback,
            "created_at": created,
            "updated_at": updated,
        }
        db.reports.insert_one(doc)
        inserted.append(doc)
        print(f"    {doc['_id'][:8].upper()}  {status:18s}  {reporter['full_name']}")

    print(f"  => {len(inserted)} reports created")
    return inserted
