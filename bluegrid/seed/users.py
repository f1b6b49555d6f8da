# Seed data: Users (residents, panchayat officer, technicians, water-flow controller)

from .config import new_id, now_utc, pwd_context, WARDS

# ---------------------------------------------------------------------------
# Raw user definitions
# ---------------------------------------------------------------------------
USERS = [
    # ---- Residents (3) ----
    {"key": "resident1", "password": "resident123",
     "full_name": "Lakshmi Narayanan", "email": "lakshmi.n@email.com",
     "phone": "9847012345", "address": WARDS[0], "role": "resident"},

    {"key": "resident2", "password": "resident123",
     "full_name": "Joseph Mathew", "email": "joseph.mathew@email.com",
     "phone": "9847012346", "address": WARDS[1], "role": "resident"},

    {"key": "resident3", "password": "resident123",
     "full_name": "Fathima Beevi", "email": "fathima.beevi@email.com",
     "phone": None, "address": WARDS[2], "role": "resident"},

    # ---- Panchayat officer (1) ----
    {"key": "officer", "password": "officer123",
     "full_name": "Smt. Radhika Menon, Panchayat Secretary", "email": "radhika.officer@panchayat.gov.in",
     "phone": "9446001122", "address": "Panchayat Office, Kottayam", "role": "panchayat_officer"},

    # ---- Maintenance technicians (2) ----
    {"key": "technician1", "password": "tech123",
     "full_name": "Suresh Kumar", "email": "suresh.tech@panchayat.gov.in",
     "phone": "9446003344", "address": None, "role": "maintenance_technician"},

    {"key": "technician2", "password": "tech123",
     "full_name": "Anwar Sadath", "email": "anwar.tech@panchayat.gov.in",
     "phone": "9446003345", "address": None, "role": "maintenance_technician"},

    # ---- Water-flow controller (1) ----
    {"key": "controller", "password": "control123",
     "full_name": "Biju Varghese", "email": "biju.controller@panchayat.gov.in",
     "phone": "9446005566", "address": None, "role": "water_flow_controller"},
]

# ---------------------------------------------------------------------------
# Import function
# ---------------------------------------------------------------------------
async def import_users(db) -> dict[str, dict]:
    """Insert seed users + profiles into MongoDB. Returns {key: profile} mapping."""
    print("\n  Importing seed users...")
    profiles: dict[str, dict] = {}
    for u in USERS:
        uid = new_id()
        now = now_utc()
        db.users.insert_one({
            "_id": uid,
            "email": u["email"],
            "password_hash": pwd_context.hash(u["password"]),
            "email_verified": True,
            "created_at": now,
            "last_sign_in_at": None,
        })
        profile = {
            "_id": uid,
            "full_name": u["full_name"],
            "phone": u["phone"],
            "address": u["address"],
            "role": u["role"],
            "created_at": now,
            "updated_at": now,
        }
        db.profiles.insert_one(profile)
        profiles[u["key"]] = profile
        print(f"    {u['email']:40s}  ({u['role']})")
    db.users.create_index([("email", 1)], unique=True)
    print(f"  => {len(USERS)} users created")
    return profiles
