# BlueGrid Water-Infrastructure Portal
# FastAPI + MongoDB: pipe-damage reports, repair workflow, water-supply schedules

import json
import uuid
import asyncio
import secrets
import string
import logging
from datetime import datetime, date, timedelta, timezone
from typing import List, Optional, Dict, Any
from contextlib import asynccontextmanager
from concurrent.futures import ThreadPoolExecutor

import uvicorn
from fastapi import FastAPI, HTTPException, BackgroundTasks, Depends, Query, Form, File, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import OAuth2PasswordBearer
from fastapi.staticfiles import StaticFiles
from starlette.requests import Request
from starlette.middleware.base import BaseHTTPMiddleware
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel
from pymongo import MongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError
from jose import JWTError, jwt
from passlib.context import CryptContext
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from . import config, notifier
from .config import (
    MONGODB_URL, MONGODB_DB, JWT_SECRET, JWT_ALGORITHM, SESSION_EXPIRE_DAYS,
    OTP_EXPIRE_SECONDS, OTP_LENGTH, UPLOAD_DIR, MAX_UPLOAD_MB, ALLOWED_IMAGE_TYPES, CORS_ORIGINS,
)
from .geo import GpsReading, resolve_fix
from .lifecycle import (
    UserRole, ReportStatus, STAFF_ROLES, OPEN_STATUSES, DONE_STATUSES,
    TransitionError, allowed_targets, can_transition, check_transition,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/signin", auto_error=False)

OFFICER = UserRole.PANCHAYAT_OFFICER.value
TECHNICIAN = UserRole.MAINTENANCE_TECHNICIAN.value
CONTROLLER = UserRole.WATER_FLOW_CONTROLLER.value
RESIDENT = UserRole.RESIDENT.value

# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------
def now_utc() -> datetime:
    # Naive UTC: pymongo returns naive datetimes, so stored and computed values stay comparable
    return datetime.now(timezone.utc).replace(tzinfo=None)

def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)

# ---------------------------------------------------------------------------
# Pydantic Models
# ---------------------------------------------------------------------------
def _clean_email(v: str) -> str:
    v = v.strip().lower()
    if "@" not in v or v.startswith("@") or v.endswith("@") or " " in v:
        raise ValueError("Invalid email address")
    return v

def _check_password_bytes(v: str) -> str:
    # bcrypt only reads the first 72 bytes
    if len(v.encode("utf-8")) > 72:
        raise ValueError("Password cannot exceed 72 bytes")
    return v

class SignupRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    email: str = Field(..., max_length=320)
    password: str = Field(..., min_length=6, max_length=72)
    full_name: str = Field(..., min_length=1, max_length=200, alias="fullName")
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=500)
    normalize_email = field_validator("email")(_clean_email)
    limit_password_bytes = field_validator("password")(_check_password_bytes)

class SendOtpRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    email: str = Field(..., max_length=320)
    full_name: Optional[str] = Field(None, max_length=200, alias="fullName")
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=500)
    normalize_email = field_validator("email")(_clean_email)

class VerifyOtpSignupRequest(SignupRequest):
    otp: str = Field(..., min_length=OTP_LENGTH, max_length=OTP_LENGTH, pattern=r"^\d+$")

class SigninRequest(BaseModel):
    email: str = Field(..., max_length=320)
    password: str = Field(..., max_length=72)
    normalize_email = field_validator("email")(_clean_email)

class AuthUser(BaseModel):
    id: str
    email: str
    created_at: datetime
    email_verified: bool

class ProfileResponse(BaseModel):
    id: str
    email: Optional[str] = None
    full_name: str
    phone: Optional[str] = None
    address: Optional[str] = None
    role: UserRole
    created_at: datetime
    updated_at: datetime

class AuthSessionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    user: AuthUser
    token: str
    expires_at: datetime = Field(alias="expiresAt")
    profile: Optional[ProfileResponse] = None

class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=200)
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=500)

class StaffCreate(BaseModel):
    email: str = Field(..., max_length=320)
    password: str = Field(..., min_length=6, max_length=72)
    full_name: str = Field(..., min_length=1, max_length=200)
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=500)
    role: UserRole
    normalize_email = field_validator("email")(_clean_email)
    limit_password_bytes = field_validator("password")(_check_password_bytes)

class GpsSample(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy: float = Field(..., gt=0)

class FeedbackEntry(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None
    created_at: Optional[datetime] = None

class ReportResponse(BaseModel):
    id: str
    user_id: str
    full_name: str
    mobile_number: Optional[str] = None
    address: Optional[str] = None
    location_lat: Optional[float] = None
    location_lng: Optional[float] = None
    location_accuracy: Optional[float] = None
    location_quality: Optional[str] = None
    location_readings: Optional[int] = None
    photo_url: Optional[str] = None
    notes: Optional[str] = None
    status: ReportStatus
    assigned_technician_id: Optional[str] = None
    assigned_technician_name: Optional[str] = None
    assigned_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    completion_notes: Optional[str] = None
    completion_photo_url: Optional[str] = None
    completed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    feedback: Optional[FeedbackEntry] = None
    created_at: datetime
    updated_at: datetime

class AssignRequest(BaseModel):
    assigned_technician_id: str

class StatusUpdate(BaseModel):
    status: ReportStatus

class ApprovalRequest(BaseModel):
    action: str = Field(..., pattern="^(approve|reject)$")
    rejection_reason: Optional[str] = Field(None, max_length=2000)

class FeedbackRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)

class ScheduleCreate(BaseModel):
    area: Optional[str] = Field(None, max_length=500)
    user_id: Optional[str] = None
    scheduled_open_time: datetime
    scheduled_close_time: datetime

    @field_validator("scheduled_open_time", "scheduled_close_time")
    @classmethod
    def normalize_time(cls, v: datetime) -> datetime:
        return to_naive_utc(v)

    @field_validator("user_id", "area")
    @classmethod
    def blank_to_none(cls, v):
        return v.strip() or None if isinstance(v, str) else v

    @model_validator(mode="after")
    def check_window(self):
        if self.scheduled_close_time <= self.scheduled_open_time:
            raise ValueError("scheduled_close_time must be after scheduled_open_time")
        return self

class InterruptRequest(BaseModel):
    reason: str = Field(..., max_length=1000)

class ScheduleResponse(BaseModel):
    id: str
    area: str
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    controller_id: str
    scheduled_open_time: datetime
    scheduled_close_time: datetime
    actual_open_time: Optional[datetime] = None
    actual_close_time: Optional[datetime] = None
    is_active: bool
    interrupted: bool
    interruption_reason: Optional[str] = None
    interrupted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

class NotifyRequest(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    email: Optional[str] = Field(None, max_length=320)
    phone: Optional[str] = Field(None, max_length=20)
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=5000)

    @model_validator(mode="after")
    def need_a_channel(self):
        if not self.email and not self.phone:
            raise ValueError("Provide an email address or a phone number")
        return self

class TestEmailRequest(BaseModel):
    to: str = Field(..., max_length=320)
    normalize_to = field_validator("to")(_clean_email)

class SendEmailRequest(TestEmailRequest):
    subject: str = Field(..., min_length=1, max_length=200)
    text: str = Field(..., min_length=1, max_length=10000)

class CountByMonth(BaseModel):
    month: str
    count: int

class CountByStatus(BaseModel):
    status: str
    count: int

class AnalyticsResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
    total_complaints: int
    pending_complaints: int
    completed_complaints: int
    approved_complaints: int
    rejected_complaints: int
    average_resolution_time: float
    complaints_by_month: List[CountByMonth]
    complaints_by_status: List[CountByStatus]

# ---------------------------------------------------------------------------
# App & Globals
# ---------------------------------------------------------------------------
app = FastAPI(title="BlueGrid Water Infrastructure Portal")
limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# ---------------------------------------------------------------------------
# Security Headers Middleware
# ---------------------------------------------------------------------------
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(self), camera=(self), microphone=()"
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; img-src 'self' data:; frame-ancestors 'none'")
        return response

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
db_client = None
db = None
executor = ThreadPoolExecutor(max_workers=10)

UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=str(UPLOAD_DIR)), name="uploads")

# ---------------------------------------------------------------------------
# Startup / Shutdown
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    await startup_db()
    logger.info("Email: %s | WhatsApp: %s",
                "configured" if notifier.email_configured() else "disabled",
                "configured" if notifier.whatsapp_configured() else "disabled")
    yield
    if db_client:
        db_client.close()

app.router.lifespan_context = lifespan

async def startup_db():
    global db_client, db
    db_client = MongoClient(MONGODB_URL)
    db = db_client[MONGODB_DB]
    loop = asyncio.get_event_loop()
    await loop.run_in_executor(executor, lambda: db.users.create_index([("email", 1)], unique=True))
    await loop.run_in_executor(executor, db.profiles.create_index, "role")
    await loop.run_in_executor(executor, db.reports.create_index, "user_id")
    await loop.run_in_executor(executor, db.reports.create_index, "status")
    await loop.run_in_executor(executor, db.reports.create_index, "assigned_technician_id")
    await loop.run_in_executor(executor, db.reports.create_index, "created_at")
    await loop.run_in_executor(executor, db.schedules.create_index, "controller_id")
    await loop.run_in_executor(executor, db.schedules.create_index, "user_id")
    await loop.run_in_executor(executor, db.sessions.create_index, "user_id")
    purged = await loop.run_in_executor(executor, purge_expired_sessions, db)
    logger.info("Database initialized (%s), purged %d expired sessions", MONGODB_DB, purged)

# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------
async def get_db():
    return db

# ---------------------------------------------------------------------------
# Auth Helpers
# ---------------------------------------------------------------------------
def hash_password(password: str) -> str:
    if len(password.encode("utf-8")) > 72:
        raise ValueError("Password cannot exceed 72 bytes")
    return pwd_context.hash(password)

def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)

def create_session_token(user_id: str, email: str) -> tuple:
    expires_at = datetime.now(timezone.utc) + timedelta(days=SESSION_EXPIRE_DAYS)
    payload = {"sub": user_id, "email": email, "exp": expires_at, "jti": uuid.uuid4().hex}
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM), to_naive_utc(expires_at)

def purge_expired_sessions(db) -> int:
    return db.sessions.delete_many({"expires_at": {"$lt": now_utc()}}).deleted_count

def generate_otp() -> str:
    return "".join(secrets.choice(string.digits) for _ in range(OTP_LENGTH))

def _load_user(db, user_id: str) -> Optional[dict]:
    """User row merged with its profile, or None."""
    user = db.users.find_one({"_id": user_id})
    if user is None:
        return None
    profile = db.profiles.find_one({"_id": user_id}) or {}
    merged = dict(user)
    for key in ("full_name", "phone", "address", "role"):
        merged[key] = profile.get(key)
    merged["profile"] = profile
    return merged

async def get_current_user(token: Optional[str] = Depends(oauth2_scheme), db=Depends(get_db)):
    if token is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
        user_id: str = payload.get("sub")
        if user_id is None:
            raise HTTPException(status_code=401, detail="Invalid token")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    loop = asyncio.get_event_loop()
    session = await loop.run_in_executor(executor, db.sessions.find_one, {"_id": token})
    if session is None or session["expires_at"] < now_utc():
        raise HTTPException(status_code=401, detail="Session expired or revoked")
    user = await loop.run_in_executor(executor, _load_user, db, user_id)
    if user is None or user.get("role") is None:
        raise HTTPException(status_code=401, detail="User not found")
    user["token"] = token
    return user

def require_role(*roles):
    async def role_checker(user=Depends(get_current_user)):
        if user["role"] not in roles:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user
    return role_checker

def user_to_auth(user: dict) -> AuthUser:
    return AuthUser(id=user["_id"], email=user["email"], created_at=user["created_at"],
                    email_verified=user.get("email_verified", False))

def profile_to_response(profile: dict, email: Optional[str] = None) -> ProfileResponse:
    return ProfileResponse(
        id=profile["_id"], email=email, full_name=profile["full_name"], phone=profile.get("phone"),
        address=profile.get("address"), role=profile["role"],
        created_at=profile["created_at"], updated_at=profile["updated_at"])

def create_account(db, email: str, password: str, full_name: str, phone: Optional[str],
                   address: Optional[str], role: str, email_verified: bool) -> tuple:
    """Insert user + profile rows. Raises HTTPException(400) on a duplicate email."""
    now = now_utc()
    user_doc = {
        "_id": str(uuid.uuid4()), "email": email, "password_hash": hash_password(password),
        "email_verified": email_verified, "created_at": now, "last_sign_in_at": None,
    }
    try:
        db.users.insert_one(user_doc)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Email already exists")
    profile_doc = {
        "_id": user_doc["_id"], "full_name": full_name, "phone": phone, "address": address,
        "role": role, "created_at": now, "updated_at": now,
    }
    db.profiles.insert_one(profile_doc)
    return user_doc, profile_doc

def open_session(db, user: dict, profile: dict) -> AuthSessionResponse:
    token, expires_at = create_session_token(user["_id"], user["email"])
    db.sessions.insert_one({"_id": token, "user_id": user["_id"],
                            "expires_at": expires_at, "created_at": now_utc()})
    return AuthSessionResponse(user=user_to_auth(user), token=token, expires_at=expires_at,
                               profile=profile_to_response(profile, user["email"]))

# ---------------------------------------------------------------------------
# Input Sanitization Helpers
# ---------------------------------------------------------------------------
def sanitize_str(value: str) -> str:
    """Ensure a value is a plain string, not a dict/list that could be a NoSQL operator."""
    if not isinstance(value, str):
        raise HTTPException(status_code=400, detail="Invalid parameter type")
    return str(value)

def validate_uuid(value: str, param_name: str = "id") -> str:
    """Validate that a string is a valid UUID format."""
    value = sanitize_str(value)
    try:
        uuid.UUID(value)
    except (ValueError, AttributeError):
        raise HTTPException(status_code=400, detail=f"Invalid {param_name} format")
    return value

def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None

async def save_upload(upload: Optional[UploadFile]) -> Optional[str]:
    """Store an uploaded image under UPLOAD_DIR and return its public URL."""
    if upload is None or not upload.filename:
        return None
    ext = ALLOWED_IMAGE_TYPES.get(upload.content_type or "")
    if ext is None:
        raise HTTPException(status_code=400, detail="Only JPEG, PNG or WebP images are accepted")
    data = await upload.read()
    if len(data) > MAX_UPLOAD_MB * 1024 * 1024:
        raise HTTPException(status_code=413, detail=f"Image exceeds {MAX_UPLOAD_MB} MB")
    name = f"{uuid.uuid4().hex}{ext}"
    loop = asyncio.get_event_loop()
    await loop.run_in_executor(executor, (UPLOAD_DIR / name).write_bytes, data)
    return f"/uploads/{name}"

def parse_location(lat: Optional[str], lng: Optional[str], samples: Optional[str]) -> dict:
    """Resolve report coordinates from raw GPS samples or an explicit lat/lng pair."""
    if samples:
        try:
            readings = [GpsSample(**s) for s in json.loads(samples)]
            fix = resolve_fix([GpsReading(r.latitude, r.longitude, r.accuracy) for r in readings])
        except (ValueError, TypeError, ValidationError):
            raise HTTPException(status_code=400, detail="Invalid location_samples")
        return {"location_lat": fix.latitude, "location_lng": fix.longitude,
                "location_accuracy": fix.accuracy, "location_quality": fix.quality,
                "location_readings": fix.readings_used}
    lat, lng = _blank_to_none(lat), _blank_to_none(lng)
    if lat is None and lng is None:
        return {"location_lat": None, "location_lng": None,
                "location_accuracy": None, "location_quality": None, "location_readings": None}
    if lat is None or lng is None:
        raise HTTPException(status_code=400, detail="Both location_lat and location_lng are required")
    try:
        point = GpsSample(latitude=float(lat), longitude=float(lng), accuracy=1)
    except (ValueError, ValidationError):
        raise HTTPException(status_code=400, detail="Invalid coordinates")
    return {"location_lat": point.latitude, "location_lng": point.longitude,
            "location_accuracy": None, "location_quality": None, "location_readings": None}

# ---------------------------------------------------------------------------
# Report Helpers
# ---------------------------------------------------------------------------
def report_to_response(r: dict) -> ReportResponse:
    return ReportResponse(**r, id=r["_id"])

async def load_report(db, report_id: str) -> dict:
    report_id = validate_uuid(report_id, "report_id")
    loop = asyncio.get_event_loop()
    r = await loop.run_in_executor(executor, db.reports.find_one, {"_id": report_id})
    if not r:
        raise HTTPException(status_code=404, detail="Report not found")
    return r

def ensure_assigned_to(report: dict, user: dict):
    if report.get("assigned_technician_id") != user["_id"]:
        raise HTTPException(status_code=403, detail="This report is not assigned to you")

def transition_detail(current, role, message: str) -> str:
    """Append the statuses the caller could move to instead."""
    try:
        targets = sorted(t.value for t in allowed_targets(current, role))
    except TransitionError:
        return message
    if not targets:
        return message
    return f"{message}; allowed next status: {', '.join(targets)}"

async def apply_transition(db, report: dict, target: ReportStatus, user: dict,
                           extra: Optional[Dict[str, Any]] = None) -> dict:
    """Check the move against the transition table, then write it (last write wins)."""
    try:
        check_transition(report["status"], target, user["role"])
    except TransitionError as e:
        detail = e.message
        if e.status_code == 400:
            detail = transition_detail(report["status"], user["role"], e.message)
        raise HTTPException(status_code=e.status_code, detail=detail)
    update = {"status": target.value, "updated_at": now_utc(), **(extra or {})}
    if report["status"] == ReportStatus.REJECTED.value and target == ReportStatus.ASSIGNED:
        # A new assignment starts a fresh attempt; rejection_reason stays as history
        update.update({"completion_notes": None, "completion_photo_url": None, "completed_at": None})
    def write():
        return db.reports.find_one_and_update(
            {"_id": report["_id"]}, {"$set": update}, return_document=ReturnDocument.AFTER)
    loop = asyncio.get_event_loop()
    updated = await loop.run_in_executor(executor, write)
    if updated is None:
        raise HTTPException(status_code=404, detail="Report not found")
    logger.info("Report %s: %s -> %s by %s (%s)", report["_id"], report["status"],
                target.value, user["email"], user["role"])
    return updated

async def load_technician(db, technician_id: str) -> dict:
    technician_id = validate_uuid(technician_id, "assigned_technician_id")
    loop = asyncio.get_event_loop()
    tech = await loop.run_in_executor(executor, _load_user, db, technician_id)
    if tech is None or tech["role"] != TECHNICIAN:
        raise HTTPException(status_code=400, detail="Selected user is not a maintenance technician")
    return tech

# ---------------------------------------------------------------------------
# AUTH ENDPOINTS
# ---------------------------------------------------------------------------
@app.post("/api/auth/signup", response_model=AuthSessionResponse)
@limiter.limit("5/minute")
async def signup(request: Request, data: SignupRequest, db=Depends(get_db)):
    def create():
        user, profile = create_account(db, data.email, data.password, data.full_name.strip(),
                                       _blank_to_none(data.phone), _blank_to_none(data.address),
                                       RESIDENT, email_verified=False)
        return open_session(db, user, profile)
    loop = asyncio.get_event_loop()
    session = await loop.run_in_executor(executor, create)
    logger.info("New resident account %s", data.email)
    return session

@app.post("/api/auth/send-otp")
@limiter.limit("3/minute")
async def send_otp(request: Request, data: SendOtpRequest, db=Depends(get_db)):
    loop = asyncio.get_event_loop()
    existing = await loop.run_in_executor(executor, db.users.find_one, {"email": data.email})
    if existing:
        raise HTTPException(status_code=400, detail="Email already exists")
    otp = generate_otp()
    now = now_utc()
    entry = {"_id": data.email, "otp": otp, "expires_at": now + timedelta(seconds=OTP_EXPIRE_SECONDS),
             "full_name": data.full_name, "phone": data.phone, "address": data.address,
             "created_at": now}
    # Resending replaces the pending code
    await loop.run_in_executor(executor, lambda: db.otp_codes.replace_one(
        {"_id": data.email}, entry, upsert=True))
    subject, text = notifier.otp_message(otp, OTP_EXPIRE_SECONDS // 60)
    result = await notifier.send_email(data.email, subject, text)
    if not result["sent"]:
        logger.warning("[OTP] Email not delivered to %s", data.email)
    return {"success": True, "email_sent": result["sent"], "expires_in": OTP_EXPIRE_SECONDS}

@app.post("/api/auth/verify-otp-signup", response_model=AuthSessionResponse)
@limiter.limit("10/minute")
async def verify_otp_signup(request: Request, data: VerifyOtpSignupRequest, db=Depends(get_db)):
    loop = asyncio.get_event_loop()
    entry = await loop.run_in_executor(executor, db.otp_codes.find_one, {"_id": data.email})
    if not entry or not secrets.compare_digest(entry["otp"], data.otp):
        raise HTTPException(status_code=400, detail="Invalid OTP")
    if entry["expires_at"] < now_utc():
        raise HTTPException(status_code=400, detail="OTP expired. Please request a new one.")
    def create():
        user, profile = create_account(
            db, data.email, data.password, data.full_name.strip(),
            _blank_to_none(data.phone) or entry.get("phone"),
            _blank_to_none(data.address) or entry.get("address"),
            RESIDENT, email_verified=True)
        db.otp_codes.delete_one({"_id": data.email})
        return open_session(db, user, profile)
    session = await loop.run_in_executor(executor, create)
    logger.info("Verified resident account %s", data.email)
    return session

@app.post("/api/auth/signin", response_model=AuthSessionResponse)
@limiter.limit("5/minute")
async def signin(request: Request, form: SigninRequest, db=Depends(get_db)):
    loop = asyncio.get_event_loop()
    user = await loop.run_in_executor(executor, db.users.find_one, {"email": form.email})
    if not user or not verify_password(form.password, user["password_hash"]):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    profile = await loop.run_in_executor(executor, db.profiles.find_one, {"_id": user["_id"]})
    if profile is None:
        raise HTTPException(status_code=401, detail="Profile missing for this account")
    def start():
        purge_expired_sessions(db)
        db.users.update_one({"_id": user["_id"]}, {"$set": {"last_sign_in_at": now_utc()}})
        return open_session(db, user, profile)
    return await loop.run_in_executor(executor, start)

@app.post("/api/auth/signout")
async def signout(user=Depends(get_current_user), db=Depends(get_db)):
    loop = asyncio.get_event_loop()
    await loop.run_in_executor(executor, db.sessions.delete_one, {"_id": user["token"]})
    return {"detail": "Signed out successfully"}

@app.get("/api/auth/user")
async def get_auth_user(user=Depends(get_current_user)):
    return {"user": user_to_auth(user)}

@app.get("/api/profile", response_model=ProfileResponse)
async def get_profile(user=Depends(get_current_user)):
    return profile_to_response(user["profile"], user["email"])

@app.put("/api/profile", response_model=ProfileResponse)
async def update_profile(update: ProfileUpdate, user=Depends(get_current_user), db=Depends(get_db)):
    set_fields = update.model_dump(exclude_unset=True, exclude_none=True)
    if not set_fields:
        raise HTTPException(status_code=400, detail="No fields to update")
    set_fields["updated_at"] = now_utc()
    def write():
        return db.profiles.find_one_and_update(
            {"_id": user["_id"]}, {"$set": set_fields}, return_document=ReturnDocument.AFTER)
    loop = asyncio.get_event_loop()
    profile = await loop.run_in_executor(executor, write)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile_to_response(profile, user["email"])

# ---------------------------------------------------------------------------
# USER & STAFF ENDPOINTS
# ---------------------------------------------------------------------------
def _list_profiles(db, query: dict) -> List[ProfileResponse]:
    profiles = list(db.profiles.find(query).sort("full_name", 1))
    emails = {u["_id"]: u["email"] for u in
              db.users.find({"_id": {"$in": [p["_id"] for p in profiles]}}, {"email": 1})}
    return [profile_to_response(p, emails.get(p["_id"])) for p in profiles]

@app.get("/api/users", response_model=List[ProfileResponse])
async def list_users(role: Optional[UserRole] = None,
                     user=Depends(require_role(OFFICER)), db=Depends(get_db)):
    query = {"role": role.value} if role else {}
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(executor, _list_profiles, db, query)

@app.get("/api/users/residents", response_model=List[ProfileResponse])
async def list_residents(user=Depends(require_role(CONTROLLER, OFFICER)), db=Depends(get_db)):
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(executor, _list_profiles, db, {"role": RESIDENT})

@app.get("/api/users/technicians", response_model=List[ProfileResponse])
async def list_technicians(user=Depends(require_role(OFFICER)), db=Depends(get_db)):
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(executor, _list_profiles, db, {"role": TECHNICIAN})

@app.post("/api/users/create-staff", response_model=ProfileResponse)
async def create_staff(staff: StaffCreate, user=Depends(require_role(OFFICER)), db=Depends(get_db)):
    if staff.role not in STAFF_ROLES:
        raise HTTPException(status_code=400, detail="Staff role must be officer, technician or controller")
    loop = asyncio.get_event_loop()
    new_user, profile = await loop.run_in_executor(
        executor, lambda: create_account(db, staff.email, staff.password, staff.full_name,
                                         staff.phone, staff.address, staff.role.value,
                                         email_verified=True))
    logger.info("Officer %s created %s account %s", user["email"], staff.role.value, staff.email)
    return profile_to_response(profile, new_user["email"])

# ---------------------------------------------------------------------------
# REPORT ENDPOINTS
# ---------------------------------------------------------------------------
@app.post("/api/reports", response_model=ReportResponse)
async def create_report(
    full_name: str = Form(..., max_length=200),
    mobile_number: Optional[str] = Form(None, max_length=20),
    address: Optional[str] = Form(None, max_length=500),
    location_name: Optional[str] = Form(None, max_length=500),
    location_lat: Optional[str] = Form(None),
    location_lng: Optional[str] = Form(None),
    location_samples: Optional[str] = Form(None),
    notes: Optional[str] = Form(None, max_length=5000),
    photo: Optional[UploadFile] = File(None),
    user=Depends(require_role(RESIDENT)), db=Depends(get_db)):
    full_name = full_name.strip()
    if not full_name:
        raise HTTPException(status_code=400, detail="full_name is required")
    location = parse_location(location_lat, location_lng, location_samples)
    photo_url = await save_upload(photo)
    now = now_utc()
    doc = {
        "_id": str(uuid.uuid4()), "user_id": user["_id"], "full_name": full_name,
        "mobile_number": _blank_to_none(mobile_number) or user.get("phone"),
        "address": _blank_to_none(address) or _blank_to_none(location_name) or user.get("address"),
        **location,
        "photo_url": photo_url, "notes": _blank_to_none(notes),
        "status": ReportStatus.PENDING.value,
        "assigned_technician_id": None, "assigned_technician_name": None,
        "assigned_at": None, "accepted_at": None,
        "completion_notes": None, "completion_photo_url": None, "completed_at": None,
        "rejection_reason": None, "approved_by": None, "approved_at": None,
        "feedback": None, "created_at": now, "updated_at": now,
    }
    loop = asyncio.get_event_loop()
    await loop.run_in_executor(executor, db.reports.insert_one, doc)
    logger.info("Report %s filed by %s", doc["_id"], user["email"])
    return report_to_response(doc)

@app.get("/api/reports", response_model=List[ReportResponse])
async def list_my_reports(user=Depends(require_role(RESIDENT)), db=Depends(get_db)):
    loop = asyncio.get_event_loop()
    reports = await loop.run_in_executor(
        executor, lambda: list(db.reports.find({"user_id": user["_id"]}).sort("created_at", -1)))
    return [report_to_response(r) for r in reports]

@app.get("/api/reports/all", response_model=List[ReportResponse])
async def list_all_reports(status: Optional[ReportStatus] = None,
                           limit: int = Query(100, ge=1, le=500), skip: int = Query(0, ge=0, le=100000),
                           user=Depends(require_role(OFFICER)), db=Depends(get_db)):
    fq = {"status": status.value} if status else {}
    def fetch():
        return list(db.reports.find(fq).sort("created_at", -1).skip(skip).limit(limit))
    loop = asyncio.get_event_loop()
    reports = await loop.run_in_executor(executor, fetch)
    return [report_to_response(r) for r in reports]

@app.get("/api/reports/assigned", response_model=List[ReportResponse])
async def list_assigned_reports(user=Depends(require_role(TECHNICIAN)), db=Depends(get_db)):
    def fetch():
        return list(db.reports.find({"assigned_technician_id": user["_id"]}).sort("updated_at", -1))
    loop = asyncio.get_event_loop()
    reports = await loop.run_in_executor(executor, fetch)
    return [report_to_response(r) for r in reports]

@app.get("/api/reports/{report_id}", response_model=ReportResponse)
async def get_report(report_id: str, user=Depends(get_current_user), db=Depends(get_db)):
    r = await load_report(db, report_id)
    role = user["role"]
    if role == RESIDENT and r["user_id"] != user["_id"]:
        raise HTTPException(status_code=403, detail="Access denied")
    if role == TECHNICIAN and r.get("assigned_technician_id") != user["_id"]:
        raise HTTPException(status_code=403, detail="Access denied")
    if role == CONTROLLER:
        raise HTTPException(status_code=403, detail="Access denied")
    return report_to_response(r)

@app.put("/api/reports/{report_id}/assign", response_model=ReportResponse)
async def assign_report(report_id: str, assignment: AssignRequest, background_tasks: BackgroundTasks,
                        user=Depends(require_role(OFFICER)), db=Depends(get_db)):
    r = await load_report(db, report_id)
    tech = await load_technician(db, assignment.assigned_technician_id)
    updated = await apply_transition(db, r, ReportStatus.ASSIGNED, user, {
        "assigned_technician_id": tech["_id"], "assigned_technician_name": tech["full_name"],
        "assigned_at": now_utc(), "accepted_at": None})
    messages = notifier.assignment_messages(updated, tech)
    background_tasks.add_task(notifier.dispatch, tech["email"], tech.get("phone"), *messages["technician"])
    resident = await asyncio.get_event_loop().run_in_executor(executor, _load_user, db, updated["user_id"])
    if resident:
        background_tasks.add_task(notifier.dispatch, resident["email"], None, *messages["resident"])
    return report_to_response(updated)

@app.put("/api/reports/{report_id}/accept", response_model=ReportResponse)
async def accept_report(report_id: str, user=Depends(require_role(TECHNICIAN)), db=Depends(get_db)):
    r = await load_report(db, report_id)
    ensure_assigned_to(r, user)
    updated = await apply_transition(db, r, ReportStatus.IN_PROGRESS, user, {"accepted_at": now_utc()})
    return report_to_response(updated)

@app.put("/api/reports/{report_id}/technician-update", response_model=ReportResponse)
async def technician_update(report_id: str, update: StatusUpdate,
                            user=Depends(require_role(TECHNICIAN)), db=Depends(get_db)):
    if update.status == ReportStatus.AWAITING_APPROVAL:
        raise HTTPException(status_code=400, detail="Use the complete endpoint to submit work for approval")
    r = await load_report(db, report_id)
    ensure_assigned_to(r, user)
    extra = {"accepted_at": now_utc()} if update.status == ReportStatus.IN_PROGRESS else {}
    updated = await apply_transition(db, r, update.status, user, extra)
    return report_to_response(updated)

@app.put("/api/reports/{report_id}/complete", response_model=ReportResponse)
async def complete_report(report_id: str,
                          completion_notes: str = Form("", max_length=5000),
                          completion_image: Optional[UploadFile] = File(None),
                          user=Depends(require_role(TECHNICIAN)), db=Depends(get_db)):
    r = await load_report(db, report_id)
    ensure_assigned_to(r, user)
    notes = _blank_to_none(completion_notes)
    if notes is None:
        raise HTTPException(status_code=400, detail="Completion notes are required")
    if not can_transition(r["status"], ReportStatus.AWAITING_APPROVAL, user["role"]):
        raise HTTPException(status_code=400, detail=transition_detail(
            r["status"], user["role"], f"Cannot submit work from {r['status']}"))
    photo_url = await save_upload(completion_image)
    updated = await apply_transition(db, r, ReportStatus.AWAITING_APPROVAL, user, {
        "completion_notes": notes, "completion_photo_url": photo_url or r.get("completion_photo_url"),
        "completed_at": now_utc()})
    return report_to_response(updated)

@app.put("/api/reports/{report_id}/approve", response_model=ReportResponse)
async def approve_report(report_id: str, decision: ApprovalRequest, background_tasks: BackgroundTasks,
                         user=Depends(require_role(OFFICER)), db=Depends(get_db)):
    r = await load_report(db, report_id)
    if r["status"] != ReportStatus.AWAITING_APPROVAL.value:
        raise HTTPException(status_code=400,
                            detail=f"Only reports awaiting approval can be decided (status is {r['status']})")
    if decision.action == "approve":
        updated = await apply_transition(db, r, ReportStatus.APPROVED, user, {
            "approved_by": user["_id"], "approved_at": now_utc(), "rejection_reason": None})
    else:
        reason = _blank_to_none(decision.rejection_reason)
        if reason is None:
            raise HTTPException(status_code=400, detail="A rejection reason is required")
        updated = await apply_transition(db, r, ReportStatus.REJECTED, user, {
            "rejection_reason": reason, "approved_by": None, "approved_at": None})
    resident = await asyncio.get_event_loop().run_in_executor(executor, _load_user, db, updated["user_id"])
    if resident:
        background_tasks.add_task(notifier.dispatch, resident["email"],
                                  updated.get("mobile_number") or resident.get("phone"),
                                  *notifier.decision_message(updated))
    return report_to_response(updated)

@app.put("/api/reports/{report_id}/status", response_model=ReportResponse)
async def update_report_status(report_id: str, update: StatusUpdate,
                               user=Depends(require_role(OFFICER)), db=Depends(get_db)):
    if update.status in (ReportStatus.APPROVED, ReportStatus.REJECTED):
        raise HTTPException(status_code=400, detail="Use the approve endpoint to approve or reject work")
    r = await load_report(db, report_id)
    if update.status == ReportStatus.ASSIGNED and not r.get("assigned_technician_id"):
        raise HTTPException(status_code=400, detail="Use the assign endpoint to pick a technician")
    updated = await apply_transition(db, r, update.status, user)
    return report_to_response(updated)

@app.post("/api/reports/{report_id}/feedback", response_model=ReportResponse)
async def add_feedback(report_id: str, feedback: FeedbackRequest,
                       user=Depends(require_role(RESIDENT)), db=Depends(get_db)):
    r = await load_report(db, report_id)
    # Verify ownership: only the resident who filed this report can leave feedback
    if r["user_id"] != user["_id"]:
        raise HTTPException(status_code=403, detail="You can only provide feedback on your own reports")
    if r["status"] != ReportStatus.APPROVED.value:
        raise HTTPException(status_code=400, detail="Feedback is accepted once the repair is approved")
    if r.get("feedback"):
        raise HTTPException(status_code=400, detail="Feedback already submitted")
    entry = {"rating": feedback.rating, "comment": _blank_to_none(feedback.comment),
             "created_at": now_utc()}
    def update():
        return db.reports.find_one_and_update(
            {"_id": r["_id"]}, {"$set": {"feedback": entry, "updated_at": now_utc()}},
            return_document=ReturnDocument.AFTER)
    loop = asyncio.get_event_loop()
    return report_to_response(await loop.run_in_executor(executor, update))

# ---------------------------------------------------------------------------
# SCHEDULE ENDPOINTS
# ---------------------------------------------------------------------------
def schedule_to_response(s: dict) -> ScheduleResponse:
    return ScheduleResponse(**s, id=s["_id"])

async def load_own_schedule(db, schedule_id: str, user: dict) -> dict:
    schedule_id = validate_uuid(schedule_id, "schedule_id")
    loop = asyncio.get_event_loop()
    s = await loop.run_in_executor(executor, db.schedules.find_one, {"_id": schedule_id})
    if not s:
        raise HTTPException(status_code=404, detail="Schedule not found")
    if s["controller_id"] != user["_id"]:
        raise HTTPException(status_code=403, detail="This schedule belongs to another controller")
    return s

async def update_schedule(db, schedule_id: str, set_fields: dict) -> dict:
    set_fields["updated_at"] = now_utc()
    def write():
        return db.schedules.find_one_and_update(
            {"_id": schedule_id}, {"$set": set_fields}, return_document=ReturnDocument.AFTER)
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(executor, write)

@app.post("/api/schedules/create", response_model=ScheduleResponse)
async def create_schedule(data: ScheduleCreate, user=Depends(require_role(CONTROLLER)), db=Depends(get_db)):
    area, user_name = data.area, None
    loop = asyncio.get_event_loop()
    if data.user_id:
        resident = await loop.run_in_executor(
            executor, _load_user, db, validate_uuid(data.user_id, "user_id"))
        if resident is None or resident["role"] != RESIDENT:
            raise HTTPException(status_code=400, detail="Schedules can only target residents")
        user_name = resident["full_name"]
        area = area or resident.get("address")
    if not area:
        raise HTTPException(status_code=400, detail="An area or a resident with an address is required")
    now = now_utc()
    doc = {
        "_id": str(uuid.uuid4()), "area": area, "user_id": data.user_id, "user_name": user_name,
        "controller_id": user["_id"],
        "scheduled_open_time": data.scheduled_open_time,
        "scheduled_close_time": data.scheduled_close_time,
        "actual_open_time": None, "actual_close_time": None,
        "is_active": True, "interrupted": False, "interruption_reason": None, "interrupted_at": None,
        "created_at": now, "updated_at": now,
    }
    await loop.run_in_executor(executor, db.schedules.insert_one, doc)
    logger.info("Controller %s scheduled supply for %s", user["email"], area)
    return schedule_to_response(doc)

@app.get("/api/schedules/my-schedules", response_model=List[ScheduleResponse])
async def my_schedules(user=Depends(require_role(CONTROLLER)), db=Depends(get_db)):
    loop = asyncio.get_event_loop()
    schedules = await loop.run_in_executor(
        executor, lambda: list(db.schedules.find({"controller_id": user["_id"]}).sort("created_at", -1)))
    return [schedule_to_response(s) for s in schedules]

@app.get("/api/schedules/active", response_model=Optional[ScheduleResponse])
async def active_schedule(user=Depends(require_role(CONTROLLER)), db=Depends(get_db)):
    def fetch():
        return db.schedules.find_one(
            {"controller_id": user["_id"], "is_active": True, "interrupted": False},
            sort=[("created_at", -1)])
    loop = asyncio.get_event_loop()
    s = await loop.run_in_executor(executor, fetch)
    return schedule_to_response(s) if s else None

@app.get("/api/schedules/all", response_model=List[ScheduleResponse])
async def all_schedules(user=Depends(require_role(OFFICER, CONTROLLER)), db=Depends(get_db)):
    loop = asyncio.get_event_loop()
    schedules = await loop.run_in_executor(
        executor, lambda: list(db.schedules.find({}).sort("scheduled_open_time", -1)))
    return [schedule_to_response(s) for s in schedules]

@app.get("/api/schedules/today", response_model=List[ScheduleResponse])
async def todays_schedules(user=Depends(require_role(RESIDENT)), db=Depends(get_db)):
    day_start = now_utc().replace(hour=0, minute=0, second=0, microsecond=0)
    day_end = day_start + timedelta(days=1)
    targets = [{"user_id": user["_id"]}]
    if user.get("address"):
        targets.append({"user_id": None, "area": user["address"]})
    query = {"$or": targets,
             "scheduled_open_time": {"$lt": day_end},
             "scheduled_close_time": {"$gt": day_start}}
    loop = asyncio.get_event_loop()
    schedules = await loop.run_in_executor(
        executor, lambda: list(db.schedules.find(query).sort("scheduled_open_time", 1)))
    return [schedule_to_response(s) for s in schedules]

@app.put("/api/schedules/{schedule_id}/open", response_model=ScheduleResponse)
async def open_supply(schedule_id: str, user=Depends(require_role(CONTROLLER)), db=Depends(get_db)):
    s = await load_own_schedule(db, schedule_id, user)
    if s.get("actual_close_time"):
        raise HTTPException(status_code=400, detail="Schedule already closed; create a new schedule")
    updated = await update_schedule(db, s["_id"], {
        "actual_open_time": s.get("actual_open_time") or now_utc(),
        "is_active": True, "interrupted": False, "interruption_reason": None})
    logger.info("Controller %s opened supply for %s", user["email"], s["area"])
    return schedule_to_response(updated)

@app.put("/api/schedules/{schedule_id}/close", response_model=ScheduleResponse)
async def close_supply(schedule_id: str, user=Depends(require_role(CONTROLLER)), db=Depends(get_db)):
    s = await load_own_schedule(db, schedule_id, user)
    if s.get("actual_close_time"):
        raise HTTPException(status_code=400, detail="Schedule already closed")
    updated = await update_schedule(db, s["_id"], {"actual_close_time": now_utc(), "is_active": False})
    logger.info("Controller %s closed supply for %s", user["email"], s["area"])
    return schedule_to_response(updated)

@app.put("/api/schedules/{schedule_id}/interrupt", response_model=ScheduleResponse)
async def interrupt_supply(schedule_id: str, req: InterruptRequest,
                           user=Depends(require_role(CONTROLLER)), db=Depends(get_db)):
    reason = _blank_to_none(req.reason)
    if reason is None:
        raise HTTPException(status_code=400, detail="An interruption reason is required")
    s = await load_own_schedule(db, schedule_id, user)
    if s.get("actual_close_time"):
        raise HTTPException(status_code=400, detail="Schedule already closed")
    updated = await update_schedule(db, s["_id"], {
        "interrupted": True, "interruption_reason": reason,
        "interrupted_at": now_utc(), "is_active": False})
    logger.info("Controller %s interrupted supply for %s: %s", user["email"], s["area"], reason)
    return schedule_to_response(updated)

# ---------------------------------------------------------------------------
# NOTIFICATION & EMAIL ENDPOINTS
# ---------------------------------------------------------------------------
@app.post("/api/notify")
@limiter.limit("10/minute")
async def send_notification(request: Request, req: NotifyRequest):
    message = f"Dear {req.name},\n{req.message}" if req.name else req.message
    results = await notifier.notify(req.email, req.phone, req.subject, message)
    requested = [ch for ch, addr in (("email", req.email), ("whatsapp", req.phone)) if addr]
    return {"success": all(results[ch]["sent"] for ch in requested), "results": results}

@app.get("/api/email/verify")
async def verify_email_connection(user=Depends(require_role(OFFICER))):
    return {"success": await notifier.verify_smtp(), "configured": notifier.email_configured()}

@app.post("/api/email/test")
async def send_test_email(req: TestEmailRequest, user=Depends(require_role(OFFICER))):
    result = await notifier.send_email(
        req.to, "BlueGrid test email",
        "This is a test email from the BlueGrid water portal. Email delivery is working.")
    return {"success": result["sent"], "error": result["error"]}

@app.post("/api/email/send")
async def send_custom_email(req: SendEmailRequest, user=Depends(require_role(OFFICER))):
    result = await notifier.send_email(req.to, req.subject, req.text)
    logger.info("Officer %s sent email to %s (sent=%s)", user["email"], req.to, result["sent"])
    return {"success": result["sent"], "error": result["error"]}

# ---------------------------------------------------------------------------
# ANALYTICS ENDPOINT
# ---------------------------------------------------------------------------
def _parse_day(value: Optional[str], name: str) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(sanitize_str(value)[:10])
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {name}; expected YYYY-MM-DD")

@app.get("/api/analytics", response_model=AnalyticsResponse)
async def get_analytics(start_date: Optional[str] = Query(None, alias="startDate"),
                        end_date: Optional[str] = Query(None, alias="endDate"),
                        user=Depends(get_current_user), db=Depends(get_db)):
    end = _parse_day(end_date, "endDate") or now_utc().date()
    start = _parse_day(start_date, "startDate") or end - timedelta(days=30)
    if start > end:
        raise HTTPException(status_code=400, detail="startDate must not be after endDate")
    window = {"$gte": datetime.combine(start, datetime.min.time()),
              "$lt": datetime.combine(end + timedelta(days=1), datetime.min.time())}
    fq: Dict[str, Any] = {"created_at": window}
    if user["role"] == RESIDENT:
        fq["user_id"] = user["_id"]
    elif user["role"] == TECHNICIAN:
        fq["assigned_technician_id"] = user["_id"]
    def fetch():
        return list(db.reports.find(fq, {"status": 1, "created_at": 1, "approved_at": 1}))
    loop = asyncio.get_event_loop()
    reports = await loop.run_in_executor(executor, fetch)

    by_status = {s.value: 0 for s in ReportStatus}
    by_month: Dict[str, int] = {}
    durations = []
    for r in reports:
        by_status[r["status"]] = by_status.get(r["status"], 0) + 1
        month = r["created_at"].strftime("%Y-%m")
        by_month[month] = by_month.get(month, 0) + 1
        if r["status"] == ReportStatus.APPROVED.value and r.get("approved_at"):
            durations.append((r["approved_at"] - r["created_at"]).total_seconds() / 3600)
    avg_hours = sum(durations) / len(durations) if durations else 0.0
    return AnalyticsResponse(
        total_complaints=len(reports),
        pending_complaints=sum(by_status[s.value] for s in OPEN_STATUSES),
        completed_complaints=sum(by_status[s.value] for s in DONE_STATUSES),
        approved_complaints=by_status[ReportStatus.APPROVED.value],
        rejected_complaints=by_status[ReportStatus.REJECTED.value],
        average_resolution_time=round(avg_hours, 1),
        complaints_by_month=[CountByMonth(month=m, count=c) for m, c in sorted(by_month.items())],
        complaints_by_status=[CountByStatus(status=s, count=c) for s, c in by_status.items()])

# ---------------------------------------------------------------------------
# HEALTH
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return {"status": "healthy", "system": "BlueGrid Water Portal",
            "timestamp": datetime.now(timezone.utc)}

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=3001)
