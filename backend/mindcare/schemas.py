from __future__ import annotations
import datetime as dt
from typing import Optional, List, Dict, Any, Literal, Annotated

from pydantic import (
    BaseModel, Field, EmailStr, field_validator, model_validator, AfterValidator, PlainSerializer,
)


def _whole_minute(t: dt.time) -> dt.time:
    if t.second or t.microsecond:
        raise ValueError("Time must be in HH:MM format")
    return t


# "09:00" on the wire, datetime.time in python
HHMM = Annotated[
    dt.time,
    AfterValidator(_whole_minute),
    PlainSerializer(lambda t: t.strftime("%H:%M"), return_type=str, when_used="json"),
]

Weekday = Literal["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
SessionType = Literal["individual", "couple", "group"]
SessionMode = Literal["video", "audio", "chat", "in-person"]
Period = Literal["week", "month", "year"]


def _split_csv(v: Any) -> Any:
    """Accept "a, b" as well as ["a", "b"]."""
    if isinstance(v, str):
        return [s.strip() for s in v.split(",") if s.strip()]
    return v


# --- Auth ---
class UserRegister(BaseModel):
    first_name: str = Field(..., min_length=2, max_length=80)
    last_name: str = Field(..., min_length=2, max_length=80)
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: Optional[str] = Field(None, max_length=32)


class EducationEntry(BaseModel):
    degree: str = Field(..., min_length=1)
    institution: str = Field(..., min_length=1)
    year: int = Field(..., ge=1950)

    @field_validator("year")
    @classmethod
    def _not_in_future(cls, v: int) -> int:
        if v > dt.date.today().year:
            raise ValueError("Year cannot be in the future")
        return v


class TherapistRegister(UserRegister):
    """
    /auth/register/therapist request body.
    specializations / languages may be sent comma-separated.
    """
    license_number: str = Field(..., min_length=1, max_length=64)
    specializations: List[str] = Field(..., min_length=1)
    education: List[EducationEntry] = Field(..., min_length=1)
    languages: List[str] = Field(..., min_length=1)
    experience: int = Field(..., ge=0)
    bio: str = Field(..., min_length=50)
    hourly_rate: float = Field(..., ge=0)

    @field_validator("specializations", "languages", mode="before")
    @classmethod
    def _split_lists(cls, v: Any) -> Any:
        return _split_csv(v)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str
    user_type: Literal["user", "therapist", "admin"] = "user"


class AccountPublic(BaseModel):
    """
    Account as returned by the API (never includes the password hash).
    """
    id: int
    email: EmailStr
    role: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    profile_image: Optional[str] = None
    is_active: bool
    last_login: Optional[dt.datetime] = None
    created_at: dt.datetime

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: AccountPublic


class RegisterResponse(BaseModel):
    message: str
    user: AccountPublic


class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)


class AdminPasswordChange(PasswordChange):
    new_password: str = Field(..., min_length=8)


# --- User profile ---
class EmergencyContact(BaseModel):
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    relationship: str = Field(..., min_length=1)


class UserProfile(AccountPublic):
    date_of_birth: Optional[dt.date] = None
    gender: Optional[str] = None
    emergency_contact: Optional[EmergencyContact] = None
    preferences: Optional[Dict[str, Any]] = None


class UserProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=2, max_length=80)
    last_name: Optional[str] = Field(None, min_length=2, max_length=80)
    phone: Optional[str] = Field(None, max_length=32)
    date_of_birth: Optional[dt.date] = None
    gender: Optional[str] = Field(None, max_length=32)
    emergency_contact: Optional[EmergencyContact] = None
    preferences: Optional[Dict[str, Any]] = None

    @field_validator("date_of_birth")
    @classmethod
    def _past_date(cls, v: Optional[dt.date]) -> Optional[dt.date]:
        if v is not None and v >= dt.date.today():
            raise ValueError("Date of birth must be in the past")
        return v


# --- Therapist ---
class AvailabilityDay(BaseModel):
    start: HHMM
    end: HHMM
    available: bool = True

    @model_validator(mode="after")
    def _window_order(self) -> "AvailabilityDay":
        if self.available and self.end <= self.start:
            raise ValueError("end must be after start")
        return self


class AvailabilityUpdate(BaseModel):
    availability: Dict[Weekday, AvailabilityDay] = Field(..., min_length=1)


class TherapistProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=2, max_length=80)
    last_name: Optional[str] = Field(None, min_length=2, max_length=80)
    phone: Optional[str] = Field(None, max_length=32)
    bio: Optional[str] = Field(None, min_length=50)
    specializations: Optional[List[str]] = Field(None, min_length=1)
    languages: Optional[List[str]] = Field(None, min_length=1)
    education: Optional[List[EducationEntry]] = None
    experience: Optional[int] = Field(None, ge=0)
    hourly_rate: Optional[float] = Field(None, ge=0)
    license_number: Optional[str] = Field(None, min_length=1, max_length=64)

    @field_validator("specializations", "languages", mode="before")
    @classmethod
    def _split_lists(cls, v: Any) -> Any:
        return _split_csv(v)


class TherapistSummary(AccountPublic):
    specializations: List[str] = []
    languages: List[str] = []
    experience: int = 0
    bio: str = ""
    hourly_rate: float = 0
    is_verified: bool = False
    rating: float = 0
    total_reviews: int = 0


class TherapistDetail(TherapistSummary):
    license_number: str
    education: List[EducationEntry] = []
    availability: Dict[str, AvailabilityDay] = {}


class TherapistList(BaseModel):
    therapists: List[TherapistSummary]
    total: int
    page: int
    total_pages: int


class AccountList(BaseModel):
    users: List[AccountPublic]
    total: int
    page: int
    total_pages: int


# --- Appointments ---
class AppointmentBook(BaseModel):
    therapist_id: int
    date: dt.date
    start_time: HHMM
    duration: Literal[30, 60, 90, 120] = 60
    session_type: SessionType = "individual"
    session_mode: SessionMode = "video"
    notes: Optional[str] = Field(None, max_length=1000)


class AppointmentOut(BaseModel):
    id: int
    user_id: int
    therapist_id: int
    user_name: str
    therapist_name: str
    date: dt.date
    start_time: HHMM
    end_time: HHMM
    duration: int
    session_type: str
    session_mode: str
    status: str
    amount: float
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    rating: Optional[int] = None
    review: Optional[str] = None
    reviewed_at: Optional[dt.datetime] = None
    created_at: dt.datetime


class AppointmentList(BaseModel):
    appointments: List[AppointmentOut]
    total: int
    page: int
    total_pages: int


class AppointmentStatusUpdate(BaseModel):
    status: Literal["confirmed", "completed", "cancelled"]
    reason: Optional[str] = Field(None, max_length=500)


class AppointmentCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    review: Optional[str] = Field(None, max_length=2000)


class ReviewOut(BaseModel):
    appointment_id: int
    user_id: int
    user_name: str
    rating: int
    review: Optional[str] = None
    date: dt.datetime


class SlotOut(BaseModel):
    start_time: HHMM
    end_time: HHMM


class AvailableSlots(BaseModel):
    therapist_id: int
    date: dt.date
    duration: int
    available_slots: List[SlotOut]


# --- Chatbot ---
class ChatSendReq(BaseModel):
    message: str = Field(..., max_length=2000)
    session_id: Optional[str] = Field(None, max_length=64)

    @field_validator("message")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Message cannot be empty.")
        return v


class ChatMessageOut(BaseModel):
    id: int
    session_id: str
    message_type: str
    message: str
    intent: Optional[str] = None
    created_at: dt.datetime

    class Config:
        from_attributes = True


class ChatSendResp(BaseModel):
    ai_message: ChatMessageOut
    session_id: str


class ChatHistory(BaseModel):
    messages: List[ChatMessageOut]
    total_pages: int
    current_page: int
    total: int


class ChatSessionInfo(BaseModel):
    session_id: str
    last_message: str
    last_timestamp: dt.datetime


class ChatSessions(BaseModel):
    sessions: List[ChatSessionInfo]


# --- Notifications ---
class NotificationOut(BaseModel):
    id: int
    message: str
    type: str
    read: bool
    created_at: dt.datetime

    class Config:
        from_attributes = True


# --- Admin ---
class AdminAccountUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=2, max_length=80)
    last_name: Optional[str] = Field(None, min_length=2, max_length=80)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=32)
    is_active: Optional[bool] = None


class AdminTherapistUpdate(AdminAccountUpdate):
    license_number: Optional[str] = Field(None, min_length=1, max_length=64)
    specializations: Optional[List[str]] = Field(None, min_length=1)
    languages: Optional[List[str]] = Field(None, min_length=1)
    experience: Optional[int] = Field(None, ge=0)
    bio: Optional[str] = None
    hourly_rate: Optional[float] = Field(None, ge=0)
    is_verified: Optional[bool] = None

    @field_validator("specializations", "languages", mode="before")
    @classmethod
    def _split_lists(cls, v: Any) -> Any:
        return _split_csv(v)


# --- Analytics ---
class Series(BaseModel):
    labels: List[str]
    data: List[float]


class TherapistDashboard(BaseModel):
    total_appointments: int
    pending_appointments: int
    confirmed_appointments: int
    completed_appointments: int
    total_earnings: float
    average_rating: float
    total_reviews: int


class ClientStats(BaseModel):
    total_clients: int
    new_clients: int
    returning_clients: int
    average_rating: float


class Trends(BaseModel):
    labels: List[str]
    appointments: List[int]
    earnings: List[float]


class TherapistAnalytics(BaseModel):
    period: Period
    earnings: Series
    appointments: Series
    client_stats: ClientStats
    session_types: Series
    monthly_trends: Trends


class PlatformStats(BaseModel):
    total_users: int
    total_therapists: int
    total_appointments: int
    completed_appointments: int
    total_revenue: float
    chatbot_messages: int


class UserGrowth(BaseModel):
    labels: List[str]
    users: List[int]
    therapists: List[int]


class RevenueAnalytics(BaseModel):
    labels: List[str]
    revenue: List[float]
    appointments: List[int]


class TherapistStats(BaseModel):
    verified: int
    pending: int
    active: int
    inactive: int


class AdminAnalytics(BaseModel):
    period: Period
    platform_stats: PlatformStats
    user_growth: UserGrowth
    revenue_analytics: RevenueAnalytics
    therapist_stats: TherapistStats
    appointment_status: Series


class IntentCount(BaseModel):
    intent: str
    count: int


class ChatbotAnalytics(BaseModel):
    days: int
    total_messages: int
    escalation_count: int
    mood_distribution: Series
    top_intents: List[IntentCount]
