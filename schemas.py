"""
Database Schemas for ScholarStream

Each Pydantic model describes a MongoDB collection:
- User -> "users"
- Scholarship -> "scholarships"
- Application -> "applications"
- Payment -> "payments"
- Review -> "reviews"

Scholarship and Application documents are stored as the client sends them
(extra fields are kept); these models document the expected shape and type the
request bodies that the routes validate.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field

Role = Literal["Student", "Moderator", "Admin"]
ASSIGNABLE_ROLES = ("Student", "Moderator")

APPLICATION_STATUSES = ("pending", "processing", "completed", "rejected")

Number = Union[int, float, str]


class User(BaseModel):
    name: Optional[str] = Field(None, description="Display name")
    email: EmailStr = Field(..., description="Unique email address")
    photo: Optional[str] = Field(None, description="Avatar URL")
    role: Role = Field("Student", description="User role")
    moderatorFor: List[str] = Field(default_factory=list, description="Institutions a moderator manages")
    password_hash: Optional[str] = Field(None, description="bcrypt hash, only for locally registered users")


class Scholarship(BaseModel):
    model_config = ConfigDict(extra="allow")

    scholarshipName: Optional[str] = None
    universityName: Optional[str] = None
    universityImage: Optional[str] = None
    universityCountry: Optional[str] = None
    universityCity: Optional[str] = None
    universityWorldRank: Optional[Number] = None
    subjectCategory: Optional[str] = None
    scholarshipCategory: Optional[str] = None
    degree: Optional[str] = None
    tuitionFees: Optional[Number] = None
    applicationFees: Optional[Number] = None
    serviceCharge: Optional[Number] = None
    applicationDeadline: Optional[str] = None
    postedDate: Optional[str] = None
    postedUserEmail: Optional[str] = Field(None, description="Issuer / owner")


class Application(BaseModel):
    model_config = ConfigDict(extra="allow")

    scholar: Optional[Dict[str, Any]] = Field(None, description="Scholarship snapshot taken at apply time")
    scholarshipId: Optional[str] = None
    scholarshipName: Optional[str] = None
    universityName: Optional[str] = None
    fees: Optional[Number] = None
    applicant: Optional[str] = Field(None, description="Applicant email")
    userName: Optional[str] = None
    appliedDate: Optional[datetime] = None
    status: Optional[str] = None
    feedback: Optional[str] = None
    payment: Optional[Dict[str, Any]] = Field(None, description="Embedded payment reference")


class Payment(BaseModel):
    scholarshipId: Optional[str] = None
    amount: Optional[Number] = None
    transactionId: Optional[str] = None
    email: Optional[str] = None


class Review(BaseModel):
    model_config = ConfigDict(extra="allow")

    scholarshipId: Optional[str] = None
    universityName: Optional[str] = None
    scholarshipName: Optional[str] = None
    userName: Optional[str] = None
    userEmail: Optional[str] = None
    userImage: Optional[str] = None
    postByEmail: Optional[str] = None
    ratingPoint: Optional[Number] = None
    reviewComment: Optional[str] = None


# ----------------------
# Request bodies
# ----------------------
class UserCreate(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    email: Optional[EmailStr] = None
    photo: Optional[str] = None
    role: Optional[str] = None
    password: Optional[str] = None


class RoleUpdate(BaseModel):
    role: Optional[str] = None


class TokenRequest(BaseModel):
    email: EmailStr
    password: Optional[str] = None


class TokenResponse(BaseModel):
    success: bool = True
    access_token: str
    token_type: str = "bearer"


class StatusUpdate(BaseModel):
    status: Optional[str] = None


class FeedbackUpdate(BaseModel):
    feedback: Optional[str] = None


class ReviewUpdate(BaseModel):
    reviewComment: Optional[str] = None
    ratingPoint: Optional[Number] = None


class PaymentIntentRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    amount: Number
    scholarshipId: Optional[str] = None
    email: Optional[str] = None
