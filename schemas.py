"""
Database Schemas

MongoDB collection schemas and request bodies as Pydantic models.
Documents are stored with camelCase keys (the wire format); Python
attributes are snake_case and map onto them through an alias generator.

Collections:
- UserForm -> "userform"
- TradingRegistration -> "tradingregistration"
- Payment -> "payment"
"""

from datetime import datetime, timezone
from enum import Enum
import math
import re
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from database import utcnow
from errors import field_label

EMAIL_PATTERN = re.compile(r".+@.+\..+")
PHONE_PATTERN = re.compile(r"^\d{10}$")
PINCODE_PATTERN = re.compile(r"^\d{6}$")
AADHAR_PATTERN = re.compile(r"^\d{12}$")
PAN_PATTERN = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")

INVALID_AMOUNT = "Invalid amount format. Please provide a valid number."


def _not_blank(value: str, info: ValidationInfo) -> str:
    # blank form inputs count as missing
    if not value:
        raise ValueError(f"{field_label(to_camel(info.field_name))} is required")
    return value


class Document(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        use_enum_values=True,
        validate_default=True,
        extra="ignore",
    )

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class PersonalDetails(Document):
    """Fields shared by both registration collections."""
    first_name: str = Field(..., description="Given name, 2-50 characters")
    last_name: str = Field(..., description="Family name, 2-50 characters")
    email: str = Field(..., description="Contact email, stored lower-cased")
    phone: str = Field(..., description="10 digit phone number")
    date_of_birth: datetime = Field(..., description="Must lie in the past")
    address: str = Field(..., min_length=5, description="Postal address")
    city: str = Field(..., description="City of residence")
    state: str = Field(..., description="State of residence")
    pincode: str = Field(..., description="6 digit postal code")
    aadhar_number: str = Field(..., description="12 digit Aadhar identity number")
    agree_terms: bool = Field(..., description="Must be true")
    agree_marketing: bool = Field(False, description="Opt-in for marketing")

    @field_validator("first_name", "last_name")
    @classmethod
    def _name_length(cls, value: str, info: ValidationInfo) -> str:
        label = field_label(to_camel(info.field_name))
        if len(value) < 2:
            raise ValueError(f"{label} must be at least 2 characters")
        if len(value) > 50:
            raise ValueError(f"{label} cannot exceed 50 characters")
        return value

    @field_validator("city", "state")
    @classmethod
    def _place(cls, value: str, info: ValidationInfo) -> str:
        return _not_blank(value, info)

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        if not EMAIL_PATTERN.match(value):
            raise ValueError("Please enter a valid email address")
        return value.lower()

    @field_validator("phone")
    @classmethod
    def _phone(cls, value: str) -> str:
        if not PHONE_PATTERN.match(value):
            raise ValueError("Phone number must be 10 digits")
        return value

    @field_validator("pincode")
    @classmethod
    def _pincode(cls, value: str) -> str:
        if not PINCODE_PATTERN.match(value):
            raise ValueError("Pincode must be 6 digits")
        return value

    @field_validator("aadhar_number")
    @classmethod
    def _aadhar(cls, value: str) -> str:
        if not AADHAR_PATTERN.match(value):
            raise ValueError("Aadhar number must be 12 digits")
        return value

    @field_validator("date_of_birth")
    @classmethod
    def _born_in_past(cls, value: datetime) -> datetime:
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
            now = utcnow()
        else:
            now = datetime.now()
        if value >= now:
            raise ValueError("Date of birth must be in the past")
        return value

    @field_validator("agree_terms")
    @classmethod
    def _terms_accepted(cls, value: bool) -> bool:
        if value is not True:
            raise ValueError("You must accept the terms and conditions")
        return value


class UserForm(PersonalDetails):
    """
    Generic registration submission.
    Collection name: "userform"
    """
    aadhar_file: str = Field(..., description="Stored path of the Aadhar upload")
    signature_file: str = Field(..., description="Stored path of the signature upload")


class StoredFile(Document):
    """Metadata of an uploaded file embedded in a record."""
    filename: str = Field(..., description="Generated name on disk")
    original_name: str = Field(..., description="Name sent by the client")
    mimetype: str
    size: int = Field(..., ge=0, description="Size in bytes")
    path: str = Field(..., description="Location on disk")


class RegistrationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    UNDER_REVIEW = "under_review"


class VerificationType(str, Enum):
    AADHAR = "aadharVerified"
    PAN = "panVerified"
    SIGNATURE = "signatureVerified"
    EMAIL = "emailVerified"
    PHONE = "phoneVerified"


# Stored flag updated by each verification type
VERIFICATION_FLAGS: Dict[VerificationType, str] = {
    VerificationType.AADHAR: "verificationStatus.aadharVerified",
    VerificationType.PAN: "verificationStatus.panVerified",
    VerificationType.SIGNATURE: "verificationStatus.signatureVerified",
    VerificationType.EMAIL: "verificationStatus.emailVerified",
    VerificationType.PHONE: "verificationStatus.phoneVerified",
}

# Flags that must all be set for a registration to count as fully verified
TRACKED_FLAGS = ("aadharVerified", "signatureVerified", "emailVerified", "phoneVerified")


class VerificationStatus(Document):
    aadhar_verified: bool = False
    pan_verified: bool = False
    signature_verified: bool = False
    email_verified: bool = False
    phone_verified: bool = False

    def is_fully_verified(self) -> bool:
        # PAN is tracked but not part of full verification
        return (self.aadhar_verified and self.signature_verified
                and self.email_verified and self.phone_verified)


class TradingRegistration(PersonalDetails):
    """
    Trading account registration with structured attachments.
    Collection name: "tradingregistration"
    """
    pan_number: Optional[str] = Field(None, description="PAN, e.g. ABCDE1234F")
    aadhar_file: StoredFile
    pan_file: Optional[StoredFile] = None
    signature_file: StoredFile
    registration_status: RegistrationStatus = RegistrationStatus.PENDING
    admin_notes: Optional[str] = None
    verification_status: VerificationStatus = Field(default_factory=VerificationStatus)
    submission_date: datetime = Field(default_factory=utcnow)

    @field_validator("pan_number")
    @classmethod
    def _pan(cls, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        value = value.upper()
        if not PAN_PATTERN.match(value):
            raise ValueError("PAN number must look like ABCDE1234F")
        return value

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


# Keys a client may not set through create or update
ADMIN_FIELDS = frozenset({"registrationStatus", "adminNotes", "verificationStatus", "submissionDate"})


class PaymentStatus(str, Enum):
    PAID = "Paid"
    PENDING = "Pending"
    FAILED = "Failed"


class Payment(Document):
    """
    Logged course payment.
    Collection name: "payment"
    """
    user_name: str
    course_name: str
    amount: float = Field(..., description="Amount paid, normalised to a number")
    payment_status: PaymentStatus = PaymentStatus.PENDING
    user_phone: Optional[str] = None
    user_email: Optional[str] = None

    @field_validator("user_name", "course_name")
    @classmethod
    def _named(cls, value: str, info: ValidationInfo) -> str:
        return _not_blank(value, info)

    @field_validator("amount", mode="before")
    @classmethod
    def _clean_amount(cls, value):
        if isinstance(value, bool):
            raise ValueError(INVALID_AMOUNT)
        if isinstance(value, str):
            value = re.sub(r"[₹,\s]", "", value)
        try:
            amount = float(value)
        except (TypeError, ValueError):
            raise ValueError(INVALID_AMOUNT) from None
        if not math.isfinite(amount):
            raise ValueError(INVALID_AMOUNT)
        return amount


class PaymentRequest(Payment):
    payment_status: PaymentStatus


class StatusUpdate(Document):
    status: RegistrationStatus
    admin_notes: Optional[str] = None


class VerificationUpdate(Document):
    # keep the enum member, VERIFICATION_FLAGS is keyed by it
    model_config = ConfigDict(use_enum_values=False)

    verification_type: VerificationType
    is_verified: bool
