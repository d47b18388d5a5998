from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from .statuses import (
    AccountStatus,
    ContractStatus,
    DocumentRequestType,
    DocumentStatus,
    EmploymentType,
    FormStatus,
    OfferStatus,
    RequestStatus,
)

CNIC_PATTERN = r"^\d{5}-\d{7}-\d$"
PHONE_PATTERN = r"^[+]?[\d\s\-()]+$"


### Offer Schemas

# Input when create offer
class OfferCreate(BaseModel):
    candidate_name: str = Field(min_length=1)
    candidate_email: EmailStr
    position: str = Field(min_length=1)
    department: Optional[str] = None
    compensation: Optional[str] = None
    joining_date: Optional[datetime] = None
    expires_at: Optional[datetime] = None  # defaults to now + OFFER_VALIDITY_HOURS


class OfferRespond(BaseModel):
    response: Literal["accept", "reject"]
    reason: Optional[str] = None


class OfferRevoke(BaseModel):
    reason: str


class OfferOut(BaseModel):
    id: int
    candidate_name: str
    candidate_email: str
    position: str
    department: Optional[str] = None
    compensation: Optional[str] = None
    joining_date: Optional[datetime] = None
    status: OfferStatus
    effective_status: OfferStatus
    expires_at: datetime
    rejection_reason: Optional[str] = None
    revocation_reason: Optional[str] = None
    responded_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


### Employment Form Schemas

class PersonalInfo(BaseModel):
    photo: Optional[str] = None
    legal_name: str = Field(min_length=2)
    father_name: Optional[str] = None
    guardian_name: Optional[str] = None
    guardian_cnic: Optional[str] = None
    date_of_birth: date
    gender: Literal["male", "female", "other"]
    marital_status: Optional[Literal["single", "married", "divorced", "widowed"]] = None


class CnicInfo(BaseModel):
    cnic_number: str = Field(pattern=CNIC_PATTERN)
    cnic_front_image: str = Field(min_length=1)
    cnic_back_image: str = Field(min_length=1)
    cnic_issue_date: Optional[date] = None
    cnic_expiry_date: Optional[date] = None


class EmergencyContact(BaseModel):
    name: str = Field(min_length=1)
    relationship: Optional[str] = None
    phone: str = Field(pattern=PHONE_PATTERN)


class ContactInfo(BaseModel):
    phone: str = Field(pattern=PHONE_PATTERN)
    alternate_phone: Optional[str] = None
    email: EmailStr
    emergency_contact: EmergencyContact


class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None


class PrimaryAddress(Address):
    city: str = Field(min_length=1)


class Addresses(BaseModel):
    primary_address: PrimaryAddress
    secondary_address: Optional[Address] = None


class PolicyAcceptance(BaseModel):
    policy_id: str = Field(min_length=1)
    policy_title: Optional[str] = None
    accepted_at: Optional[datetime] = None


class EmploymentFormSubmit(BaseModel):
    personal_info: PersonalInfo
    cnic_info: CnicInfo
    contact_info: ContactInfo
    addresses: Addresses
    accepted_policies: List[PolicyAcceptance] = []


# resubmission after a revision request; only the sections sent are replaced
class EmploymentFormAmend(BaseModel):
    personal_info: Optional[PersonalInfo] = None
    cnic_info: Optional[CnicInfo] = None
    contact_info: Optional[ContactInfo] = None
    addresses: Optional[Addresses] = None
    accepted_policies: List[PolicyAcceptance] = []


class FormReview(BaseModel):
    decision: Literal["approved", "rejected"]
    feedback: Optional[str] = None


class RevisionRequestIn(BaseModel):
    requested_fields: List[str]
    notes: Optional[str] = None


class RevisionRequestOut(BaseModel):
    id: int
    requested_fields: List[str]
    notes: Optional[str] = None
    requested_by: Optional[str] = None
    requested_at: datetime

    class Config:
        from_attributes = True


class EmploymentFormOut(BaseModel):
    id: int
    offer_id: int
    personal_info: Optional[dict] = None
    cnic_info: Optional[dict] = None
    contact_info: Optional[dict] = None
    addresses: Optional[dict] = None
    accepted_policies: List[dict] = []
    status: FormStatus
    revision_requests: List[RevisionRequestOut] = []
    reviewed_by: Optional[str] = None
    review_feedback: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    resubmitted_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


### Contract Schemas

class ContractDetails(BaseModel):
    position: Optional[str] = None
    department: Optional[str] = None
    employment_type: Optional[EmploymentType] = None
    start_date: Optional[datetime] = None
    compensation: Optional[str] = None
    probation_period_months: Optional[int] = Field(default=None, ge=0)


class ContractCreate(ContractDetails):
    employment_form_id: int


class SignatureIn(BaseModel):
    signature: str


class ContractOut(BaseModel):
    id: int
    employment_form_id: int
    employee_name: str
    employee_email: str
    position: str
    department: Optional[str] = None
    employment_type: EmploymentType
    start_date: Optional[datetime] = None
    compensation: Optional[str] = None
    probation_period_months: Optional[int] = None
    status: ContractStatus
    sent_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    employee_signature: Optional[str] = None
    employee_signed_at: Optional[datetime] = None
    signed_document_url: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


### Account Schemas

class AccountActivate(BaseModel):
    password: str


class AccountOut(BaseModel):
    id: int
    contract_id: int
    employment_form_id: int
    email: str
    status: AccountStatus
    activated_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


### Document Schemas

class DocumentCreate(BaseModel):
    owner_id: int
    owner_email: Optional[EmailStr] = None
    title: str = Field(min_length=1)
    content: Optional[str] = None
    template_type: Optional[str] = None
    variables: dict = {}


class DocumentUpload(BaseModel):
    owner_id: int
    owner_email: Optional[EmailStr] = None
    title: str = Field(min_length=1)
    file: str                                       # base64 data URL


class DocumentDecline(BaseModel):
    reason: str


class DocumentOut(BaseModel):
    id: int
    owner_id: int
    title: str
    content: Optional[str] = None
    file_url: Optional[str] = None
    template_ref: Optional[str] = None
    status: DocumentStatus
    signature: Optional[str] = None
    decline_reason: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


### Document Template Schemas

class DocumentTemplateCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    title: str = Field(min_length=1)
    description: Optional[str] = None
    body: str


class DocumentTemplateUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    body: Optional[str] = None


class DocumentTemplateOut(BaseModel):
    id: int
    name: str
    title: str
    description: Optional[str] = None
    body: str
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


### Document Request Schemas

class DocumentRequestCreate(BaseModel):
    type: DocumentRequestType
    custom_type: Optional[str] = None
    reason: str


class DocumentRequestGenerate(BaseModel):
    html_content: Optional[str] = None


class DocumentRequestReject(BaseModel):
    admin_comments: str


class DocumentRequestOut(BaseModel):
    id: int
    owner_id: int
    type: DocumentRequestType
    custom_type: Optional[str] = None
    reason: str
    status: RequestStatus
    generated_document_url: Optional[str] = None
    admin_comments: Optional[str] = None
    download_count: int
    created_at: datetime
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


### Dashboard

class HiringStats(BaseModel):
    offers: dict
    employment_forms: dict
    contracts: dict
    pending_document_requests: int


class ExpirySweep(BaseModel):
    expired_offers: List[int]
    expired_contracts: List[int]
