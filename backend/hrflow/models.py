from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .clock import utcnow
from .database import Base
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


class Offer(Base):
    __tablename__ = "offers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    candidate_name: Mapped[str] = mapped_column(String(200))
    candidate_email: Mapped[str] = mapped_column(String(320), index=True)
    position: Mapped[str] = mapped_column(String(200))
    department: Mapped[str | None] = mapped_column(String(200))
    compensation: Mapped[str | None] = mapped_column(String(100))
    joining_date: Mapped[datetime | None]
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    status: Mapped[OfferStatus] = mapped_column(Enum(OfferStatus), default=OfferStatus.PENDING, nullable=False)

    rejection_reason: Mapped[str | None] = mapped_column(Text)
    revocation_reason: Mapped[str | None] = mapped_column(Text)
    responded_at: Mapped[datetime | None]

    created_by: Mapped[str | None] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    employment_form: Mapped["EmploymentForm"] = relationship(back_populates="offer", uselist=False)

    __mapper_args__ = {"version_id_col": version}

    def is_overdue(self, now: datetime | None = None) -> bool:
        return self.status == OfferStatus.PENDING and (now or utcnow()) >= self.expires_at

    def status_at(self, now: datetime | None = None) -> OfferStatus:
        # expiry is evaluated lazily; the stored status stays pending until expire_offer runs
        return OfferStatus.EXPIRED if self.is_overdue(now) else self.status

    @property
    def effective_status(self) -> OfferStatus:
        return self.status_at()


class EmploymentForm(Base):
    __tablename__ = "employment_forms"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    offer_id: Mapped[int] = mapped_column(ForeignKey("offers.id"), unique=True, index=True)

    # candidate supplied sections, replaced wholesale on amendment
    personal_info: Mapped[dict | None] = mapped_column(JSON)
    cnic_info: Mapped[dict | None] = mapped_column(JSON)
    contact_info: Mapped[dict | None] = mapped_column(JSON)
    addresses: Mapped[dict | None] = mapped_column(JSON)
    accepted_policies: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    status: Mapped[FormStatus] = mapped_column(Enum(FormStatus), default=FormStatus.DRAFT, nullable=False)

    reviewed_by: Mapped[str | None] = mapped_column(String(100))
    review_feedback: Mapped[str | None] = mapped_column(Text)
    reviewed_at: Mapped[datetime | None]
    submitted_at: Mapped[datetime | None]
    resubmitted_at: Mapped[datetime | None]

    # a revision is outstanding while revision_count > revisions_addressed
    revision_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    revisions_addressed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    offer: Mapped["Offer"] = relationship(back_populates="employment_form")
    revision_requests: Mapped[list["RevisionRequest"]] = relationship(
        back_populates="employment_form",
        order_by=lambda: [RevisionRequest.requested_at, RevisionRequest.id],
        cascade="all, delete-orphan",
    )
    contracts: Mapped[list["Contract"]] = relationship(back_populates="employment_form")

    __mapper_args__ = {"version_id_col": version}


class RevisionRequest(Base):
    __tablename__ = "revision_requests"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    employment_form_id: Mapped[int] = mapped_column(ForeignKey("employment_forms.id"), index=True)

    requested_fields: Mapped[list] = mapped_column(JSON, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    requested_by: Mapped[str | None] = mapped_column(String(100))
    requested_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    employment_form: Mapped["EmploymentForm"] = relationship(back_populates="revision_requests")


class Contract(Base):
    __tablename__ = "contracts"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    employment_form_id: Mapped[int] = mapped_column(ForeignKey("employment_forms.id"), index=True)

    employee_name: Mapped[str] = mapped_column(String(200))
    employee_email: Mapped[str] = mapped_column(String(320))

    position: Mapped[str] = mapped_column(String(200))
    department: Mapped[str | None] = mapped_column(String(200))
    employment_type: Mapped[EmploymentType] = mapped_column(
        Enum(EmploymentType), default=EmploymentType.FULL_TIME, nullable=False
    )
    start_date: Mapped[datetime | None]
    compensation: Mapped[str | None] = mapped_column(String(100))
    probation_period_months: Mapped[int | None]

    status: Mapped[ContractStatus] = mapped_column(Enum(ContractStatus), default=ContractStatus.DRAFT, nullable=False)

    html_body: Mapped[str | None] = mapped_column(Text)
    sent_at: Mapped[datetime | None]
    expires_at: Mapped[datetime | None]                      # signing deadline, set on send
    employee_signature: Mapped[str | None] = mapped_column(String(500))   # stored signature URL
    employee_signed_at: Mapped[datetime | None]
    signed_document_url: Mapped[str | None] = mapped_column(String(500))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    employment_form: Mapped["EmploymentForm"] = relationship(back_populates="contracts")

    __mapper_args__ = {"version_id_col": version}


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    contract_id: Mapped[int] = mapped_column(ForeignKey("contracts.id"), unique=True)
    employment_form_id: Mapped[int] = mapped_column(ForeignKey("employment_forms.id"), index=True)
    email: Mapped[str] = mapped_column(String(320), index=True)

    status: Mapped[AccountStatus] = mapped_column(Enum(AccountStatus), default=AccountStatus.PENDING, nullable=False)
    hashed_password: Mapped[str | None] = mapped_column(String(200))
    activated_at: Mapped[datetime | None]

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class ActivationToken(Base):
    """One-time link that lets a new employee set their first password."""

    __tablename__ = "activation_tokens"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), index=True)

    token_hash: Mapped[str] = mapped_column(String(128), unique=True, index=True)

    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    used_at: Mapped[datetime | None]

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class Document(Base):
    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    owner_id: Mapped[int] = mapped_column(Integer, index=True)
    owner_email: Mapped[str | None] = mapped_column(String(320))

    title: Mapped[str] = mapped_column(String(200))
    content: Mapped[str | None] = mapped_column(Text)
    template_ref: Mapped[str | None] = mapped_column(String(100))

    status: Mapped[DocumentStatus] = mapped_column(Enum(DocumentStatus), default=DocumentStatus.PENDING, nullable=False)
    file_url: Mapped[str | None] = mapped_column(String(500))       # uploaded file, instead of content
    signature: Mapped[str | None] = mapped_column(String(500))      # stored signature URL
    decline_reason: Mapped[str | None] = mapped_column(Text)

    created_by: Mapped[str | None] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    completed_at: Mapped[datetime | None]
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class DocumentRequest(Base):
    __tablename__ = "document_requests"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    owner_id: Mapped[int] = mapped_column(Integer, index=True)
    owner_email: Mapped[str | None] = mapped_column(String(320))

    type: Mapped[DocumentRequestType] = mapped_column(Enum(DocumentRequestType), nullable=False)
    custom_type: Mapped[str | None] = mapped_column(String(100))
    reason: Mapped[str] = mapped_column(Text)

    status: Mapped[RequestStatus] = mapped_column(Enum(RequestStatus), default=RequestStatus.PENDING, nullable=False)
    generated_document_url: Mapped[str | None] = mapped_column(String(500))
    admin_comments: Mapped[str | None] = mapped_column(Text)
    processed_by: Mapped[str | None] = mapped_column(String(100))
    download_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    completed_at: Mapped[datetime | None]
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class DocumentTemplate(Base):
    """Admin-managed document template; overrides the bundled file of the same name."""

    __tablename__ = "document_templates"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text)
    body: Mapped[str] = mapped_column(Text, nullable=False)

    created_by: Mapped[str | None] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class StageLink(Base):
    """Which next-stage record a source record produced; one per source."""

    __tablename__ = "stage_links"
    __table_args__ = (UniqueConstraint("source_type", "source_id", name="uq_stage_link_source"),)

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    source_type: Mapped[str] = mapped_column(String(50))
    source_id: Mapped[int]
    target_type: Mapped[str] = mapped_column(String(50))
    target_id: Mapped[int]

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
