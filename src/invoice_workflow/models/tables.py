"""Database models for the invoice workflow application.

This module contains SQLAlchemy model definitions for clients, users,
jobs and their files and outputs, extraction templates, system settings
and the email inbox that links jobs back to the message they came from.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import declarative_base, relationship

from .fields import JobStatus

__all__ = [
    "Base",
    "Client",
    "User",
    "Job",
    "JobFile",
    "JobOutput",
    "ExtractionTemplate",
    "SystemSetting",
    "InboxEmail",
]

Base = declarative_base()


class Client(Base):
    """A client company; users and jobs belong to one."""
    __tablename__ = "clients"

    id: int = Column(Integer, primary_key=True)
    name: str = Column(String(255), nullable=False)


class User(Base):
    """Application user with a single role (CLIENT, COMPILER or ADMIN)."""
    __tablename__ = "users"

    id: int = Column(Integer, primary_key=True)
    name: str = Column(String(255), nullable=False)
    email: str = Column(String(255), nullable=False)
    role: str = Column(String(20), nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=True)


class Job(Base):
    """SQLAlchemy model for a unit of extraction work on one document set.

    Attributes:
        id: Primary key for the job
        title: Display title given by the client
        client_id: Owning client
        compiler_id: Assigned compiler, set once at acceptance
        status: RECEIVED, IN_PROGRESS or COMPLETED
        compiler_step: Workflow step cursor, frozen at "completed"
        deadline: Due timestamp
        total_price: Price in cents
        analysis_result: Suggested field schema (camelCase JSON)
        confirmed_fields: Field schema confirmed by the compiler
        extracted_data: Extracted payload (header/lineItems or documents)
        supplier_name: Supplier detected or entered for the job
        template_found: Whether a saved template matched the supplier
        completed_at: Completion timestamp
        output_file_url: URL of the generated CSV
    """
    __tablename__ = "jobs"

    id: int = Column(Integer, primary_key=True)
    title: str = Column(String(255), nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    compiler_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    status: str = Column(String(20), nullable=False, default=JobStatus.RECEIVED.value)
    compiler_step = Column(String(20), nullable=True)
    deadline = Column(DateTime(timezone=True), nullable=False)
    deadline_hours = Column(Float, nullable=False)
    total_price: int = Column(Integer, nullable=False, default=0)
    analysis_result = Column(JSON, nullable=True)
    confirmed_fields = Column(JSON, nullable=True)
    extracted_data = Column(JSON, nullable=True)
    supplier_name = Column(String(255), nullable=True)
    template_found = Column(Boolean, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    output_file_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    client = relationship("Client")
    files = relationship("JobFile", back_populates="job", cascade="all, delete-orphan",
                         order_by="JobFile.id")

    __table_args__ = (
        Index("ix_jobs_status", "status"),
        Index("ix_jobs_compiler_id", "compiler_id"),
    )


class JobFile(Base):
    """A document uploaded for a job, addressed by its storage id."""
    __tablename__ = "job_files"

    id: int = Column(Integer, primary_key=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False, index=True)
    file_name: str = Column(String(255), nullable=False)
    file_storage_id: str = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=True)
    file_type = Column(String(100), nullable=True)
    document_type = Column(String(100), nullable=True)

    job = relationship("Job", back_populates="files")


class JobOutput(Base):
    """Final output recorded when a job completes."""
    __tablename__ = "job_outputs"

    id: int = Column(Integer, primary_key=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False, unique=True)
    csv_storage_id: str = Column(String(255), nullable=False)
    header_fields = Column(JSON, nullable=True)
    line_item_fields = Column(JSON, nullable=True)
    extracted_data = Column(JSON, nullable=True)


class ExtractionTemplate(Base):
    """Supplier-specific reusable field schema plus its embedding vector.

    The embedding is computed from ``supplier + client_name`` and always
    holds exactly ``Config.EMBEDDING_DIMENSIONS`` floats.
    """
    __tablename__ = "extraction_templates"

    id: int = Column(Integer, primary_key=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=True)
    supplier: str = Column(String(255), nullable=False)
    client_name = Column(String(255), nullable=True)
    header_fields = Column(JSON, nullable=False)
    line_item_fields = Column(JSON, nullable=False)
    embedding = Column(JSON, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_templates_client_supplier", "client_id", "supplier"),
    )


class SystemSetting(Base):
    """Key/value global setting edited by admins."""
    __tablename__ = "system_settings"

    id: int = Column(Integer, primary_key=True)
    key: str = Column(String(100), nullable=False, unique=True)
    value = Column(JSON, nullable=False)
    description: str = Column(Text, nullable=False, default="")
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)


class InboxEmail(Base):
    """Inbound or outbound email; inbound ones may be linked to the job they created."""
    __tablename__ = "inbox"

    id: int = Column(Integer, primary_key=True)
    direction: str = Column(String(20), nullable=False)
    from_address: str = Column(String(255), nullable=False)
    from_name = Column(String(255), nullable=True)
    to_address: str = Column(String(255), nullable=False)
    subject = Column(Text, nullable=True)
    text_body = Column(Text, nullable=True)
    message_id: str = Column(String(255), nullable=False)
    status: str = Column(String(20), nullable=False)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=True, index=True)
    attachments = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
