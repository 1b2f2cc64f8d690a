import uuid

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True, index=True)
    department = Column(String, nullable=True)
    role = Column(String, nullable=False, default="user")
    password_hash = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    documents = relationship("Document", back_populates="owner")


class Document(Base):
    __tablename__ = "documents"

    id = Column(String, primary_key=True, default=new_id)
    title = Column(String, nullable=False)
    document_type = Column(String, nullable=False, index=True)
    document_number = Column(String, nullable=True)
    issuer = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    issue_date = Column(Date, nullable=False)
    expiry_date = Column(Date, nullable=False, index=True)
    # Explicit status only ("Renewed"); everything else is derived from expiry_date
    status_override = Column(String, nullable=True)
    file_path = Column(String, nullable=True)  # path under UPLOAD_DIR
    file_name = Column(String, nullable=True)  # original client file name
    file_size = Column(Integer, nullable=True)
    uploaded_by = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    owner = relationship("User", back_populates="documents", lazy="joined")

    __mapper_args__ = {"version_id_col": version}
