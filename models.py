from sqlalchemy import Column, Integer, String, Float, DateTime, Boolean, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base

class User(Base):
    __tablename__ = "user"

    user_id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(String, unique=True, nullable=False, index=True)
    link_token = Column(String, nullable=True)  # Token from the invitation link
    created = Column(DateTime, nullable=False, server_default=func.now())

    # Relationships
    document_uploads = relationship("DocumentUpload", back_populates="user")
    questionnaires = relationship("Questionnaire", back_populates="user")
    statement_analyses = relationship("StatementAnalysis", back_populates="user")


class DocumentUpload(Base):
    __tablename__ = "document_upload"

    upload_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.user_id"), nullable=False)
    card_bank = Column(String, nullable=False, default="Unknown")
    card_name = Column(String, nullable=False, default="Unknown")
    file_paths = Column(JSON, nullable=False, default=list)
    oracle_response = Column(JSON, nullable=True)  # Opaque processing status
    uploaded_at = Column(DateTime, nullable=False, server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="document_uploads")
    statement_analyses = relationship("StatementAnalysis", back_populates="document_upload")


class Questionnaire(Base):
    __tablename__ = "questionnaire"

    questionnaire_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.user_id"), nullable=False)
    spend_category = Column(JSON, nullable=False, default=list)
    has_credit_card = Column(Boolean, nullable=True)
    credit_limit = Column(Float, nullable=True)
    income_range = Column(String, nullable=True)
    submitted_at = Column(DateTime, nullable=False, server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="questionnaires")


class StatementAnalysis(Base):
    __tablename__ = "statement_analysis"

    analysis_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.user_id"), nullable=False, index=True)
    upload_id = Column(Integer, ForeignKey("document_upload.upload_id"), nullable=False)
    basic_features = Column(JSON, nullable=False)
    transaction_metrics = Column(JSON, nullable=False)
    category_breakdown = Column(JSON, nullable=False, default=dict)
    transactions = Column(JSON, nullable=True)
    top_categories = Column(JSON, nullable=False, default=list)
    user_persona_indicators = Column(JSON, nullable=True)
    financial_behavior = Column(JSON, nullable=True)
    analyzed_at = Column(DateTime, nullable=False, server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="statement_analyses")
    document_upload = relationship("DocumentUpload", back_populates="statement_analyses")


class CardCatalogEntry(Base):
    __tablename__ = "card_catalog_entry"

    card_id = Column(Integer, primary_key=True, index=True)
    card_name = Column(String, unique=True, nullable=False, index=True)
    bank_name = Column(String, nullable=True)
    image = Column(String, nullable=True)
    fee_structure = Column(JSON, nullable=False, default=dict)
    eligibility_criteria = Column(JSON, nullable=False, default=dict)
    reward_summary = Column(JSON, nullable=False, default=list)
    benefits = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    analyzed_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
