"""
Shared fixtures for the CardMatch test suite.

Provides an in-memory SQLite session, a scripted stand-in for the Gemini
client, an API client wired to both, and small factories for statements,
customers and catalog cards.
"""

from __future__ import annotations

import os
import tempfile

# Settings are read at import time, so they must be in place first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTH_TOKEN"] = "test-api-token"
os.environ["API_PREFIX"] = "/api"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="cardmatch-uploads-")
os.environ.pop("ORACLE_TIMEOUT_SECONDS", None)

import asyncio
import copy
from typing import Any, Callable, Optional

import fitz
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models
from database import Base, get_db
from main import app
from services.gemini_service import get_gemini_service


# ── Gemini stand-in ───────────────────────────────────────────────────────────

class FakeGemini:
    """
    Scripted replacement for GeminiService.

    ``responder`` receives the prompt and attachments and returns the decoded
    JSON (or an exception instance to raise). It may be a coroutine function.
    """

    def __init__(self, responder: Optional[Callable[..., Any]] = None):
        self.responder = responder
        self.calls: list[dict] = []

    async def generate_json(self, prompt, attachments=None, temperature=0.1):
        self.calls.append({"prompt": prompt, "attachments": attachments})
        if self.responder is None:
            raise AssertionError("FakeGemini called without a responder")
        result = self.responder(prompt, attachments)
        if asyncio.iscoroutine(result):
            result = await result
        if isinstance(result, Exception):
            raise result
        return copy.deepcopy(result)


@pytest.fixture
def fake_gemini() -> FakeGemini:
    return FakeGemini()


# ── Database ──────────────────────────────────────────────────────────────────

@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def client(db_session, fake_gemini):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gemini_service] = lambda: fake_gemini
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict:
    return {"Authorization": "Bearer test-api-token"}


# ── Factories ─────────────────────────────────────────────────────────────────

@pytest.fixture
def make_pdf() -> Callable[[str], bytes]:
    """Build a one-page PDF with the given text."""

    def _make(text: str = "HDFC Bank credit card statement") -> bytes:
        doc = fitz.open()
        page = doc.new_page()
        page.insert_text((72, 72), text)
        data = doc.tobytes()
        doc.close()
        return data

    return _make


@pytest.fixture
def customer(db_session) -> models.User:
    user = models.User(customer_id="cust-0001", link_token="invite")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def sample_analysis() -> dict:
    """Oracle answer for a statement, including one empty category."""
    return {
        "basic_features": {
            "credit_limit": 200000,
            "available_credit": 150000,
            "bank_name": "HDFC Bank",
            "card_type": "Regalia",
            "statement_date": "2024-05-01",
        },
        "transaction_metrics": {
            "transaction_count": 12,
            "total_spend": 50000,
            "average_transaction_amount": 4166.67,
            "largest_transaction": 15000,
            "smallest_transaction": 120,
        },
        "category_breakdown": {
            "DINING": {"amount": 12000, "percentage": 24, "count": 5},
            "TRAVEL": {"amount": 30000, "percentage": 60, "count": 2, "brands": ["MakeMyTrip"]},
            "MOVIE": {"amount": 0, "percentage": 0, "count": 0},
            "GROCERY": {"amount": 8000, "percentage": 16, "count": 5},
        },
        "transactions": [
            {"date": "2024-04-03", "merchant": "MakeMyTrip", "amount": 15000, "category": "TRAVEL"},
        ],
        "top_categories": ["DINING", "MOVIE"],
        "user_persona_indicators": {"travel_lover": True, "food_enthusiast": True, "high_spender": False},
        "financial_behavior": {
            "utilization_level": "MEDIUM",
            "payment_behavior": "FULL",
            "spending_pattern": "REGULAR",
        },
    }


@pytest.fixture
def add_catalog_card(db_session) -> Callable[..., models.CardCatalogEntry]:
    def _add(card_name: str, is_active: bool = True, **fields) -> models.CardCatalogEntry:
        entry = models.CardCatalogEntry(
            card_name=card_name,
            bank_name=fields.get("bank_name", "HDFC Bank"),
            fee_structure=fields.get("fee_structure", {"annualFee": "Rs 1,000"}),
            eligibility_criteria=fields.get("eligibility_criteria", {"age": "21-60"}),
            reward_summary=fields.get("reward_summary", [
                {"rewardCategory": "DINING", "rewardStructures": [{"valueForCalculation": "5%", "notes": "Swiggy"}]},
            ]),
            benefits=fields.get("benefits", [{"title": "Lounge access"}]),
            is_active=is_active,
        )
        db_session.add(entry)
        db_session.commit()
        db_session.refresh(entry)
        return entry

    return _add


@pytest.fixture
def add_statement_analysis(db_session) -> Callable[..., models.StatementAnalysis]:
    def _add(user: models.User, category_breakdown: dict, top_categories=None) -> models.StatementAnalysis:
        upload = models.DocumentUpload(user_id=user.user_id, file_paths=["statement.pdf"])
        db_session.add(upload)
        db_session.commit()
        analysis = models.StatementAnalysis(
            user_id=user.user_id,
            upload_id=upload.upload_id,
            basic_features={"creditLimit": 200000},
            transaction_metrics={"transactionCount": 3, "totalSpend": 9000},
            category_breakdown=category_breakdown,
            top_categories=top_categories or list(category_breakdown),
        )
        db_session.add(analysis)
        db_session.commit()
        db_session.refresh(analysis)
        return analysis

    return _add
