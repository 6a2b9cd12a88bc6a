"""Tests for services.catalog_crawler."""

from __future__ import annotations

import asyncio
import json

import pytest

import models
from services.catalog_crawler import CatalogCrawler, list_pdf_files, save_results_to_json
from services.exceptions import OracleError, PreconditionError


def card_from_attachment(attachments) -> dict:
    name = attachments[0]["data"].decode()
    return {
        "cardName": name,
        "feeStructure": {"annualFee": "Rs 500"},
        "eligibilityCriteria": {"age": "21-60"},
        "rewardSummary": [{"rewardCategory": "SHOPPING", "rewardStructures": [{"valueForCalculation": "5%"}]}],
        "benefits": [{"title": "Welcome voucher"}],
    }


@pytest.fixture
def card_dir(tmp_path):
    for name in ["a_card", "b_card", "c_card"]:
        (tmp_path / f"{name}.pdf").write_bytes(name.encode())
    return tmp_path


@pytest.fixture
def events():
    return []


@pytest.fixture
def crawler(db_session, fake_gemini, events):
    def responder(prompt, attachments):
        events.append(("analyze", attachments[0]["data"].decode()))
        return card_from_attachment(attachments)

    async def fake_sleep(seconds):
        events.append(("sleep", seconds))

    fake_gemini.responder = responder
    return CatalogCrawler(db_session, fake_gemini, sleep=fake_sleep)


class TestProcessDirectory:
    def test_sequential_batches_with_delay_between(self, crawler, card_dir, events):
        results = asyncio.run(crawler.process_directory(str(card_dir)))

        assert [result["cardName"] for result in results] == ["a_card", "b_card", "c_card"]
        assert events == [
            ("analyze", "a_card"),
            ("sleep", 2.0),
            ("analyze", "b_card"),
            ("sleep", 2.0),
            ("analyze", "c_card"),
        ]

    def test_sends_pdf_inline(self, crawler, card_dir, fake_gemini):
        asyncio.run(crawler.process_directory(str(card_dir)))
        attachment = fake_gemini.calls[0]["attachments"][0]
        assert attachment["mime_type"] == "application/pdf"
        assert attachment["data"] == b"a_card"

    def test_only_pdf_files_are_selected(self, crawler, tmp_path):
        (tmp_path / "card.PDF").write_bytes(b"upper_card")
        (tmp_path / "notes.txt").write_text("not a card")
        (tmp_path / "scan.pdf.bak").write_bytes(b"backup")
        (tmp_path / "nested.pdf").mkdir()

        results = asyncio.run(crawler.process_directory(str(tmp_path)))
        assert [result["cardName"] for result in results] == ["upper_card"]

    def test_directory_without_pdfs_returns_empty_list(self, crawler, tmp_path, events):
        (tmp_path / "readme.md").write_text("no cards")
        assert asyncio.run(crawler.process_directory(str(tmp_path))) == []
        assert events == []

    def test_missing_directory_is_hard_failure(self, crawler, tmp_path):
        with pytest.raises(PreconditionError, match="Directory not found"):
            asyncio.run(crawler.process_directory(str(tmp_path / "missing")))

    def test_failed_file_becomes_none(self, crawler, card_dir, fake_gemini, events):
        def responder(prompt, attachments):
            name = attachments[0]["data"].decode()
            events.append(("analyze", name))
            if name == "b_card":
                return OracleError("Failed to generate content: 429")
            return card_from_attachment(attachments)

        fake_gemini.responder = responder
        results = asyncio.run(crawler.process_directory(str(card_dir)))

        assert results[0]["cardName"] == "a_card"
        assert results[1] is None
        assert results[2]["cardName"] == "c_card"
        assert events.count(("sleep", 2.0)) == 2

    def test_larger_batches_share_one_delay(self, db_session, fake_gemini, card_dir, events):
        async def fake_sleep(seconds):
            events.append(("sleep", seconds))

        fake_gemini.responder = lambda prompt, attachments: card_from_attachment(attachments)
        crawler = CatalogCrawler(db_session, fake_gemini, batch_size=2, batch_delay_seconds=0.5, sleep=fake_sleep)

        results = asyncio.run(crawler.process_directory(str(card_dir)))
        assert len(results) == 3
        assert events == [("sleep", 0.5)]


class TestCatalogStorage:
    def test_results_are_stored_in_catalog(self, crawler, card_dir, db_session):
        results = asyncio.run(crawler.process_directory(str(card_dir)))

        entries = db_session.query(models.CardCatalogEntry).order_by(models.CardCatalogEntry.card_name).all()
        assert [entry.card_name for entry in entries] == ["a_card", "b_card", "c_card"]
        assert all(entry.is_active for entry in entries)
        assert entries[0].reward_summary[0]["rewardCategory"] == "SHOPPING"
        assert results[0]["rewardCategories"] == ["SHOPPING"]

    def test_reprocessing_updates_existing_entries(self, crawler, card_dir, db_session):
        asyncio.run(crawler.process_directory(str(card_dir)))
        asyncio.run(crawler.process_directory(str(card_dir)))
        assert db_session.query(models.CardCatalogEntry).count() == 3


class TestSaveResults:
    def test_writes_pretty_printed_array(self, tmp_path):
        output = tmp_path / "out" / "nested" / "cards.json"
        results = [{"cardName": "A", "benefits": []}, None]

        response = save_results_to_json(results, str(output))

        assert response == {
            "success": True,
            "message": f"Results saved to {output}",
            "totalRecords": 2,
        }
        text = output.read_text()
        assert json.loads(text) == results
        assert '\n  {\n    "cardName": "A"' in text


def test_list_pdf_files_is_sorted(tmp_path):
    for name in ["b.pdf", "a.pdf", "c.PDF"]:
        (tmp_path / name).write_bytes(b"x")
    assert [path.name for path in list_pdf_files(str(tmp_path))] == ["a.pdf", "b.pdf", "c.PDF"]
