"""
Tests for the AI agent.

The Gemini model is replaced by a stub; every call must either return the
model's answer or its fixed fallback, never raise.
"""

import asyncio
from decimal import Decimal

from household_ledger.agents import ANALYSIS_UNAVAILABLE, ExpenseAgent
from household_ledger.agents.ai_agents import NO_EXPENSES_TO_ANALYZE
from household_ledger.audit import AuditLogger
from household_ledger.models.audit import AuditEventType
from household_ledger.models.household import Expense

from conftest import StubModel


def _agent(model):
    audit_logger = AuditLogger()
    return ExpenseAgent(model=model, audit_logger=audit_logger, default_category="Other"), audit_logger


class TestCategorize:
    """Tests for AI category suggestions."""

    def test_offered_name_is_accepted(self):
        agent, _ = _agent(StubModel(text="groceries."))
        result = asyncio.run(agent.categorize("Milk", "Coop", ["Groceries", "Home"]))
        assert result == "Groceries"

    def test_first_line_only(self):
        agent, _ = _agent(StubModel(text="**Home**\nBecause it is furniture"))
        assert asyncio.run(agent.categorize("Chair", "Ikea", ["Groceries", "Home"])) == "Home"

    def test_unknown_answer_falls_back(self):
        agent, _ = _agent(StubModel(text="Furniture"))
        assert asyncio.run(agent.categorize("Chair", "Ikea", ["Groceries", "Home"])) == "Other"

    def test_failure_falls_back_and_is_logged(self):
        agent, audit_logger = _agent(StubModel(error=TimeoutError("deadline")))
        assert asyncio.run(agent.categorize("Milk", "Coop")) == "Other"
        events = audit_logger.recent_events()
        assert events[0].event_type == AuditEventType.EXTERNAL_SERVICE_ERROR
        assert events[0].details["service"] == "gemini"

    def test_default_categories_are_offered(self):
        model = StubModel(text="Transport")
        agent, _ = _agent(model)
        assert asyncio.run(agent.categorize("Fuel", "Eni")) == "Transport"
        assert "Groceries" in model.calls[0]


class TestAnalyzeSpending:

    def test_no_expenses(self):
        model = StubModel(text="tips")
        agent, _ = _agent(model)
        assert asyncio.run(agent.analyze_spending([])) == NO_EXPENSES_TO_ANALYZE
        assert model.calls == []

    def test_returns_model_text(self):
        model = StubModel(text="1. Buy less coffee")
        agent, _ = _agent(model)
        expenses = [Expense(product="Coffee", total=Decimal("1.20"), store="Bar",
                            date="2024-03-10T08:00:00.000Z")]
        assert asyncio.run(agent.analyze_spending(expenses)) == "1. Buy less coffee"
        assert "2024-03-10: Coffee (1.20)" in model.calls[0]

    def test_empty_answer_is_unavailable(self):
        agent, _ = _agent(StubModel(text="   "))
        expenses = [Expense(product="Coffee", total=Decimal("1"), store="Bar")]
        assert asyncio.run(agent.analyze_spending(expenses)) == ANALYSIS_UNAVAILABLE


class TestReceiptParsing:
    """Tests for receipt image parsing."""

    def test_parses_fenced_json(self):
        model = StubModel(text=(
            "```json\n"
            '{"store": "Coop", "date": "2024-03-10", "items": ['
            '{"product": "Milk", "quantity": 2, "unitPrice": 0.75, "total": 1.5, "category": "Groceries"},'
            '{"product": "Bread", "total": 2.1}]}\n'
            "```"
        ))
        agent, _ = _agent(model)
        result = asyncio.run(agent.parse_receipt_image(b"\xff\xd8fake", "image/jpeg"))
        assert result.success
        assert result.data.store == "Coop"
        assert [i.product for i in result.data.items] == ["Milk", "Bread"]
        assert result.data.items[1].quantity == Decimal("1")
        image_part = model.calls[0][0]
        assert image_part["mime_type"] == "image/jpeg"

    def test_missing_items_is_a_failure(self):
        agent, _ = _agent(StubModel(text='{"store": "Coop"}'))
        result = asyncio.run(agent.parse_receipt_image(b"img"))
        assert not result.success
        assert result.error

    def test_not_json_is_a_failure(self):
        agent, _ = _agent(StubModel(text="I cannot read this receipt"))
        result = asyncio.run(agent.parse_receipt_image(b"img"))
        assert not result.success

    def test_unconfigured_agent(self, monkeypatch):
        """Test that a missing API key disables the agent without errors."""
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        agent = ExpenseAgent(default_category="Other")
        assert not agent.available
        assert asyncio.run(agent.categorize("Milk", "Coop")) == "Other"
        assert not asyncio.run(agent.parse_receipt_image(b"img")).success
