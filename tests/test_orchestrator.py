"""Integration tests for the ledger and assistant flows."""

import asyncio
from datetime import date

import pytest

from kakeibo.agents import ReceiptScannerAgent, SalesInfoAgent, SavingsAdvisorAgent
from kakeibo.aggregation import UnclassifiedCategoryError
from kakeibo.config import GeminiSettings, Settings
from kakeibo.models.audit import AuditEventType
from kakeibo.models.records import Category, MonthSelector
from kakeibo.orchestrator import AssistantFlow, LedgerFlow, create_app_components
from kakeibo.services.storage import EXPENSES_KEY, InMemoryStorage
from kakeibo.store import RecordStore
from kakeibo.validation import RecordValidator

from conftest import FakeModel, make_photo, text_response


MARCH_2024 = MonthSelector(year=2024, month=3)


@pytest.fixture
def ledger_flow(store, app_settings, audit_logger):
    return LedgerFlow(store, validator=RecordValidator(app_settings), audit_logger=audit_logger)


def assistant_flow(store, app_settings, audit_logger, model=None, api_key="test-key"):
    settings = GeminiSettings(api_key=api_key, max_attempts=1)
    return AssistantFlow(
        store,
        savings_agent=SavingsAdvisorAgent(settings, model=model, audit_logger=audit_logger),
        receipt_agent=ReceiptScannerAgent(settings, model=model, audit_logger=audit_logger),
        sales_agent=SalesInfoAgent(settings, model=model, audit_logger=audit_logger),
        app_settings=app_settings,
        audit_logger=audit_logger,
    )


class TestLedgerFlow:
    """Tests for LedgerFlow."""

    def test_submit_expense_saves(self, ledger_flow, storage):
        expense, result = ledger_flow.submit_expense("1000", "2024-03-05", "Food", "Lunch")
        assert result.is_valid
        assert ledger_flow.store.expenses == [expense]
        assert storage.read(EXPENSES_KEY) is not None

    def test_invalid_expense_never_reaches_store(self, ledger_flow, audit_logger):
        expense, result = ledger_flow.submit_expense("0", "2024-03-05", "Food", "Lunch")
        assert expense is None
        assert result.has_errors
        assert ledger_flow.store.expenses == []
        event = audit_logger.recent_events()[0]
        assert event.event_type == AuditEventType.VALIDATION_FAILED

    def test_edit_expense(self, ledger_flow):
        expense, _ = ledger_flow.submit_expense(1000, "2024-03-05", "Food", "Lunch")
        edited, result = ledger_flow.submit_expense(
            1200, "2024-03-05", "Eating Out", "Lunch out", expense_id=expense.id
        )
        assert result.is_valid
        assert edited.id == expense.id
        assert ledger_flow.store.get_expense(expense.id).category == "Eating Out"

    def test_edit_from_prefill_replaces_in_place(self, ledger_flow):
        expense, _ = ledger_flow.submit_expense(1000, "2024-03-05", "Food", "Lunch")
        ledger_flow.submit_expense(500, "2024-03-06", "Food", "Snack")
        prefill = expense.as_prefill()

        edited, result = ledger_flow.submit_expense(
            1100, prefill["date"], prefill["category"], prefill["description"],
            expense_id=expense.id,
        )
        assert result.is_valid
        assert len(ledger_flow.store.expenses) == 2
        assert ledger_flow.store.get_expense(expense.id).amount == 1100

    def test_edit_missing_expense(self, ledger_flow):
        edited, result = ledger_flow.submit_expense(
            1200, "2024-03-05", "Food", "Lunch", expense_id="gone"
        )
        assert edited is None
        assert result.messages_for("id") == ["This expense no longer exists"]

    def test_income_lifecycle(self, ledger_flow):
        income, _ = ledger_flow.submit_income(250000, "2024-03-25", "Salary")
        edited, _ = ledger_flow.submit_income(260000, "2024-03-25", "", income_id=income.id)
        assert edited.amount == 260000
        assert ledger_flow.delete_income(income.id) is True
        assert ledger_flow.delete_income(income.id) is False

        missing, result = ledger_flow.submit_income(1, "2024-03-25", "", income_id="gone")
        assert missing is None
        assert result.has_errors

    def test_monthly_summary(self, ledger_flow):
        ledger_flow.submit_expense(1000, "2024-03-05", "Food", "Groceries")
        ledger_flow.submit_expense(2000, "2024-03-10", "Housing", "Rent")
        ledger_flow.submit_income(5000, "2024-03-01", "")
        ledger_flow.save_budgets(2000, {"Food": 500})

        summary = ledger_flow.monthly_summary(MARCH_2024)
        assert summary.total_spent == 3000
        assert summary.balance == 2000
        assert summary.remaining_budget == -1000
        assert summary.budget_progress == pytest.approx(150.0)

    def test_unclassified_category_is_logged(self, audit_logger, app_settings):
        storage = InMemoryStorage({
            EXPENSES_KEY: '[{"id": "a", "date": "2024-03-02", "amount": 500, "category": "Pets"}]',
        })
        store = RecordStore(storage, audit_logger=audit_logger)
        flow = LedgerFlow(store, RecordValidator(app_settings), audit_logger)

        summary = flow.monthly_summary(MARCH_2024)
        assert summary.variable_cost == 500
        event = audit_logger.recent_events()[0]
        assert event.event_type == AuditEventType.UNCLASSIFIED_CATEGORY
        assert event.entity_id == "Pets"

    def test_strict_categories_fail_loudly(self, audit_logger, app_settings):
        storage = InMemoryStorage({
            EXPENSES_KEY: '[{"id": "a", "date": "2024-03-02", "amount": 500, "category": "Pets"}]',
        })
        store = RecordStore(storage, audit_logger=audit_logger)
        flow = LedgerFlow(
            store, RecordValidator(app_settings), audit_logger, strict_categories=True
        )

        with pytest.raises(UnclassifiedCategoryError) as exc_info:
            flow.monthly_summary(MARCH_2024)
        assert exc_info.value.label == "Pets"
        assert exc_info.value.expense_id == "a"
        event = audit_logger.recent_events()[0]
        assert event.event_type == AuditEventType.UNCLASSIFIED_CATEGORY

        # other months are unaffected
        assert flow.monthly_summary(MonthSelector(year=2024, month=4)).total_spent == 0

    def test_rejected_budgets_keep_previous(self, ledger_flow):
        ledger_flow.save_budgets(50000, {})
        budgets, result = ledger_flow.save_budgets("-5", {})
        assert budgets is None
        assert result.has_errors
        assert ledger_flow.store.budgets.overall == 50000

    def test_fixed_costs(self, ledger_flow):
        template, result = ledger_flow.submit_fixed_cost(80000, Category.HOUSING, "Rent")
        assert result.is_valid

        edited, _ = ledger_flow.submit_fixed_cost(
            82000, "Housing", "Rent", template_id=template.id
        )
        assert edited.id == template.id

        posted = ledger_flow.post_fixed_costs(MARCH_2024)
        assert [e.amount for e in posted] == [82000]
        assert ledger_flow.post_fixed_costs(MARCH_2024) == []

        summary = ledger_flow.monthly_summary(MARCH_2024)
        assert summary.fixed_cost == 82000

        assert ledger_flow.delete_fixed_cost(template.id) is True
        missing, result = ledger_flow.submit_fixed_cost(1, "Car", "", template_id=template.id)
        assert missing is None
        assert result.messages_for("id") == ["This fixed cost no longer exists"]

    def test_share_text(self, ledger_flow):
        ledger_flow.submit_expense(1000, "2024-03-05", "Food", "Groceries")
        text = ledger_flow.share_text(MARCH_2024)
        assert text.splitlines()[0] == "Kakeibo report for 2024年3月"
        assert "- Food: ¥1,000 (100%)" in text


class TestAssistantFlow:
    """Tests for AssistantFlow."""

    def test_savings_tips_use_month_records(self, store, app_settings, audit_logger):
        model = FakeModel([text_response("Tips")])
        flow = assistant_flow(store, app_settings, audit_logger, model=model)
        LedgerFlow(store, RecordValidator(app_settings), audit_logger).submit_expense(
            777, "2024-03-05", "Beauty", "Haircut"
        )
        LedgerFlow(store, RecordValidator(app_settings), audit_logger).submit_expense(
            888, "2024-02-05", "Beauty", "Old haircut"
        )

        assert asyncio.run(flow.savings_tips(MARCH_2024)) == "Tips"
        prompt = model.calls[0][0]
        assert "¥777" in prompt
        assert "¥888" not in prompt

    def test_scan_receipt(self, store, app_settings, audit_logger, receipt_photo):
        model = FakeModel([text_response(
            '{"amount": 640, "date": "2024-03-05", "description": "Bakery", "category": "Food"}'
        )])
        flow = assistant_flow(store, app_settings, audit_logger, model=model)

        extraction, message = asyncio.run(flow.scan_receipt(receipt_photo, "receipt.jpg", "image/jpeg"))
        assert extraction.amount == 640
        assert message == "Receipt read. Please check the details before saving."
        assert store.expenses == []

    def test_scan_receipt_notes_poor_photo(self, store, app_settings, audit_logger):
        model = FakeModel([text_response('{"amount": 300, "category": "Food"}')])
        flow = assistant_flow(store, app_settings, audit_logger, model=model)

        extraction, message = asyncio.run(
            flow.scan_receipt(make_photo(dark=True), "dark.jpg", "image/jpeg")
        )
        assert extraction.amount == 300
        assert "The photo is very dark" in message

    def test_scan_receipt_sends_jpeg(self, store, app_settings, audit_logger):
        model = FakeModel([text_response('{"amount": 300}')])
        flow = assistant_flow(store, app_settings, audit_logger, model=model)

        asyncio.run(flow.scan_receipt(make_photo(fmt="PNG"), "r.png", "image/png"))
        contents, _ = model.calls[0]
        assert contents[1]["mime_type"] == "image/jpeg"
        assert contents[1]["data"][:2] == b"\xff\xd8"

    def test_scan_receipt_rejects_unreadable_file(self, store, app_settings, audit_logger):
        model = FakeModel([])
        flow = assistant_flow(store, app_settings, audit_logger, model=model)

        extraction, message = asyncio.run(flow.scan_receipt(b"not an image", "r.jpg", "image/jpeg"))
        assert extraction is None
        assert message.startswith("This file could not be opened as an image")
        assert model.calls == []

    def test_scan_receipt_rejects_bad_type(self, store, app_settings, audit_logger):
        model = FakeModel([])
        flow = assistant_flow(store, app_settings, audit_logger, model=model)

        extraction, message = asyncio.run(flow.scan_receipt(b"%PDF", "receipt.pdf", "application/pdf"))
        assert extraction is None
        assert message.startswith("Unsupported image type")
        assert model.calls == []

    def test_scan_receipt_rejects_large_file(self, store, app_settings, audit_logger):
        flow = assistant_flow(store, app_settings, audit_logger, model=FakeModel([]))
        image, message = flow.check_receipt_image(
            "big.png", app_settings.max_upload_size_bytes + 1, "image/png"
        )
        assert image is None
        assert "too large" in message

    def test_scan_receipt_failure_message(self, store, app_settings, audit_logger, receipt_photo):
        flow = assistant_flow(
            store, app_settings, audit_logger, model=FakeModel([RuntimeError("boom")])
        )
        extraction, message = asyncio.run(flow.scan_receipt(receipt_photo, "r.jpg", "image/jpeg"))
        assert extraction is None
        assert message.startswith("Could not read the receipt")

    def test_scan_receipt_without_key(self, store, app_settings, audit_logger, receipt_photo):
        flow = assistant_flow(store, app_settings, audit_logger, api_key="")
        extraction, message = asyncio.run(flow.scan_receipt(receipt_photo, "r.jpg", "image/jpeg"))
        assert extraction is None
        assert "currently unavailable" in message

    def test_sales_info_requires_one_location(self, store, app_settings, audit_logger):
        model = FakeModel([])
        flow = assistant_flow(store, app_settings, audit_logger, model=model)

        for kwargs in ({}, {"address": "  "}, {"latitude": 35.0}):
            info, message = asyncio.run(flow.sales_info(**kwargs))
            assert info is None
            assert message == "Please give either an address or your current location."
        assert model.calls == []

    def test_sales_info(self, store, app_settings, audit_logger):
        flow = assistant_flow(
            store, app_settings, audit_logger, model=FakeModel([text_response("Eggs ¥99")])
        )
        info, message = asyncio.run(flow.sales_info(latitude=35.68, longitude=139.76))
        assert info.text == "Eggs ¥99"
        assert message == ""

    def test_sales_info_failure(self, store, app_settings, audit_logger):
        flow = assistant_flow(
            store, app_settings, audit_logger, model=FakeModel([RuntimeError("down")])
        )
        info, message = asyncio.run(flow.sales_info(address="Tokyo"))
        assert info is None
        assert message == "Could not fetch sale information. Please try again later."


class TestCreateAppComponents:
    """Tests for the component factory."""

    def test_wires_shared_store(self):
        storage = InMemoryStorage()
        ledger_flow, assistant, store = create_app_components(storage=storage)
        assert ledger_flow.store is store

        ledger_flow.submit_expense(1000, date(2024, 3, 5), "Food", "Lunch")
        assert len(store.expenses) == 1
        assert storage.read(EXPENSES_KEY) is not None

    def test_debug_mode_makes_categories_strict(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("DEBUG_MODE", "true")
        storage = InMemoryStorage({
            EXPENSES_KEY: '[{"id": "a", "date": "2024-03-02", "amount": 500, "category": "Pets"}]',
        })
        ledger_flow, _, _ = create_app_components(storage=storage, settings=Settings())

        with pytest.raises(UnclassifiedCategoryError):
            ledger_flow.monthly_summary(MARCH_2024)

    def test_lenient_categories_by_default(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("DEBUG_MODE", raising=False)
        storage = InMemoryStorage({
            EXPENSES_KEY: '[{"id": "a", "date": "2024-03-02", "amount": 500, "category": "Pets"}]',
        })
        ledger_flow, _, _ = create_app_components(storage=storage, settings=Settings())

        summary = ledger_flow.monthly_summary(MARCH_2024)
        assert summary.unclassified_categories == ["Pets"]
