"""
AI Agent for Household Ledger

DESIGN DECISION: Gemini is a best-effort helper, never a dependency of
the primary workflow. Every call has a fixed fallback:

1. categorize()        -> the default category ("Other")
2. analyze_spending()  -> a static "unavailable" message
3. parse_receipt_image() -> a failed ReceiptScanResult

A missing API key means the model is never configured and every call
takes its fallback. Failures are logged as external service errors and
never raised to the caller, so adding an expense always succeeds.

The model only labels and summarizes data the user already entered; it
never writes to the ledger itself.
"""

import base64
import json
from typing import Any, Optional, Sequence

import google.generativeai as genai

from household_ledger.audit import AuditLogger
from household_ledger.config import get_settings
from household_ledger.models.household import (
    DEFAULT_CATEGORIES,
    Expense,
    ReceiptData,
    ReceiptScanResult,
)


ANALYSIS_UNAVAILABLE = "Spending analysis is not available right now."
NO_EXPENSES_TO_ANALYZE = "No expenses to analyze yet."

# Keep the analysis prompt inside the token budget
MAX_ANALYZED_EXPENSES = 200


class ExternalServiceUnavailable(Exception):
    """The AI service is not configured or did not answer usefully."""
    pass


def _extract_json(text: str) -> str:
    """Strip markdown fences and surrounding prose from a JSON answer."""
    cleaned = text.replace("```json", "").replace("```", "").strip()
    start = cleaned.find("{")
    end = cleaned.rfind("}") + 1
    if start < 0 or end <= start:
        raise ExternalServiceUnavailable("No JSON object in model response")
    return cleaned[start:end]


class ExpenseAgent:
    """
    Gemini-backed categorization, spending analysis and receipt parsing.

    BOUNDARIES:
    - NEVER persists data
    - NEVER raises to the caller
    - ALWAYS returns something the UI can show
    """

    def __init__(
        self,
        model: Optional[Any] = None,
        audit_logger: Optional[AuditLogger] = None,
        default_category: Optional[str] = None,
    ):
        self._audit_logger = audit_logger
        self._default_category = default_category or get_settings().app.default_category
        self._model = model if model is not None else self._configure_genai()

    def _configure_genai(self) -> Optional[Any]:
        """Configure Google Generative AI; None when no API key is set."""
        try:
            settings = get_settings().gemini
        except Exception:
            return None
        genai.configure(api_key=settings.api_key)
        return genai.GenerativeModel(
            model_name=settings.model_name,
            generation_config={
                "temperature": settings.temperature,
                "max_output_tokens": settings.max_tokens,
            }
        )

    @property
    def available(self) -> bool:
        return self._model is not None

    async def _generate(self, contents: Any) -> str:
        if self._model is None:
            raise ExternalServiceUnavailable("Gemini API key is not configured")
        try:
            response = await self._model.generate_content_async(contents)
            text = (response.text or "").strip()
        except Exception as e:
            raise ExternalServiceUnavailable(f"Gemini request failed: {e}") from e
        if not text:
            raise ExternalServiceUnavailable("Empty response from Gemini")
        return text

    def _log_unavailable(self, error: Exception) -> None:
        if self._audit_logger:
            self._audit_logger.log_external_service_error(
                service="gemini",
                error_message=str(error),
            )

    async def categorize(
        self,
        product: str,
        store: str,
        categories: Optional[Sequence[str]] = None,
    ) -> str:
        """
        Pick one category name for a purchase.

        The answer must be one of the offered names (case-insensitive);
        anything else falls back to the default category.
        """
        names = list(categories or [c.name for c in DEFAULT_CATEGORIES])
        prompt = (
            f'Categorize the product "{product}" bought at "{store}" into exactly '
            f"one of these categories: {', '.join(names)}. "
            "Return ONLY the category name."
        )
        try:
            text = await self._generate(prompt)
        except ExternalServiceUnavailable as e:
            self._log_unavailable(e)
            return self._default_category

        answer = text.splitlines()[0].strip().strip('."\'*').lower()
        for name in names:
            if name.lower() == answer:
                return name
        return self._default_category

    async def analyze_spending(self, expenses: Sequence[Expense]) -> str:
        """Three short saving tips based on recent expenses."""
        if not expenses:
            return NO_EXPENSES_TO_ANALYZE

        summary = "\n".join(
            f"{e.date.split('T')[0]}: {e.product} ({e.total})"
            for e in list(expenses)[:MAX_ANALYZED_EXPENSES]
        )
        prompt = (
            "Analyze these recent household expenses and give 3 short, practical "
            "tips for saving money. Be direct and friendly.\n\n"
            f"{summary}"
        )
        try:
            return await self._generate(prompt)
        except ExternalServiceUnavailable as e:
            self._log_unavailable(e)
            return ANALYSIS_UNAVAILABLE

    async def parse_receipt_image(
        self,
        image_bytes: bytes,
        mime_type: str = "image/jpeg",
    ) -> ReceiptScanResult:
        """
        Read store, date and line items from a receipt photo.

        Quantity defaults to 1 when the receipt does not show one.
        """
        prompt = (
            "Analyze this receipt image. Extract the store name, date, and list "
            "of items purchased. For each item extract: product name, quantity "
            "(default to 1 if missing), unit price, and total price. Also assign "
            "a category to each item.\n"
            "Return the result in this JSON format:\n"
            '{"store": "Store Name", "date": "YYYY-MM-DD", "items": '
            '[{"product": "Item Name", "quantity": 1, "unitPrice": 10.00, '
            '"total": 10.00, "category": "Category"}]}\n'
            "Return ONLY raw JSON, no markdown blocks."
        )
        contents = [
            {
                "mime_type": mime_type,
                "data": base64.b64encode(image_bytes).decode("ascii"),
            },
            prompt,
        ]
        try:
            text = await self._generate(contents)
            data = json.loads(_extract_json(text))
            if not isinstance(data.get("items"), list):
                raise ExternalServiceUnavailable("Invalid JSON structure received")
            receipt = ReceiptData.model_validate(data)
        except (ExternalServiceUnavailable, ValueError) as e:
            self._log_unavailable(e)
            return ReceiptScanResult(success=False, error=str(e))

        return ReceiptScanResult(success=True, data=receipt)
