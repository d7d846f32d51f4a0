"""
AI Agents for Kakeibo

Three thin request/response wrappers around Gemini:

1. SAVINGS ADVISOR:
   - IN: this month's expenses and incomes
   - OUT: friendly markdown advice
   - NEVER raises; every failure becomes a fixed message

2. RECEIPT SCANNER:
   - IN: a receipt photo
   - OUT: a PROPOSED expense (amount, date, description, category)
   - The category is always a taxonomy member ("Other" when unsure)
   - Failure raises ReceiptAnalysisError so the UI can tell it apart
     from an empty result

3. SALES INFO:
   - IN: an address OR a latitude/longitude pair (validated before any call)
   - OUT: advice text plus the web pages it was grounded on

CRITICAL BOUNDARIES:
- Agents never touch the record store. The user saves (or discards)
  whatever an agent proposes.
- Without an API key every feature degrades to a fixed
  "unavailable" message instead of crashing.
"""

import json
from datetime import date
from typing import Any, Optional, Sequence
from uuid import UUID

import google.generativeai as genai
from google.generativeai import protos
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from kakeibo.audit import AuditLogger
from kakeibo.config import GeminiSettings, get_settings
from kakeibo.models.records import (
    Category,
    Expense,
    Income,
    MonthSelector,
    ReceiptExtraction,
    SalesInfo,
    SalesLocation,
    SalesSource,
)


SAVINGS_TIPS_FALLBACK = (
    "Sorry, I'm having trouble coming up with tips right now. "
    "Please try again a little later."
)
RECEIPT_FAILED_MESSAGE = (
    "Could not read the receipt. Check that the photo is sharp, "
    "or try again later."
)
SALES_FAILED_MESSAGE = "Could not fetch sale information. Please try again later."

# Gemini 2.x models only accept the google_search tool for web grounding
SEARCH_GROUNDING_TOOLS = [protos.Tool(google_search=protos.Tool.GoogleSearch())]


def unavailable_message(feature: str) -> str:
    """Message shown for every AI feature when no API key is configured."""
    return (
        f"AI {feature} is currently unavailable. "
        "The API key may not be configured."
    )


class AgentError(Exception):
    """Base exception for AI collaborator failures."""
    pass


class AIUnavailableError(AgentError):
    """No API key configured; the feature is switched off."""
    pass


class ReceiptAnalysisError(AgentError):
    """The receipt could not be analyzed."""
    pass


class SalesInfoError(AgentError):
    """Sale information could not be fetched."""
    pass


def _extract_json(text: str) -> dict:
    """Find and parse the JSON object in a model response."""
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        raise ValueError("No JSON object in response")
    data = json.loads(text[start:end])
    if not isinstance(data, dict):
        raise ValueError("Response JSON is not an object")
    return data


def _format_yen(amount: int) -> str:
    return f"¥{amount:,}"


class _GeminiAgent:
    """
    Shared Gemini plumbing.

    The model can be injected (tests pass a stand-in); otherwise it is
    built from GeminiSettings when an API key is present.
    """

    feature = "assistant"

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Any = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._settings = settings or get_settings().gemini
        self._audit_logger = audit_logger or AuditLogger()
        self._model = model
        if self._model is None and self._settings.is_configured:
            self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    @property
    def is_available(self) -> bool:
        return self._model is not None

    async def _generate(self, contents: Any, **kwargs: Any) -> Any:
        """Call the model, retrying transient failures."""
        response = None
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._settings.max_attempts),
            wait=wait_exponential(multiplier=1, min=2, max=10),
            reraise=True,
        ):
            with attempt:
                response = await self._model.generate_content_async(contents, **kwargs)
        return response


class SavingsAdvisorAgent(_GeminiAgent):
    """
    Produces savings tips for one month.

    Always returns text: advice, an encouragement to start recording,
    the "unavailable" message, or an apology.
    """

    feature = "savings tips"

    def _build_prompt(
        self,
        expenses: Sequence[Expense],
        incomes: Sequence[Income],
        month: MonthSelector,
    ) -> str:
        month_label = month.display_label

        if expenses:
            formatted_expenses = "\n".join(
                f"- Category: {e.category}, Amount: {_format_yen(e.amount)}, "
                f"Note: {e.description or '-'}"
                for e in expenses
            )
        else:
            formatted_expenses = "No expenses were recorded this month."

        if incomes:
            formatted_incomes = "\n".join(
                f"- Amount: {_format_yen(i.amount)}, Note: {i.description or '-'}"
                for i in incomes
            )
        else:
            formatted_incomes = "No income was recorded this month."

        return f"""You are "Sensei Setsuyaku", a friendly, encouraging and sharp household finance advisor.
Your goal is to help the user save money by looking at their income and spending habits.
Never be critical or harsh. Keep the tone positive and uplifting.

Based on the income and expenses for {month_label} below, suggest 3 to 5 practical,
personalized savings tips. Present them as a markdown list.
Open with a friendly greeting and close with a word of encouragement.
Write your answer in {self._settings.response_language}.

Income for {month_label}:
{formatted_incomes}

Expenses for {month_label}:
{formatted_expenses}

Look for patterns and give concrete, creative advice. For example, if food spending is high,
suggest batch cooking or supermarket apps; if subscriptions add up, suggest reviewing them.
If spending exceeds income, mention it gently."""

    async def get_savings_tips(
        self,
        expenses: Sequence[Expense],
        incomes: Sequence[Income],
        month: MonthSelector,
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """
        Ask for savings tips based on one month of records.

        Callers pass records already filtered to `month`.
        """
        if not self.is_available:
            self._audit_logger.log_ai_unavailable(self.feature)
            return unavailable_message(self.feature)

        if not expenses and not incomes:
            return (
                f"Start by adding an income or expense for {month.display_label}. "
                "Once a few records are in, I can suggest savings tips made for you!"
            )

        prompt = self._build_prompt(expenses, incomes, month)

        try:
            response = await self._generate(prompt)
            text = (response.text or "").strip()
            if not text:
                raise ValueError("Empty response")
        except Exception as e:
            self._audit_logger.log_ai_request_failed(self.feature, str(e), correlation_id)
            return SAVINGS_TIPS_FALLBACK

        self._audit_logger.log_ai_request_completed(self.feature, correlation_id)
        return text


class ReceiptScannerAgent(_GeminiAgent):
    """
    Reads a receipt photo into a proposed expense.

    The result only pre-fills the expense form.
    """

    feature = "receipt analysis"

    def _build_prompt(self, today: date) -> str:
        categories = ", ".join(c.value for c in Category)
        return f"""You are a smart receipt scanner. Analyze the receipt image and extract, as JSON:
- "amount": the total amount paid, as a number in yen.
- "date": the transaction date as YYYY-MM-DD. If no date is visible, use today's date: {today.isoformat()}.
- "description": a short description such as the store name or the most prominent item.
- "category": the expense category. Choose one of: {categories}.
  Pick the most relevant one, and use "{Category.OTHER.value}" if nothing fits.

Respond with ONLY a JSON object in this exact format:
{{"amount": 1280, "date": "{today.isoformat()}", "description": "Store name", "category": "{Category.FOOD.value}"}}"""

    @staticmethod
    def _to_extraction(data: dict, today: date) -> ReceiptExtraction:
        amount = None
        raw_amount = data.get("amount")
        if raw_amount is not None:
            parsed = round(float(str(raw_amount).replace(",", "").replace("¥", "")))
            amount = parsed if parsed > 0 else None

        purchased_on = today
        raw_date = data.get("date")
        if isinstance(raw_date, str):
            try:
                purchased_on = date.fromisoformat(raw_date.strip())
            except ValueError:
                purchased_on = today

        description = data.get("description")
        if description is not None:
            description = str(description)[:500]

        return ReceiptExtraction(
            amount=amount,
            purchased_on=purchased_on,
            description=description,
            category=data.get("category"),
        )

    async def analyze_receipt(
        self,
        image_bytes: bytes,
        mime_type: str = "image/jpeg",
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ReceiptExtraction:
        """
        Extract a proposed expense from a receipt image.

        Raises:
            AIUnavailableError: No API key configured
            ReceiptAnalysisError: The call or the parsing failed
        """
        if not self.is_available:
            self._audit_logger.log_ai_unavailable(self.feature)
            raise AIUnavailableError(unavailable_message(self.feature))

        today = today or date.today()
        contents = [
            self._build_prompt(today),
            {"mime_type": mime_type, "data": image_bytes},
        ]

        try:
            response = await self._generate(
                contents,
                generation_config={
                    "temperature": 0.1,  # Low temperature for consistency
                    "response_mime_type": "application/json",
                },
            )
            extraction = self._to_extraction(_extract_json(response.text), today)
        except Exception as e:
            self._audit_logger.log_ai_request_failed(self.feature, str(e), correlation_id)
            raise ReceiptAnalysisError(RECEIPT_FAILED_MESSAGE) from e

        self._audit_logger.log_ai_request_completed(self.feature, correlation_id)
        return extraction


class SalesInfoAgent(_GeminiAgent):
    """Looks up supermarket sales near a location using search grounding."""

    feature = "sale search"

    @staticmethod
    def _build_prompt(location: SalesLocation) -> str:
        if location.uses_coordinates:
            location_info = (
                f"[Current location]\nLatitude: {location.latitude}\n"
                f"Longitude: {location.longitude}"
            )
            location_scope = (
                "work out the prefecture and city containing this [Current location], "
                "and limit the search to that city or areas right next to it"
            )
        else:
            location_info = f"[Search area]\n{location.address}"
            location_scope = "limit the search to the area around this [Search area]"

        return f"""You are a smart shopping assistant who knows the local area well.
Using Google Search as much as possible, tell the user about concrete supermarket
sales and bargains near the location below.

{location_info}

Guidelines:
- Always {location_scope}.
- Name each supermarket along with its branch or rough location.
- List specific items on sale right now (e.g. "eggs for ¥99 today at ...").
- Include time-limited discounts such as evening markdowns if available.
- Bargain days or trends shared by nearby stores are also useful.

Write practical tips the user can act on right away, grouped by store, in markdown.
If no specific store information can be found for the area, suggest general
shopping strategies that would help there."""

    @staticmethod
    def _grounding_sources(response: Any) -> list[SalesSource]:
        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            return []
        metadata = getattr(candidates[0], "grounding_metadata", None)
        chunks = getattr(metadata, "grounding_chunks", None) or []

        sources: list[SalesSource] = []
        seen: set[str] = set()
        for chunk in chunks:
            web = getattr(chunk, "web", None)
            uri = getattr(web, "uri", None)
            if not uri or uri in seen:
                continue
            seen.add(uri)
            sources.append(SalesSource(uri=uri, title=getattr(web, "title", None) or None))
        return sources

    async def get_sales_info(
        self,
        location: SalesLocation,
        correlation_id: Optional[UUID] = None,
    ) -> SalesInfo:
        """
        Fetch sale information for a location.

        Without an API key this returns the "unavailable" text and no sources.

        Raises:
            SalesInfoError: The call failed
        """
        if not self.is_available:
            self._audit_logger.log_ai_unavailable(self.feature)
            return SalesInfo(text=unavailable_message(self.feature), sources=[])

        try:
            response = await self._generate(
                self._build_prompt(location),
                tools=SEARCH_GROUNDING_TOOLS,
            )
            info = SalesInfo(
                text=(response.text or "").strip(),
                sources=self._grounding_sources(response),
            )
        except Exception as e:
            self._audit_logger.log_ai_request_failed(self.feature, str(e), correlation_id)
            raise SalesInfoError(SALES_FAILED_MESSAGE) from e

        self._audit_logger.log_ai_request_completed(self.feature, correlation_id)
        return info
