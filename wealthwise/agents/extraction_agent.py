"""
Transaction Extraction Agent

DESIGN DECISION: Gemini is a black box that maps free text to a loosely
typed list of transaction guesses. This module is the single boundary
where that output is parsed and validated; nothing downstream ever sees
the raw response.

CRITICAL BOUNDARIES:
   - CAN: Propose candidate transactions from the user's text
   - CANNOT: Touch the ledger or any balance
   - CANNOT: Invent accounts (it only echoes an account name hint)

ATTEMPT POLICY (explicit, exactly one fallback):
   1. Primary: JSON mime type + strict response schema, response must be an array
   2. Fallback: same prompt + "strictly a JSON array", no schema;
      a single object is accepted and wrapped
   3. Both failed -> FAILURE outcome with zero candidates (never raised)
"""

import json
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Mapping, Optional

import google.generativeai as genai
import structlog

from wealthwise.config import get_settings
from wealthwise.ingestion.normalizer import DEFAULT_CATEGORY, normalize
from wealthwise.models.ledger import (
    Account,
    ExtractionOutcome,
    ExtractionStatus,
    NormalizationRejection,
)


logger = structlog.get_logger(__name__)

FALLBACK_SUFFIX = "\n\nIMPORTANT: Return strictly a valid JSON array of objects."

RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "date": {"type": "string", "description": "YYYY-MM-DD"},
            "description": {"type": "string"},
            "amount": {"type": "number"},
            "type": {
                "type": "string",
                "description": "EXPENSE, INCOME, or INVESTMENT",
            },
            "category": {"type": "string"},
            "subCategory": {"type": "string"},
            "accountNameMatch": {"type": "string"},
            "unitDetails": {"type": "string"},
            "remarks": {"type": "string"},
        },
        "required": [
            "description",
            "amount",
            "type",
            "category",
            "subCategory",
            "accountNameMatch",
        ],
    },
}


class ResponseParseError(ValueError):
    """The model answered, but not with something we can use."""
    pass


@dataclass
class AttemptResult:
    """Outcome of a single model call."""
    items: Optional[list]
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.items is not None


def parse_strict(text: Optional[str]) -> list:
    """Primary-attempt parsing: the payload must be a JSON array."""
    data = _load_json(text)
    if not isinstance(data, list):
        raise ResponseParseError(
            f"Expected a JSON array, got {type(data).__name__}"
        )
    return data


def parse_lenient(text: Optional[str]) -> list:
    """Fallback parsing: an array, or a single object wrapped into one."""
    data = _load_json(text)
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return [data]
    raise ResponseParseError(
        f"Expected a JSON array or object, got {type(data).__name__}"
    )


def _load_json(text: Optional[str]) -> Any:
    if text is None or not text.strip():
        raise ResponseParseError("Empty response")
    try:
        return json.loads(text.strip())
    except json.JSONDecodeError as e:
        raise ResponseParseError(f"Malformed JSON: {e}")


def build_prompt(
    text: str,
    accounts: Iterable[Account],
    categories: Mapping[str, Any],
    today: date,
) -> str:
    """
    Build the extraction prompt.

    Account names and category keys are context only: the model matches
    against them but nothing it says can create either.
    """
    account_names = ", ".join(a.name for a in accounts)
    category_keys = ", ".join(categories.keys())
    today_str = today.isoformat()

    return f"""You are a financial data extractor.
Today is: {today_str}.

Analyze the input text and extract financial transactions.
Input: "{text}"

Context:
- User Accounts: [{account_names}]
- User Categories: [{category_keys}]

Instructions:
1. Identify every distinct transaction.
2. Extract 'date' strictly in "YYYY-MM-DD" format. Calculate relative dates (e.g., "yesterday") based on Today ({today_str}). If no date is mentioned, use {today_str}.
3. Extract description, amount (number), and type (EXPENSE/INCOME/INVESTMENT).
4. Match 'category' from the provided list. If it doesn't fit, suggest a sensible new one.
5. Match 'accountNameMatch' to the closest User Account name provided.
6. Return a JSON Array."""


class TransactionExtractionAgent:
    """
    Extracts candidate transactions from free text.

    RESPONSIBILITIES:
    - Build the prompt from the text and read-only ledger context
    - Run the two-step attempt sequence
    - Normalize every returned item, recording rejections

    BOUNDARIES:
    - NEVER persists data
    - NEVER raises for a bad model response; failure is a result value
    """

    def __init__(self, model: Optional[Any] = None):
        """
        Args:
            model: Anything exposing generate_content_async(prompt, generation_config=...).
                   If None, a Gemini model is configured from settings.
        """
        self._model = model
        if model is None:
            self._settings = get_settings().gemini
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

    async def _attempt(
        self,
        prompt: str,
        generation_config: dict,
        parse,
        attempt: str,
    ) -> AttemptResult:
        try:
            response = await self._model.generate_content_async(
                prompt,
                generation_config=generation_config,
            )
            # .text raises ValueError on blocked / candidate-less responses
            items = parse(response.text)
        except Exception as e:
            logger.warning(
                "extraction_attempt_failed",
                attempt=attempt,
                error=str(e),
                error_type=type(e).__name__,
            )
            return AttemptResult(items=None, error=f"{attempt}: {e}")
        return AttemptResult(items=items)

    async def extract(
        self,
        text: str,
        accounts: Iterable[Account],
        categories: Mapping[str, Any],
        today: Optional[date] = None,
        default_category: str = DEFAULT_CATEGORY,
    ) -> ExtractionOutcome:
        """
        Extract candidates from text.

        Args:
            text: The user's free text (must not be blank)
            accounts: Account directory, names go into the prompt
            categories: Category map, keys go into the prompt
            today: Reference date for relative phrases and missing dates

        Returns:
            Tagged outcome: SUCCESS, FALLBACK_SUCCESS or FAILURE

        Raises:
            ValueError: If text is blank
        """
        if not text or not text.strip():
            raise ValueError("Nothing to extract: text is empty")

        today = today or date.today()
        prompt = build_prompt(text.strip(), list(accounts), categories, today)

        primary = await self._attempt(
            prompt,
            {
                "response_mime_type": "application/json",
                "response_schema": RESPONSE_SCHEMA,
            },
            parse_strict,
            "primary",
        )
        if primary.ok:
            return self._to_outcome(
                primary.items, ExtractionStatus.SUCCESS, 1, today, default_category
            )

        fallback = await self._attempt(
            prompt + FALLBACK_SUFFIX,
            {"response_mime_type": "application/json"},
            parse_lenient,
            "fallback",
        )
        if fallback.ok:
            return self._to_outcome(
                fallback.items, ExtractionStatus.FALLBACK_SUCCESS, 2, today, default_category
            )

        return ExtractionOutcome(
            status=ExtractionStatus.FAILURE,
            attempts=2,
            error_message="; ".join(
                e for e in (primary.error, fallback.error) if e
            ),
        )

    @staticmethod
    def _to_outcome(
        items: list,
        status: ExtractionStatus,
        attempts: int,
        today: date,
        default_category: str,
    ) -> ExtractionOutcome:
        outcome = ExtractionOutcome(status=status, attempts=attempts)
        for item in items:
            normalized = normalize(item, today=today, default_category=default_category)
            if isinstance(normalized, NormalizationRejection):
                outcome.rejections.append(normalized)
            else:
                outcome.candidates.append(normalized)
        return outcome
