"""LLM-backed extraction of a candidate transaction from text or a receipt photo."""

from __future__ import annotations

import json
import logging
import math
import re
from collections.abc import Sequence
from datetime import date
from typing import Any

from openai import APITimeoutError, OpenAIError

from .config import Settings
from .domain.entities import ExtractedTransaction
from .errors import DownstreamHttpFailure, ExtractionIncomplete, ExtractionParseFailure
from .llm_client import LLMClient
from .models import CategoryModel

logger = logging.getLogger(__name__)

NO_DESCRIPTION = "No description provided"
_THOUSANDS = re.compile(r"-?\d{1,3}(?:,\d{3})+")

IMAGE_PARSE_FAILURE = "Sorry, I couldn't properly analyze your receipt. Please try again with a clearer image."

_PROMPT_HEADER = {
    "text": "Extract the transaction details from this text and respond with JSON only.",
    "image": "Extract the transaction details from this receipt image and respond with JSON only.",
}


def describe_categories(categories: Sequence[CategoryModel]) -> list[dict[str, str]]:
    return [
        {
            "name": category.name,
            "type": category.kind.value,
            "nature": category.nature.value,
            "description": category.description or "",
        }
        for category in categories
    ]


def build_prompt(
    categories: Sequence[CategoryModel],
    today: date,
    *,
    source: str,
    text: str | None = None,
) -> str:
    lines = [
        _PROMPT_HEADER[source],
        "Date must be in YYYY-MM-DD format.",
        f"Current date is {today.isoformat()}. Use it when the date is not provided.",
        "Description is the item or merchant name in sentence case.",
        'Type must be either "income" or "expense".',
        "Classify the transaction using general knowledge, choosing the category "
        "ONLY from the list below and copying its name exactly.",
        "Return a JSON object with exactly these keys:",
        '{"date": "YYYY-MM-DD", "type": "income or expense", "description": "Item description", '
        '"category": "Category name from list", "amount": 123.45}',
        "Use null for anything you cannot find. Do not add any other text.",
        "",
        f"Categories: {json.dumps(describe_categories(categories), ensure_ascii=False)}",
    ]
    if text:
        label = "Text to analyze" if source == "text" else "Caption sent with the photo"
        lines.extend(["", f"{label}: {text}"])
    return "\n".join(lines)


def _coerce_amount(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        cleaned = value.strip()
        # "1,234" groups thousands; "4,50" uses a decimal comma.
        if "," in cleaned and "." not in cleaned and not _THOUSANDS.fullmatch(cleaned):
            cleaned = cleaned.replace(",", ".")
        cleaned = cleaned.replace(",", "")
        try:
            value = float(cleaned)
        except ValueError:
            return None
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(amount):
        return None
    return round(abs(amount), 2)


def _normalise_date(value: Any, today: date) -> str:
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip()[:10]).isoformat()
        except ValueError:
            logger.info("Ignoring unparseable extracted date %r", value)
    return today.isoformat()


def _normalise_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_model_output(raw: str | None, *, today: date, source: str = "text") -> ExtractedTransaction:
    """Validate the model's JSON answer.

    Raises ``ExtractionParseFailure`` when the answer is not a JSON object and
    ``ExtractionIncomplete`` when the amount or the category is missing.
    """
    parse_message = IMAGE_PARSE_FAILURE if source == "image" else None
    if not raw:
        raise ExtractionParseFailure("empty model response", user_message=parse_message)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ExtractionParseFailure(f"model response is not JSON: {exc}", user_message=parse_message) from exc
    if not isinstance(data, dict):
        raise ExtractionParseFailure("model response is not a JSON object", user_message=parse_message)

    amount = _coerce_amount(data.get("amount"))
    category = _normalise_text(data.get("category"))
    if amount is None or category is None:
        raise ExtractionIncomplete(f"missing amount or category in {data!r}")

    type_raw = (_normalise_text(data.get("type")) or "").lower()
    description = _normalise_text(data.get("description")) or _normalise_text(data.get("title"))

    return ExtractedTransaction(
        date=_normalise_date(data.get("date"), today),
        category=category,
        amount=amount,
        description=(description or NO_DESCRIPTION)[:255],
        type=type_raw if type_raw in ("income", "expense") else None,
    )


class ExtractionEngine:
    def __init__(self, llm: LLMClient, settings: Settings) -> None:
        self._llm = llm
        self._settings = settings

    def extract_from_text(
        self,
        text: str,
        categories: Sequence[CategoryModel],
        today: date | None = None,
    ) -> ExtractedTransaction:
        today = today or date.today()
        prompt = build_prompt(categories, today, source="text", text=text)
        raw = self._complete(prompt, model=self._settings.ai_text_model, source="text")
        extracted = parse_model_output(raw, today=today, source="text")
        logger.info("Extracted from text: %s", extracted)
        return extracted

    def extract_from_image(
        self,
        image_url: str,
        categories: Sequence[CategoryModel],
        today: date | None = None,
        caption: str | None = None,
    ) -> ExtractedTransaction:
        today = today or date.today()
        prompt = build_prompt(categories, today, source="image", text=caption)
        raw = self._complete(
            prompt,
            model=self._settings.ai_vision_model,
            source="image",
            image_url=image_url,
        )
        extracted = parse_model_output(raw, today=today, source="image")
        logger.info("Extracted from image %s: %s", image_url, extracted)
        return extracted

    def _complete(self, prompt: str, *, model: str, source: str, image_url: str | None = None) -> str | None:
        try:
            return self._llm.complete_json(prompt, model=model, image_url=image_url)
        except APITimeoutError as exc:
            logger.warning("OpenAI request timed out (%s)", model)
            raise ExtractionParseFailure(
                "model request timed out",
                user_message=IMAGE_PARSE_FAILURE if source == "image" else None,
            ) from exc
        except OpenAIError as exc:
            logger.error("OpenAI request failed: %s", exc)
            raise DownstreamHttpFailure(f"OpenAI request failed: {exc}") from exc
