import json
from datetime import date

import httpx
import pytest
from openai import APITimeoutError, OpenAIError

from receipt_inbox import crud
from receipt_inbox.config import get_settings
from receipt_inbox.errors import DownstreamHttpFailure, ExtractionIncomplete, ExtractionParseFailure
from receipt_inbox.extraction import (
    IMAGE_PARSE_FAILURE,
    NO_DESCRIPTION,
    ExtractionEngine,
    build_prompt,
    parse_model_output,
)

TODAY = date(2026, 10, 16)


def test_parse_full_answer():
    raw = json.dumps(
        {"date": "2026-10-12", "type": "Expense", "description": "Coffee", "category": "Dining", "amount": 4.5}
    )
    extracted = parse_model_output(raw, today=TODAY)
    assert extracted.date == "2026-10-12"
    assert extracted.type == "expense"
    assert extracted.description == "Coffee"
    assert extracted.category == "Dining"
    assert extracted.amount == 4.5


def test_missing_or_invalid_date_falls_back_to_today():
    for value in (None, "", "none", "last tuesday"):
        raw = json.dumps({"date": value, "category": "Dining", "amount": 3})
        assert parse_model_output(raw, today=TODAY).date == "2026-10-16"


def test_title_is_accepted_and_empty_description_defaulted():
    raw = json.dumps({"title": "Flat white", "category": "Dining", "amount": "4,50"})
    extracted = parse_model_output(raw, today=TODAY)
    assert extracted.description == "Flat white"
    assert extracted.amount == 4.5

    raw = json.dumps({"description": "  ", "category": "Dining", "amount": 2})
    assert parse_model_output(raw, today=TODAY).description == NO_DESCRIPTION


def test_unknown_type_is_left_for_the_category_to_decide():
    raw = json.dumps({"type": "transfer", "category": "Dining", "amount": 10})
    assert parse_model_output(raw, today=TODAY).type is None


@pytest.mark.parametrize(
    ("raw_amount", "expected"),
    [("1,234", 1234.0), ("12,345,678", 12345678.0), ("1,234.50", 1234.5), ("4,50", 4.5), ("0,5", 0.5)],
)
def test_comma_amounts(raw_amount, expected):
    raw = json.dumps({"category": "Dining", "amount": raw_amount})
    assert parse_model_output(raw, today=TODAY).amount == expected


def test_negative_amount_is_stored_as_absolute_value():
    raw = json.dumps({"category": "Dining", "amount": -12.5})
    assert parse_model_output(raw, today=TODAY).amount == 12.5


@pytest.mark.parametrize("raw", ["not json{", "", None, "[1, 2]", '"Dining"'])
def test_unparseable_answers_raise_parse_failure(raw):
    with pytest.raises(ExtractionParseFailure):
        parse_model_output(raw, today=TODAY)


def test_image_parse_failure_asks_for_a_clearer_image():
    with pytest.raises(ExtractionParseFailure) as excinfo:
        parse_model_output("garbage", today=TODAY, source="image")
    assert excinfo.value.user_message == IMAGE_PARSE_FAILURE


@pytest.mark.parametrize(
    "payload",
    [
        {"category": "Dining"},
        {"category": "Dining", "amount": None},
        {"category": "Dining", "amount": "lots"},
        {"category": "Dining", "amount": float("nan")},
        {"category": "Dining", "amount": True},
        {"amount": 4.5},
        {"category": " ", "amount": 4.5},
    ],
)
def test_missing_amount_or_category_is_incomplete(payload):
    with pytest.raises(ExtractionIncomplete):
        parse_model_output(json.dumps(payload), today=TODAY)


def test_prompt_lists_account_categories(db, account):
    categories = crud.list_categories(db, account["id"], active_only=True)
    prompt = build_prompt(categories, TODAY, source="text", text="Coffee 4.50")

    assert "Current date is 2026-10-16" in prompt
    assert '"name": "Dining"' in prompt
    assert '"nature": "fixed"' in prompt
    assert "Restaurants and coffee" in prompt
    assert prompt.rstrip().endswith("Text to analyze: Coffee 4.50")


def test_text_extraction_uses_text_model(db, account, llm):
    llm.responses.append(json.dumps({"category": "Dining", "amount": 4.5, "description": "Coffee"}))
    engine = ExtractionEngine(llm, get_settings())
    categories = crud.list_categories(db, account["id"], active_only=True)

    extracted = engine.extract_from_text("Coffee 4.50", categories, today=TODAY)

    assert extracted.amount == 4.5
    assert llm.calls[0]["model"] == get_settings().ai_text_model
    assert llm.calls[0]["image_url"] is None


def test_image_extraction_uses_vision_model_and_caption(db, account, llm):
    llm.responses.append(json.dumps({"category": "Dining", "amount": 18, "description": "Lunch"}))
    engine = ExtractionEngine(llm, get_settings())
    categories = crud.list_categories(db, account["id"], active_only=True)

    engine.extract_from_image("https://img.example/1", categories, today=TODAY, caption="team lunch")

    call = llm.calls[0]
    assert call["model"] == get_settings().ai_vision_model
    assert call["image_url"] == "https://img.example/1"
    assert "Caption sent with the photo: team lunch" in call["prompt"]


def test_timeout_is_a_parse_failure(llm):
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    llm.responses.append(APITimeoutError(request=request))
    engine = ExtractionEngine(llm, get_settings())

    with pytest.raises(ExtractionParseFailure):
        engine.extract_from_text("Coffee 4.50", [], today=TODAY)


def test_transport_error_is_a_downstream_failure(llm):
    llm.responses.append(OpenAIError("connection reset"))
    engine = ExtractionEngine(llm, get_settings())

    with pytest.raises(DownstreamHttpFailure):
        engine.extract_from_text("Coffee 4.50", [], today=TODAY)
