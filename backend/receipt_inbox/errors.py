"""Failures of the receipt ingestion pipeline.

Every error carries the text shown to the Telegram user. Components raise
them; only the webhook dispatcher (and the dashboard routers) turn them into
responses.
"""

from __future__ import annotations


class IngestionError(Exception):
    user_message = "Sorry, I couldn't process that. Please try again later."

    def __init__(self, detail: str = "", *, user_message: str | None = None) -> None:
        super().__init__(detail or self.__class__.__name__)
        if user_message is not None:
            self.user_message = user_message


class AccountNotFound(IngestionError):
    user_message = "We couldn't find that account. Please open the app and use the Telegram link again."


class NotLinked(IngestionError):
    user_message = "You need to connect your account first. Please click the deep link from the app."


class RelinkNotAllowed(IngestionError):
    user_message = (
        "This Telegram account is already connected to another user. "
        "Disconnect it from the app before linking it again."
    )


class ExtractionParseFailure(IngestionError):
    user_message = "Sorry, I could not process your message. Please try again with a clearer text."


class ExtractionIncomplete(IngestionError):
    user_message = (
        "I couldn't find both an amount and a category in that. "
        "Please send something like: Coffee 4.50"
    )


class CategoryNotFound(IngestionError):
    def __init__(self, name: str | None, valid_names: list[str]) -> None:
        self.category_name = name
        self.valid_names = valid_names
        if valid_names:
            message = (
                f'Category "{name}" not found. '
                f"Please use one of these categories: {', '.join(valid_names)}"
            )
        else:
            message = "You don't have any active categories yet. Please create one in the app first."
        super().__init__(f"no category matching {name!r}", user_message=message)


class ReceiptNotFound(IngestionError):
    user_message = "Sorry, I couldn't find that receipt. It may have been discarded already."


class ReceiptAlreadyProcessed(IngestionError):
    user_message = "This receipt has already been processed."


class DownstreamHttpFailure(IngestionError):
    user_message = "Sorry, I'm having trouble reaching an external service. Please try again later."
