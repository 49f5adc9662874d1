from typing import Optional

from lekha.errors import ValidationError
from lekha.transactions.models import TransactionKind

NOTES_MAX_LENGTH = 500
IDEMPOTENCY_KEY_MAX_LENGTH = 64


def clean_kind(kind) -> TransactionKind:
    try:
        return TransactionKind(kind)
    except ValueError:
        raise ValidationError("Transaction kind must be 'credit' or 'debit'.")


def clean_notes(notes: Optional[str]) -> Optional[str]:
    if notes is None:
        return None
    notes = notes.strip()
    if len(notes) > NOTES_MAX_LENGTH:
        raise ValidationError(f"Notes must be at most {NOTES_MAX_LENGTH} characters.")
    return notes or None


def clean_idempotency_key(key: Optional[str]) -> Optional[str]:
    if key is None:
        return None
    key = key.strip()
    if not key or len(key) > IDEMPOTENCY_KEY_MAX_LENGTH:
        raise ValidationError(
            f"Idempotency key must be 1 to {IDEMPOTENCY_KEY_MAX_LENGTH} characters."
        )
    return key
