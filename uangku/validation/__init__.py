"""Entry validation package."""

from uangku.validation.validator import EntryValidator

__all__ = ["EntryValidator"]
