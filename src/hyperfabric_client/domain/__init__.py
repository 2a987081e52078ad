"""Domain modules for the client."""

from .classification import Outcome, OutcomeKind, classify_response, is_idempotent_not_found

__all__ = ["Outcome", "OutcomeKind", "classify_response", "is_idempotent_not_found"]
