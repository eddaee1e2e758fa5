"""Normalização de identidade do destinatário (e-mail)."""

from __future__ import annotations

from utils.errors import InvalidRecipientError


def normalize_email(email: str | None) -> str | None:
    """Normaliza e-mail: remove espaços e converte para minúsculas.

    Returns:
        E-mail normalizado ou None se vazio.
    """
    if email is None:
        return None
    normalized = str(email).strip().lower()
    return normalized or None


def require_recipient(email: str | None) -> str:
    """Como normalize_email, mas rejeita destinatário vazio.

    Raises:
        InvalidRecipientError: Se o e-mail for vazio após normalização.
    """
    normalized = normalize_email(email)
    if normalized is None:
        raise InvalidRecipientError("Destinatário vazio após normalização")
    return normalized
