"""Convenção de nomes entre campos da origem e propriedades do destino.

Campos da origem nomeados "Loops - <propriedade>" são espelhados na
propriedade <propriedade> do contato no destino.
"""

from __future__ import annotations

import re

MIRRORED_FIELD_PATTERN = re.compile(r"\ALoops\s*-\s*[a-z][a-zA-Z0-9]*\Z")
_PREFIX_PATTERN = re.compile(r"\ALoops\s*-\s*", re.IGNORECASE)


def is_mirrored_field(field_name: str | None) -> bool:
    """Retorna True se o campo da origem deve ser espelhado."""
    return bool(field_name) and bool(MIRRORED_FIELD_PATTERN.match(field_name.strip()))


def destination_field_name(source_field_name: str) -> str:
    """Nome da propriedade no destino para um campo da origem."""
    return _PREFIX_PATTERN.sub("", source_field_name.strip())


def is_email_field(field_name: str | None) -> bool:
    """Campo que identifica o destinatário da linha."""
    return bool(field_name) and field_name.strip().lower() == "email"
