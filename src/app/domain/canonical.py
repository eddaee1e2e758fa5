"""Forma canônica de valores estruturados.

Usada para comparar valores de campo (ChangeDetector) e resultados
de execuções redundantes (ConsistencyVerifier): valores que diferem
apenas na ordem das chaves nunca contam como mudança.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping, Set
from typing import Any


def canonicalize(value: Any) -> Any:
    """Reescreve o valor em forma canônica.

    - Mapeamentos: chaves convertidas para str e ordenadas, valores recursivos
    - Listas/tuplas: recursivo elemento a elemento, ordem preservada
    - Conjuntos: elementos canônicos ordenados pela serialização
    - Escalares e None: inalterados

    Nunca levanta para entradas estruturalmente válidas.
    """
    if isinstance(value, Mapping):
        items = {str(key): canonicalize(item) for key, item in value.items()}
        return {key: items[key] for key in sorted(items)}
    if isinstance(value, (list, tuple)):
        return [canonicalize(item) for item in value]
    if isinstance(value, Set):
        members = [canonicalize(item) for item in value]
        return sorted(members, key=_dumps)
    return value


def canonical_json(value: Any) -> str:
    """Serialização canônica (estável entre processos) do valor."""
    return _dumps(canonicalize(value))


def canonical_hash(value: Any) -> str:
    """SHA-256 da serialização canônica."""
    return hashlib.sha256(canonical_json(value).encode("utf-8")).hexdigest()


def _dumps(value: Any) -> str:
    # default=str: datetimes/Decimals vindos de adapters não quebram a comparação
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
