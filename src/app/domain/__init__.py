"""Modelos de domínio do pipeline de sincronização."""
