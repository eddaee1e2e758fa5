"""API — superfície HTTP de operação.

Responsabilidades:
- Health e readiness para o Cloud Run
- Consulta e re-enfileiramento de envelopes da outbox
- Consulta das origens pollados

Subpastas:
- routes/: endpoints HTTP (health, outbox, sources)

NÃO PODE conter: regras de detecção, transições de status, acesso direto a stores
fora das dependências do bootstrap.
"""
