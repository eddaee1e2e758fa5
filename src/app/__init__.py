"""App — coração do sistema: agendamento, detecção de mudança e entrega.

Subpastas:
- bootstrap/: composition root (factories, inicialização, wiring)
- use_cases/: casos de uso (enqueue, poll, descoberta de origens)
- services/: serviços de aplicação (rate limiter, scheduler, outbox...)
- domain/: modelos de domínio (Source, Baseline, Envelope, IgnoreRule)
- infra/: implementações concretas de IO (Firestore, Redis, memória)
- protocols/: contratos/interfaces
- observability/: correlation id e métricas via logs estruturados

Padrão: app executa; api expõe; fsm governa; utils apoia.
"""
