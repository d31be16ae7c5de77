# src/terra_converge/core/traceability/__init__.py
"""
Rastreabilidade do terra-converge.

Sinks injetados no engine na construção, nunca singletons de processo:
    - events  → eventos discretos (identidade do recurso, tipo, reason, message)
    - metrics → gauges; `NoopMetrics` é a implementação padrão em testes

Logs técnicos do operador usam o módulo `logging` da stdlib; eventos
são o canal visível ao usuário, ao lado das Conditions.
"""
