# src/terra_converge/core/__init__.py
"""
Core do terra-converge.

Este pacote reúne as responsabilidades independentes de domínio do
engine de reconciliação: configuração, contrato de Steps, execução
do pipeline e rastreabilidade.

Componentes principais:
    - config       → resolução de configuração (merge, validação estrutural, hashing)
    - pipeline     → protocolo de Step, diretivas tipadas e contexto do ciclo
    - engine       → driver do pipeline, fila com deduplicação e pool de workers
    - traceability → sinks de eventos e métricas

Limites explícitos:
    - Não conhece Terraform, providers ou execution units
    - Não define Steps concretos de domínio
"""
