# src/terra_converge/__init__.py
"""
terra-converge — engine de reconciliação para workflows Terraform.

Este pacote raiz define o namespace público do terra-converge, um engine
que conduz recursos declarativos (Configuration, Revision) à convergência
executando pipelines ordenados de Steps contra o estado observado.

Princípios centrais:
    - Cada ciclo de reconciliação é um pipeline explícito de Steps
    - O estado visível ao usuário vive exclusivamente nas Conditions
    - Toda escrita no store usa tokens de concorrência otimista
    - Trabalho externo é delegado a execution units opacas

Arquitetura em alto nível:
    - core.config       → carregamento, merge, hashing e settings tipados
    - core.pipeline     → protocolo de Step, diretivas e contexto do ciclo
    - core.engine       → driver do pipeline, fila de trabalho e manager
    - core.traceability → eventos e métricas (sinks injetados)
    - model             → tipos de recursos e contrato de labels
    - store             → cliente de store e implementação em memória
    - reconcile         → classifier, filtros, conditions e finalizers
    - steps             → workflows concretos (configuration, revision, expire)

Limites explícitos:
    - Não calcula diffs de infraestrutura (papel do Terraform)
    - Não define o conteúdo das imagens das execution units
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
