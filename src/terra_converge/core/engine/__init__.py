# src/terra_converge/core/engine/__init__.py
"""
Engine do terra-converge.

Componentes principais:
    - engine  → driver do pipeline (diretivas, status único, Ready)
    - queue   → fila de trabalho com deduplicação, serialização por chave e backoff
    - manager → pool de workers por controller, ligado ao watch do store

Invariantes:
    - Um mesmo recurso nunca é reconciliado por dois workers ao mesmo tempo
    - Cada ciclo executa cada Step no máximo uma vez
"""
