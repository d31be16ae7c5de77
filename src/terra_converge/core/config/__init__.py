# src/terra_converge/core/config/__init__.py
"""
Configuração do terra-converge.

Este pacote resolve a configuração efetiva do operador a partir de um
arquivo de defaults empacotado e de um override local opcional, e expõe
uma visão tipada (`Settings`) consumida pelo manager e pelos workflows.

Componentes:
    - loader   → leitura de YAML/JSON e deep-merge defaults + local
    - merge    → política canônica de deep-merge
    - hashing  → fingerprint determinístico de estruturas de configuração
    - settings → dataclasses tipadas e validação de valores

Invariantes:
    - A configuração final é um dicionário puro (dict) antes da tipagem
    - Conflitos estruturais são tratados como erro
"""
