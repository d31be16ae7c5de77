# src/terra_converge/core/config/errors.py
"""
Exceções canônicas da camada de configuração do terra-converge.

As exceções aqui definidas representam violações estruturais da
configuração do operador, detectadas antes de qualquer reconciliação.

Invariantes:
    - Todas as exceções de configuração herdam de `ConfigError`
    - Nenhuma exceção representa falha de store ou de execução de Step
"""


class ConfigError(Exception):
    """
    Exceção base para erros relacionados à configuração do terra-converge.

    Permite captura genérica de falhas de configuração sem confundi-las
    com erros transitórios de reconciliação.
    """


class DefaultsNotFoundError(ConfigError):
    """
    Exceção levantada quando o arquivo de configuração base (defaults)
    não é encontrado no caminho especificado.

    Sem defaults não existe configuração efetiva válida; o loader não
    tenta inferir ou criar defaults automaticamente.
    """


class UnsupportedConfigFormatError(ConfigError):
    """
    Exceção levantada quando o formato do arquivo não é suportado.

    Formatos suportados (v1):
        - YAML (.yaml, .yml)
        - JSON (.json)
    """


class ConfigParseError(ConfigError):
    """Conteúdo do arquivo não pôde ser interpretado (YAML/JSON malformado)."""


class InvalidConfigRootTypeError(ConfigError):
    """
    Exceção levantada quando a raiz do arquivo carregado não é um
    dicionário (ex.: lista ou escalar).
    """


class ConfigTypeConflictError(ConfigError):
    """
    Exceção levantada quando o deep-merge encontra tipos incompatíveis
    para a mesma chave (ex.: dict no defaults e str no override).
    """


class SettingsError(ConfigError):
    """Valor de configuração com tipo ou faixa inválida para `Settings`."""
