# src/terra_converge/render/__init__.py
"""
Renderização de execution units.

O template real das units é responsabilidade externa; o engine depende
apenas do protocolo `UnitRenderer`. `DefaultUnitRenderer` produz um spec
mínimo (imagem, argumentos, ambiente) suficiente para execuções locais
e testes.
"""

from .units import DefaultUnitRenderer, RenderOptions, UnitRenderer

__all__ = ["DefaultUnitRenderer", "RenderOptions", "UnitRenderer"]
