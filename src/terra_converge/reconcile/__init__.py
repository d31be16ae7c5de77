# src/terra_converge/reconcile/__init__.py
"""
Componentes de reconciliação reutilizados por todos os workflows.

    - classify   → active/complete/failed de uma execution unit
    - filters    → correlação de execution units por labels tipados
    - conditions → máquina de estados de Conditions carimbada por geração
    - finalizers → guarda de deleção e detecção de candidatos a deleção
"""
