"""
Módulo de Gastos - FacturaSaaS

Registro de gastos de la organización con filtros por fecha y categoría.
"""
