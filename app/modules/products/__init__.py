"""
Módulo de Productos - FacturaSaaS

Catálogo de productos y servicios que se pueden usar como líneas de
facturas y cotizaciones.
"""
