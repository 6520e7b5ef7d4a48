"""
Módulo de Clientes - FacturaSaaS

- CRUD de clientes por organización
- RNC o cédula validados y formateados
- Soft delete y restore: las facturas y cotizaciones conservan la referencia
"""
