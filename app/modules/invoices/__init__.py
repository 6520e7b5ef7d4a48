"""
Módulo de Facturación (Invoices) - FacturaSaaS

- Creación de facturas con número fiscal asignado por el módulo fiscal
- Totales con ITBIS
- Listado y detalle por organización
- Transiciones de estado (pagada, anulada) y saldo según pagos registrados

Tablas principales:
- invoices: Facturas de venta
- invoice_line_items: Ítems de factura
- payments (módulo payments): Pagos recibidos
"""
