"""
Módulo de Cotizaciones (Quotes) - FacturaSaaS

Las cotizaciones usan la misma numeración fiscal que las facturas, con tipos
de documento de la categoría quote. Una cotización puede convertirse en
factura una sola vez; la factura recibe su propio número fiscal.
"""
