"""
Módulo de Pagos - FacturaSaaS

- Cuentas de cobro (caja chica, banco, tarjeta, digital) con una cuenta por defecto
- Pagos de facturas: actualizan el saldo de la cuenta y el estado de la factura

Tablas principales:
- payment_accounts: Cuentas donde se reciben los cobros
- payments: Pagos recibidos por factura
"""
