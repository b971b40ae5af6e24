"""
Módulo de Facturación (Invoices)

Este módulo maneja el ciclo de vida de las facturas de venta:

- Líneas con precio, descuento e impuesto por ítem
- Totales derivados de las líneas (nunca se asignan a mano)
- Estados: draft -> sent -> paid / overdue, cancelled
- Al emitir: descuento de stock y aumento de la deuda del cliente
- Pagos parciales y completos
- Guards de tenant activo, crédito del cliente y stock del producto
"""
