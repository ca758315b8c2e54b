"""
Facturación de ventas POS: factura, ítems y pago.
"""
