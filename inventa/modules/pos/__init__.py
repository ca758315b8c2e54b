"""
Punto de venta: ventas con descuento de stock, movimientos SALIDA y
factura pagada cuando la venta tiene cliente.
"""
