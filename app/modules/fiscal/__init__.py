"""
Numeración fiscal: tipos de comprobante, secuencias, asignación atómica y validación previa.
"""
