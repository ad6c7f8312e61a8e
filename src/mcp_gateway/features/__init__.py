"""
Fonctionnalités métier du gateway (sans I/O).
"""
