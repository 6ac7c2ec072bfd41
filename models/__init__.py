"""
models/ - Domain Models
=======================
Plain dataclasses passed between layers.
"""
