"""
services/ - Maintenance Layer
=============================
Operational routines that sit beside the data operations, such as the
self-updater. Nothing in the db layer depends on this package.
"""
