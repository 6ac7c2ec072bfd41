"""
db/ - Database Layer
====================
Opens PostgreSQL connections, binds named parameters and runs the four
data operations (scalar, row-set, update, connection test).
This layer is the lowest in the architecture and has no dependencies on other layers.
"""
