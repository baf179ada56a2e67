"""
Control module for operator functionality.

Handles:
- Operator console commands (list, broadcast)
- UDP broadcast fan-out to sessions with a known reply address
"""
