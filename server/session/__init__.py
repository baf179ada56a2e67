"""
Session module for server-side connection state.

Handles:
- Active session registry keyed by campus and department
- Liveness state (last seen time, reply address) per session
- Capacity limits
"""
