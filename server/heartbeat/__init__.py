"""
Heartbeat module for UDP liveness pings.

Handles:
- Receiving campus|department liveness datagrams
- Recording the last known reply address of each session
"""
