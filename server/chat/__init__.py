"""
Chat module for server-side messaging functionality.

Handles:
- Routing addressed messages between campus sessions
- Campus-level fallback delivery
- Connected campus listings
"""
