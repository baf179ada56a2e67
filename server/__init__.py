"""
Server package for the Campus Relay messaging system.

This package contains all server-side functionality including:
- Campus authentication
- Session registry and liveness tracking
- Message routing and campus listings
- Heartbeat listener and admin broadcasts
- Configuration and utilities
"""
