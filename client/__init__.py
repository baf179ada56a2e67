"""
Client package for the Campus Relay messaging system.

This package contains the protocol client used by campus endpoints:
- Campus authentication
- Addressed messages and campus listings
- UDP heartbeats and admin broadcast reception
- Configuration and utilities
"""
