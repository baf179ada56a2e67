"""
Authentication module for the server.

Handles:
- Static campus credential table
- Credential validation during the connection handshake
"""
