#!/usr/bin/env python3
"""
Campus Relay Server - Main Entry Point

Unified entry point for the server application that integrates:
- Campus authentication and session registry (TCP)
- Department-level message routing with campus fallback
- Heartbeat tracking (UDP)
- Admin console with UDP broadcasts

Usage:
    python main_server.py

Optional arguments:
    --host HOST           Bind address (default: 0.0.0.0)
    --port PORT           TCP port (default: 5000)
    --udp-port PORT       UDP heartbeat/broadcast port (default: 6000)
    --max-clients N       Maximum concurrent sessions (default: 10)
    --read-timeout SECS   Drop idle sessions after SECS (default: never)
    --notify-fallback     Tell senders about campus fallback delivery
    --no-console          Do not read admin commands from stdin
    --debug               Enable debug logging
"""

if __name__ == "__main__":
    from server.main_server import main

    main()
