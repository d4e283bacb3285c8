#!/usr/bin/env python3
"""craftgate - WebSocket gateway for Minecraft server plugins

Usage:
    craftgate run                 # Run the gateway in the foreground
    craftgate send "/time set day"  # Send a command through the running gateway
    craftgate status              # Show gateway status
    craftgate stop                # Stop the running gateway
    craftgate token               # Mint a token for the plugin
"""

from craftgate.cli import main

if __name__ == "__main__":
    main()
