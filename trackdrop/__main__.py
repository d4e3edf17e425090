#!/usr/bin/env python3
"""TrackDrop - publish songs from chat

Usage:
    trackdrop                               # Run the bot (default)
    trackdrop run                           # Run the bot explicitly
    trackdrop encrypt-credentials SRC DEST  # Encrypt an OAuth token file
    trackdrop version                       # Show version
"""

from trackdrop.cli import main

if __name__ == "__main__":
    main()
