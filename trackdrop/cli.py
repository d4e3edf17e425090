"""Command-line interface for TrackDrop"""

import argparse
import asyncio
import json
import logging
import sys

from trackdrop import __version__

logger = logging.getLogger(__name__)


def run_command(args):
    """Run the bot in the foreground"""
    from trackdrop.daemon.service import BotService

    print("Running TrackDrop bot...")
    print("Press Ctrl+C to stop")
    service = BotService(config_path=args.config)
    try:
        asyncio.run(service.start())
    except KeyboardInterrupt:
        print("\n✓ Bot stopped")


def encrypt_credentials_command(args):
    """Encrypt an authorized-user token file with the app secret key"""
    from trackdrop.config import Settings
    from trackdrop.credentials import save_credentials_encrypted

    settings = Settings.from_file(args.config) if args.config else Settings()
    if not settings.secret_key:
        print("✗ TRACKDROP_SECRET_KEY is not set")
        sys.exit(1)
    try:
        with open(args.source, "r", encoding="utf-8") as f:
            credentials = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"✗ Could not read {args.source}: {e}")
        sys.exit(1)
    if save_credentials_encrypted(credentials, args.destination, settings.secret_key):
        print(f"✓ Encrypted credentials written to {args.destination}")
    else:
        print("✗ Failed to encrypt credentials")
        sys.exit(1)


def main():
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        prog="trackdrop",
        description="TrackDrop - publish songs from chat"
    )
    parser.add_argument("--config", default=None, help="Path to config.yaml")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("run", help="Run the bot (default)")

    encrypt_parser = subparsers.add_parser(
        "encrypt-credentials", help="Encrypt an OAuth token file for storage"
    )
    encrypt_parser.add_argument("source", help="Plain authorized-user JSON")
    encrypt_parser.add_argument("destination", help="Encrypted output path")

    subparsers.add_parser("version", help="Show version")

    args = parser.parse_args()

    # Setup logging
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if args.command == "encrypt-credentials":
        encrypt_credentials_command(args)
    elif args.command == "version":
        print(f"TrackDrop v{__version__}")
    else:
        run_command(args)


if __name__ == "__main__":
    main()
