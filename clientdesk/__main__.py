#!/usr/bin/env python3
"""
clientdesk - Main entry point

Allows ``python -m clientdesk`` to run the command-line interface.
"""
from clientdesk.cli import cli


def main():
    """Main entry point for the clientdesk package."""
    cli(prog_name="clientdesk")


if __name__ == "__main__":
    main()
