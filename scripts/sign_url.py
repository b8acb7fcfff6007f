#!/usr/bin/env python3
"""
Print a signed URL for a file stored on a disk.

Usage:
    python scripts/sign_url.py reports/q3.pdf
    python scripts/sign_url.py reports/q3.pdf --disk private --expires-in 600
"""

import argparse
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def main():
    parser = argparse.ArgumentParser(description="Create a signed URL for a file")
    parser.add_argument("path", help="Path of the file on the disk")
    parser.add_argument("--disk", default=None, help="Disk name (default disk if omitted)")
    parser.add_argument("--expires-in", type=int, default=None, help="Lifetime in seconds")
    parser.add_argument("--base-url", default="", help="Prefix such as https://files.example.com")
    args = parser.parse_args()

    import asyncio

    from filedrive.core.config import get_settings
    from filedrive.core.exceptions import DriveError
    from filedrive.services.storage.factory import DriveManager

    manager = DriveManager(get_settings())

    try:
        driver = manager.use(args.disk)
        url = asyncio.run(driver.get_signed_url(args.path, args.expires_in))
    except DriveError as e:
        print(f"  ✗ {e.message}", file=sys.stderr)
        sys.exit(1)

    print(f"{args.base_url.rstrip('/')}{url}")


if __name__ == "__main__":
    main()
