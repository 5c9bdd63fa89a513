#!/usr/bin/env python3
"""
Generate Admin Password Hash Script

Prints an ADMIN_PASSWORD_HASH line for the .env file.
Usage: python scripts/generate_password_hash.py [password]
If no password is given it is read from the terminal without echo.
"""

import getpass
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.security import get_password_hash, verify_password


def generate_password_hash(password: str) -> str:
    """
    Hash the admin password and check the result verifies.

    Args:
        password: Plain admin password

    Returns:
        str: Hash to store in ADMIN_PASSWORD_HASH
    """
    hashed = get_password_hash(password)
    if not verify_password(password, hashed):
        raise RuntimeError("Generated hash failed verification")
    return hashed


if __name__ == "__main__":
    if len(sys.argv) > 1:
        password = sys.argv[1]
    else:
        password = getpass.getpass("Admin password: ")
        if password != getpass.getpass("Repeat password: "):
            print("❌ Passwords do not match")
            sys.exit(1)

    if len(password) < 8:
        print("❌ Password must be at least 8 characters")
        sys.exit(1)

    print(f"ADMIN_PASSWORD_HASH={generate_password_hash(password)}")
