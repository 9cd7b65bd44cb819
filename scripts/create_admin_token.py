#!/usr/bin/env python3
"""
Operator helpers for the admin surface.

Print a bcrypt hash to put in ADMIN_PASSWORD_HASH:
    python scripts/create_admin_token.py hash <password>

Mint an admin JWT for ADMIN_EMAIL without logging in:
    python scripts/create_admin_token.py token
"""

import sys
import os

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

# Load .env file
from dotenv import load_dotenv
load_dotenv(os.path.join(project_root, ".env"))

from src.auth.dependencies import hash_password
from src.auth.jwt import create_admin_token
from src.config import settings


def main():
    if len(sys.argv) < 2 or sys.argv[1] not in {"hash", "token"}:
        print("Usage: create_admin_token.py hash <password> | token")
        sys.exit(1)

    if sys.argv[1] == "hash":
        if len(sys.argv) != 3:
            print("Error: password argument required")
            sys.exit(1)
        print(hash_password(sys.argv[2]))
        return

    if not settings.admin_email:
        print("Error: ADMIN_EMAIL must be set in .env")
        sys.exit(1)

    print(f"Token for {settings.admin_email} (expires in {settings.jwt_expiration_minutes} minutes):")
    print(create_admin_token(settings.admin_email.strip().lower()))


if __name__ == "__main__":
    main()
