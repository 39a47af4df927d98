#!/usr/bin/env python3
"""
Database Initialization Script

Creates the auth tables and clears out expired sessions.
"""

import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from config.database import delete_expired_sessions, init_database, init_engine
from config.settings import ConfigError, Settings


def main():
    """Initialize the database and remove expired sessions."""
    logging.basicConfig(level=logging.INFO)

    try:
        settings = Settings.from_env()
        init_engine(settings.database_url)
        init_database()
        removed = delete_expired_sessions()
    except ConfigError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except Exception as e:
        print(f"Error initializing database: {e}")
        sys.exit(1)

    print("Database ready.")
    print("   - users: accounts signed in through a social provider")
    print("   - accounts: provider account links and tokens")
    print("   - sessions: browser sessions")
    print("   - verifications: OAuth state between redirect and callback")
    print(f"Removed {removed} expired sessions.")


if __name__ == "__main__":
    main()
