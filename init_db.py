#!/usr/bin/env python3
"""
Database initialization script for the Campus Portal
Creates the tables and seeds the default admin, programmes and settings
"""

import sys

from app import create_app
from database import init_db, reset_database

def main():
    """Create the schema, or drop and recreate it with --reset"""
    app = create_app()

    if len(sys.argv) > 1 and sys.argv[1] == '--reset':
        print("WARNING: This will delete all existing data!")
        confirm = input("Are you sure you want to reset the database? (yes/no): ")
        if confirm.lower() == 'yes':
            reset_database(app)
            print("Database reset completed")
        else:
            print("Database reset cancelled.")
    else:
        init_db(app)
        print(f"Database ready. Admin login: {app.config['DEFAULT_ADMIN_EMAIL']}")

if __name__ == '__main__':
    main()
