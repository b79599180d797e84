"""
Database initialization script
Creates all tables, or drops and recreates them
"""
import argparse

from printshop.utils.database import create_tables, drop_tables, engine


def init_database():
    """Initialize the database by creating all tables"""
    print(f"Creating database tables on {engine.url.render_as_string(hide_password=True)}...")
    create_tables()
    print("Database tables created successfully!")


def reset_database():
    """Reset the database by dropping and recreating all tables"""
    print("Dropping existing tables...")
    drop_tables()
    print("Creating new tables...")
    create_tables()
    print("Database reset successfully!")


def main():
    parser = argparse.ArgumentParser(description="Database management script")
    parser.add_argument("--init", action="store_true", help="Initialize database")
    parser.add_argument("--reset", action="store_true", help="Reset database")

    args = parser.parse_args()

    if args.reset:
        reset_database()
    elif args.init:
        init_database()
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
