"""
Database Initialization and Integrity Checker
Runs on startup (and from `flask setup-db`) to make sure every table exists
and the system rows the dashboards rely on are seeded.
"""

import sys
from datetime import datetime
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError
from sqlalchemy.schema import sort_tables

from models import Base, SystemFlag, MAINTENANCE_FLAG, DEFAULT_LEAVES_FLAG
from chat_models import AISettings
from db_single import import_model_modules, init_database
from diagnostics import create_default_ai_settings
from leave_helpers import FALLBACK_DEFAULT_LEAVES


def get_existing_tables(engine):
    """Get list of existing tables in database"""
    inspector = inspect(engine)
    return set(inspector.get_table_names())


def get_expected_tables():
    """Get list of all expected tables from models"""
    import_model_modules()
    return set(Base.metadata.tables.keys())


def create_missing_tables(engine, existing_tables, expected_tables, verbose=True):
    """Create any missing tables, parents before children"""
    missing_tables = expected_tables - existing_tables

    if not missing_tables:
        if verbose:
            print(" All tables exist")
        return []

    if verbose:
        print(f"\n Found {len(missing_tables)} missing tables:")
        for table in sorted(missing_tables):
            print(f"  - {table}")
        print("\n Creating missing tables...")

    sorted_tables = sort_tables([Base.metadata.tables[name] for name in missing_tables])

    created = []
    failed = []
    for table in sorted_tables:
        try:
            table.create(engine, checkfirst=True)
            created.append(table.name)
        except OperationalError as e:
            error_msg = str(e).lower()
            if 'already exists' in error_msg or '1061' in error_msg:
                created.append(table.name)
                if verbose:
                    print(f"   {table.name}: already exists (skipped duplicate indexes)")
            else:
                failed.append((table.name, str(e)))
                if verbose:
                    print(f"   {table.name}: {str(e)[:80]}")

    if verbose and created:
        print(f"\n Successfully created {len(created)} tables")
    if verbose and failed:
        print(f"\n Failed to create {len(failed)} tables:")
        for table_name, error in failed:
            print(f"  - {table_name}: {error[:100]}")

    return created


def seed_system_rows(session, default_leaves=FALLBACK_DEFAULT_LEAVES, verbose=True):
    """
    Make sure the singleton rows exist:
    the maintenance flag (off), the default annual leave flag and one AISettings row.

    Returns:
        list: names of the rows that were created
    """
    seeded = []

    if not session.query(SystemFlag).filter_by(key=MAINTENANCE_FLAG).first():
        session.add(SystemFlag(key=MAINTENANCE_FLAG, is_active=False))
        seeded.append(MAINTENANCE_FLAG)

    if not session.query(SystemFlag).filter_by(key=DEFAULT_LEAVES_FLAG).first():
        session.add(SystemFlag(key=DEFAULT_LEAVES_FLAG, is_active=True, value=str(default_leaves)))
        seeded.append(DEFAULT_LEAVES_FLAG)

    session.commit()

    if not session.query(AISettings).first():
        create_default_ai_settings(session)
        seeded.append('ai_settings')

    if verbose:
        for name in seeded:
            print(f"   ✓ Seeded {name}")
    return seeded


def initialize_database(database, default_leaves=FALLBACK_DEFAULT_LEAVES, verbose=True):
    """
    Main function to initialize and verify database integrity
    Returns: (success: bool, created_tables: list, issues: list)
    """
    if verbose:
        print("\n" + "=" * 60)
        print("DATABASE INITIALIZATION & INTEGRITY CHECK")
        print("=" * 60)
        print(f"Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        print(f"\nDatabase: {database!r}")
        print("\n Checking database connection...")

    try:
        database.ping()
        if verbose:
            print("Database connection successful")
    except Exception as e:
        print(f" Database connection failed: {e}")
        return False, [], [{'error': str(e)}]

    existing_tables = get_existing_tables(database.engine)
    expected_tables = get_expected_tables()
    if verbose:
        print(f"\nExisting tables: {len(existing_tables)}")
        print(f"Expected tables: {len(expected_tables)}")

    created_tables = create_missing_tables(database.engine, existing_tables, expected_tables, verbose)

    issues = []
    session = database.session()
    try:
        seed_system_rows(session, default_leaves, verbose)
    except Exception as e:
        session.rollback()
        issues.append({'error': f"Seeding failed: {e}"})
        print(f" Seeding system rows failed: {e}")
    finally:
        session.close()

    if verbose:
        print("\n" + "=" * 60)
        if issues:
            print("[WARNING] Database initialization finished with issues")
        elif created_tables:
            print("[OK] Database initialization completed")
            print(f"    - Created {len(created_tables)} new tables")
        else:
            print("[OK] Database is up to date")
        print("=" * 60)

    return not issues, created_tables, issues


def run_on_startup(database=None, config=None, verbose=True):
    """Wrapper function to run on application startup"""
    database = database or init_database(config)
    default_leaves = getattr(config, 'DEFAULT_ANNUAL_LEAVES', FALLBACK_DEFAULT_LEAVES)
    success, created_tables, issues = initialize_database(database, default_leaves, verbose)

    if not success:
        print("\n[WARNING] Database initialization failed!")
        print("The application may not work correctly.")
        print("Please check the database configuration and try again.\n")
        return False

    return True


if __name__ == '__main__':
    """Run standalone"""
    success = run_on_startup()
    sys.exit(0 if success else 1)
