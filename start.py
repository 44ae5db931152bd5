#!/usr/bin/env python3
"""
Hadaf Books - Simple Launcher

This script handles:
1. Python version check (requires 3.10+)
2. Dependency verification
3. Database setup (creates if missing, restores from backup if available)
4. Daily/weekly backup copy to BACKUP_DIR (default Documents/HadafBooks_Data)
5. Migration runner (applies pending migrations)
6. Flask API startup

Usage:
    python start.py

Settings (DATABASE_PATH, PORT, BACKUP_DIR, ...) are read from the environment
or a .env file.
"""

import sys
import os
import shutil
from pathlib import Path
from datetime import datetime, timedelta

sys.path.insert(0, str(Path(__file__).parent / "src"))


# =============================================================================
# BACKUP AND RESTORE FUNCTIONS
# =============================================================================

def get_backup_dir(config):
    """BACKUP_DIR if set, otherwise Documents/HadafBooks_Data"""
    if config.backup_dir:
        backup_dir = config.backup_dir
    elif sys.platform == 'win32':
        backup_dir = Path(os.environ.get('USERPROFILE', str(Path.home()))) / 'Documents' / 'HadafBooks_Data'
    else:  # macOS/Linux
        backup_dir = Path.home() / 'Documents' / 'HadafBooks_Data'

    backup_dir.mkdir(parents=True, exist_ok=True)
    return backup_dir


def backup_database(db_path, backup_dir):
    """
    Copy the database into backup_dir
    - Always copy to hadaf.db (latest)
    - Daily: hadaf_YYYY-MM-DD.db (keep 3)
    - Weekly: hadaf_week-NN.db on Sundays (keep 4)
    """
    if not db_path.exists():
        return False, "No database to backup"

    daily_dir = backup_dir / 'daily'
    weekly_dir = backup_dir / 'weekly'
    daily_dir.mkdir(exist_ok=True)
    weekly_dir.mkdir(exist_ok=True)

    today = datetime.now()

    shutil.copy2(db_path, backup_dir / 'hadaf.db')

    daily_file = daily_dir / f"hadaf_{today.strftime('%Y-%m-%d')}.db"
    if not daily_file.exists():
        shutil.copy2(db_path, daily_file)

    if today.weekday() == 6:  # Sunday
        week_num = today.isocalendar()[1]
        weekly_file = weekly_dir / f"hadaf_week-{week_num:02d}.db"
        if not weekly_file.exists():
            shutil.copy2(db_path, weekly_file)

    cleanup_old_daily_backups(daily_dir, days=3)
    cleanup_old_weekly_backups(weekly_dir, weeks=4)

    return True, str(backup_dir)


def cleanup_old_daily_backups(daily_dir, days=3):
    """Delete daily backups older than N days"""
    cutoff = datetime.now() - timedelta(days=days)
    for f in daily_dir.glob('hadaf_*.db'):
        try:
            file_date = datetime.strptime(f.stem.replace('hadaf_', ''), '%Y-%m-%d')
        except ValueError:
            continue  # not one of ours
        if file_date < cutoff:
            f.unlink()


def cleanup_old_weekly_backups(weekly_dir, weeks=4):
    """Keep only the most recent N weekly backups"""
    files = sorted(weekly_dir.glob('hadaf_week-*.db'), reverse=True)
    for f in files[weeks:]:
        f.unlink()


def restore_database(db_path, backup_dir):
    """Restore database from the latest backup if there is one"""
    latest = backup_dir / 'hadaf.db'
    if not latest.exists():
        return False, None

    db_path.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(latest, db_path)
    return True, datetime.fromtimestamp(latest.stat().st_mtime)


# =============================================================================
# STARTUP CHECKS
# =============================================================================

def check_python_version():
    """Verify Python 3.10+ is installed"""
    print("[1/6] Checking Python version...", end=" ")

    if sys.version_info < (3, 10):
        print("[ERROR]")
        print()
        print("=" * 60)
        print("ERROR: Python 3.10 or higher is required")
        print("=" * 60)
        print(f"You are using Python {sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}")
        print()
        sys.exit(1)

    print(f"[OK] Python {sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}")


def check_dependencies():
    """Verify required packages are installed"""
    print("[2/6] Checking dependencies...", end=" ")

    missing = []
    required = {
        'flask': 'Flask',
        'flask_cors': 'Flask-Cors',
        'dotenv': 'python-dotenv',
        'dateutil': 'python-dateutil',
        'faker': 'Faker',
    }

    for module, package in required.items():
        try:
            __import__(module)
        except ImportError:
            missing.append(package)

    if missing:
        print("[ERROR]")
        print()
        print("=" * 60)
        print("ERROR: Missing required packages")
        print("=" * 60)
        print()
        print("Missing packages:")
        for pkg in missing:
            print(f"  - {pkg}")
        print()
        print("To install all dependencies, run:")
        print("  pip install -e .")
        print()
        sys.exit(1)

    print("[OK]")


def setup_database(config):
    """Create the database on first run, restore it from backup, back it up and migrate it"""
    from hadaf_books.migration_runner import run_all_pending
    from hadaf_books.setup_sqlite import create_database

    db_path = config.database_path
    backup_dir = get_backup_dir(config)

    if not db_path.exists():
        print("[3/6] Database not found...", end="")

        restored, backup_date = restore_database(db_path, backup_dir)
        if restored:
            print()
            print(f"      Found backup from {backup_date.strftime('%B %d, %Y')}")
            print("      Restoring your data...", end=" ")
            print("[OK] Welcome back!")
        else:
            print()
            print("      Creating new database...", end=" ")
            if create_database(db_path):
                print("[OK]")
            else:
                print("[ERROR]")
                print()
                print("Failed to create database. Check error messages above.")
                sys.exit(1)
    else:
        print("[3/6] Database found...", end=" ")
        print("[OK]")

    print("[4/6] Backing up your data...", end=" ")
    success, location = backup_database(db_path, backup_dir)
    if success:
        print(f"[OK] Saved to {location}")
    else:
        print("[SKIP] No data yet")

    print("[5/6] Checking for migrations...", end=" ")
    applied = run_all_pending(db_path)
    if applied > 0:
        print(f"[OK] Applied {applied} migration(s)")
    else:
        print("[OK] No pending migrations")


def start_flask_server(config):
    """Launch the Flask API server"""
    from hadaf_books.api import create_app

    print("[6/6] Starting Hadaf Books server...")
    print()
    print("=" * 60)
    print("Hadaf Books is running!")
    print("=" * 60)
    print()
    print(f"  Server: http://{config.host}:{config.port}/api/health")
    print("  Press Ctrl+C to stop the server")
    print()

    app = create_app(config)
    app.run(host=config.host, port=config.port, debug=False, use_reloader=False)


def main():
    """Main entry point"""
    print()
    print("=" * 60)
    print("Hadaf Books - Small Business Bookkeeping")
    print("=" * 60)
    print()

    try:
        check_python_version()
        check_dependencies()

        from hadaf_books.config import configure_logging, load_config
        config = load_config()
        configure_logging(config.log_level)

        setup_database(config)
        start_flask_server(config)
    except KeyboardInterrupt:
        print()
        print()
        print("=" * 60)
        print("Server stopped. Thank you for using Hadaf Books!")
        print("=" * 60)
        print()
    except Exception as e:
        print()
        print()
        print("=" * 60)
        print("ERROR: An unexpected error occurred")
        print("=" * 60)
        print()
        print(f"Error: {e}")
        print()
        import traceback
        traceback.print_exc()
        print()
        sys.exit(1)


if __name__ == "__main__":
    main()
