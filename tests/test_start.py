import os
import time
from datetime import datetime, timedelta

import start
from hadaf_books.config import Config


def test_backup_writes_latest_and_daily_copy(tmp_path):
    db = tmp_path / "hadaf.db"
    db.write_bytes(b"books")
    backup_dir = tmp_path / "backups"
    backup_dir.mkdir()

    ok, location = start.backup_database(db, backup_dir)

    assert ok is True
    assert location == str(backup_dir)
    assert (backup_dir / "hadaf.db").read_bytes() == b"books"
    daily = backup_dir / "daily" / f"hadaf_{datetime.now().strftime('%Y-%m-%d')}.db"
    assert daily.read_bytes() == b"books"


def test_backup_without_database(tmp_path):
    assert start.backup_database(tmp_path / "missing.db", tmp_path) == (False, "No database to backup")


def test_daily_cleanup_keeps_recent_and_foreign_files(tmp_path):
    old = tmp_path / f"hadaf_{(datetime.now() - timedelta(days=10)).strftime('%Y-%m-%d')}.db"
    recent = tmp_path / f"hadaf_{datetime.now().strftime('%Y-%m-%d')}.db"
    foreign = tmp_path / "hadaf_notes.db"
    for f in (old, recent, foreign):
        f.write_bytes(b"x")

    start.cleanup_old_daily_backups(tmp_path, days=3)

    assert not old.exists()
    assert recent.exists()
    assert foreign.exists()


def test_weekly_cleanup_keeps_newest(tmp_path):
    for week in range(1, 7):
        (tmp_path / f"hadaf_week-{week:02d}.db").write_bytes(b"x")

    start.cleanup_old_weekly_backups(tmp_path, weeks=4)

    assert sorted(f.name for f in tmp_path.iterdir()) == [f"hadaf_week-{w:02d}.db" for w in range(3, 7)]


def test_restore_from_latest_backup(tmp_path):
    backup_dir = tmp_path / "backups"
    backup_dir.mkdir()
    db = tmp_path / "data" / "hadaf.db"

    assert start.restore_database(db, backup_dir) == (False, None)

    (backup_dir / "hadaf.db").write_bytes(b"saved")
    stamp = int(time.time()) - 3600
    os.utime(backup_dir / "hadaf.db", (stamp, stamp))

    restored, when = start.restore_database(db, backup_dir)
    assert restored is True
    assert db.read_bytes() == b"saved"
    assert when == datetime.fromtimestamp(stamp)


def test_backup_dir_from_config(tmp_path):
    target = tmp_path / "custom"
    assert start.get_backup_dir(Config(backup_dir=target)) == target
    assert target.is_dir()
