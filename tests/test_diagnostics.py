"""
Diagnostics, school status report, maintenance monitor and startup seeding tests

Run with: pytest tests/test_diagnostics.py -v
"""

import sys
from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock

sys.path.insert(0, str(Path(__file__).parent.parent))

from diagnostics import AISystemDiagnostics, PASS, FAIL, WARNING
from export_helpers import build_school_status_report
from maintenance import MaintenanceMonitor, get_maintenance_flag
from init_db import initialize_database
from chat_models import AISettings
from models import SystemFlag, DEFAULT_LEAVES_FLAG


def statuses(health, component):
    return [r.status for r in health.results if r.component == component]


# =============================================================================
# DIAGNOSTICS
# =============================================================================

def test_unconfigured_settings_are_critical(db):
    health = AISystemDiagnostics(db).run_full_diagnostic()

    assert health.overall == 'critical'
    assert statuses(health, 'Database') == [PASS]
    assert statuses(health, 'AI Settings') == [WARNING]
    assert statuses(health, 'Model Config') == [FAIL]
    assert health.summary['failed'] == 1


def test_configured_settings_are_healthy(db, ai_settings):
    health = AISystemDiagnostics(db).run_full_diagnostic()

    assert health.overall == 'healthy'
    assert health.summary['failed'] == 0
    assert health.to_dict()['results'][0]['component'] == 'Database'


def test_automated_fix_resets_index(db, ai_settings):
    ai_settings.current_index = 9
    db.commit()

    fixes = AISystemDiagnostics(db).run_automated_fixes()

    assert [f.message for f in fixes] == ['Reset invalid current_index to 0']
    assert db.query(AISettings).first().current_index == 0


def test_automated_fix_recreates_settings(db):
    db.query(AISettings).delete()
    db.commit()

    fixes = AISystemDiagnostics(db).run_automated_fixes()

    assert fixes[0].message == 'Created default AI settings'
    assert db.query(AISettings).count() == 1


# =============================================================================
# SCHOOL STATUS REPORT
# =============================================================================

def test_school_status_report_sections(db, teacher):
    report = build_school_status_report(db, now=datetime(2026, 5, 4, 9, 0))

    assert report.startswith('SCHOOL STATUS REPORT FOR Monday, May 04, 2026')
    assert '- Total Teachers: 1' in report
    assert '- No Check-in: 1 teachers' in report
    assert 'TEACHERS ON LEAVE TODAY: 0\n• None' in report
    assert '• No classes currently in session' in report
    assert '• No recent behavior reports' in report


# =============================================================================
# MAINTENANCE MONITOR
# =============================================================================

def test_monitor_persists_and_notifies(database, db, app):
    monitor = MaintenanceMonitor(database)
    listener = MagicMock()
    monitor.subscribe(listener)

    assert monitor.set_active(True) == (True, 'Maintenance mode enabled')
    monitor.set_active(True)

    assert monitor.is_active is True
    listener.assert_called_once_with(True)
    db.expire_all()
    assert get_maintenance_flag(db).is_active is True


def test_monitor_refresh_reads_database(database, db, app):
    monitor = MaintenanceMonitor(database)
    get_maintenance_flag(db).is_active = True
    db.commit()

    assert monitor.refresh() is True


def test_watcher_needs_positive_interval(database, app):
    monitor = MaintenanceMonitor(database, poll_seconds=0)
    monitor.start_watcher()
    assert monitor.is_watching() is False


# =============================================================================
# STARTUP SEEDING
# =============================================================================

def test_initialize_database_is_idempotent(database, db, app):
    success, created, issues = initialize_database(database, verbose=False)

    assert success is True
    assert created == []
    assert issues == []
    assert db.query(AISettings).count() == 1
    assert db.query(SystemFlag).filter_by(key=DEFAULT_LEAVES_FLAG).one().value == '14'
