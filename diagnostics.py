"""
AI system diagnostics
Read-only health checks over the database and AI gateway settings,
plus a couple of automated repairs the Creator can trigger.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional
import logging
import time

from chat_models import AISettings, DEFAULT_ACCESS_LEVEL
from ai_helpers import validate_api_key
from models import User, ROLES

logger = logging.getLogger(__name__)

PASS = 'pass'
FAIL = 'fail'
WARNING = 'warning'

SLOW_QUERY_MS = 1000


@dataclass
class DiagnosticResult:
    component: str
    status: str
    message: str
    details: Optional[Any] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self):
        return {
            'component': self.component,
            'status': self.status,
            'message': self.message,
            'details': self.details,
            'timestamp': self.timestamp.isoformat(),
        }


@dataclass
class SystemHealth:
    overall: str
    results: List[DiagnosticResult]
    summary: dict

    def to_dict(self):
        return {
            'overall': self.overall,
            'results': [r.to_dict() for r in self.results],
            'summary': dict(self.summary),
        }


def create_default_ai_settings(db_session):
    settings = AISettings(api_keys=[], model='', access_level=dict(DEFAULT_ACCESS_LEVEL), current_index=0)
    db_session.add(settings)
    db_session.commit()
    logger.info("✅ Default AI settings created")
    return settings


class AISystemDiagnostics:
    """Runs every check in order and grades the system from the results"""

    def __init__(self, db_session):
        self.session = db_session
        self.results: List[DiagnosticResult] = []

    def _add(self, component, status, message, details=None):
        self.results.append(DiagnosticResult(component, status, message, details))

    def _settings(self):
        return self.session.query(AISettings).first()

    def run_full_diagnostic(self) -> SystemHealth:
        self.results = []
        self.check_database()
        self.check_ai_settings()
        self.check_api_keys()
        self.check_model_configuration()
        self.check_role_access()
        self.check_performance()
        health = self.generate_health_report()
        logger.info(f"Diagnostics finished: {health.overall} {health.summary}")
        return health

    def check_database(self):
        try:
            self.session.query(AISettings.id).limit(1).all()
            self._add('Database', PASS, 'Connection successful')
        except Exception as e:
            self.session.rollback()
            logger.error(f"❌ Diagnostics database check failed: {e}")
            self._add('Database', FAIL, f"Connection error: {e}")

    def check_ai_settings(self):
        try:
            settings = self._settings()
        except Exception as e:
            self.session.rollback()
            self._add('AI Settings', FAIL, f"Query failed: {e}")
            return

        if not settings:
            self._add('AI Settings', WARNING, 'No AI settings found - creating default')
            try:
                create_default_ai_settings(self.session)
                self._add('AI Settings', PASS, 'Default AI settings created successfully')
            except Exception as e:
                self.session.rollback()
                self._add('AI Settings', FAIL, f"Failed to create default settings: {e}")
            return

        issues = []
        if not isinstance(settings.api_keys, list):
            issues.append('api_keys is not an array')
        elif not settings.api_keys:
            issues.append('No API keys configured')
        if not (settings.model or '').strip():
            issues.append('Model not configured')
        if not isinstance(settings.access_level, dict):
            issues.append('Access level not properly configured')

        if issues:
            self._add('AI Settings', WARNING, f"Configuration issues: {', '.join(issues)}", {'issues': issues})
        else:
            self._add('AI Settings', PASS,
                      f"Settings valid - {len(settings.api_keys)} keys, model: {settings.model}")

    def check_api_keys(self):
        settings = self._settings()
        if not settings:
            self._add('API Keys', FAIL, 'Cannot retrieve API keys for testing')
            return

        keys = settings.api_keys or []
        if not keys:
            self._add('API Keys', WARNING, 'No API keys configured')
            return

        invalid = [k for k in keys if not validate_api_key(k)]
        if invalid:
            self._add('API Keys', WARNING, f"{len(invalid)} keys appear invalid",
                      {'invalid_count': len(invalid)})
        if settings.current_index < 0 or settings.current_index >= len(keys):
            self._add('API Keys', WARNING, f"Invalid current_index: {settings.current_index}")

        self._add('API Keys', PASS, f"{len(keys)} keys configured, current index: {settings.current_index}")

    def check_model_configuration(self):
        settings = self._settings()
        if not settings:
            self._add('Model Config', FAIL, 'Cannot retrieve model configuration')
            return

        model = (settings.model or '').strip()
        if not model:
            self._add('Model Config', FAIL, 'No model configured - AI will be blocked')
        elif len(model) < 3:
            self._add('Model Config', WARNING, f'Model name seems too short: "{model}"')
        else:
            self._add('Model Config', PASS, f'Model configured: "{model}"')

    def check_role_access(self):
        settings = self._settings()
        if not settings:
            self._add('Role Access', FAIL, 'Cannot retrieve access level configuration')
            return

        access = settings.access_level
        if not isinstance(access, dict):
            self._add('Role Access', FAIL, 'Access level not properly configured')
            return

        missing = [role for role in ROLES if role not in access]
        if missing:
            self._add('Role Access', WARNING, f"Missing role configurations: {', '.join(missing)}")
        else:
            enabled = [role for role in ROLES if access.get(role) is True]
            self._add('Role Access', PASS, f"Access configured for: {', '.join(enabled)}")

    def check_performance(self):
        started = time.perf_counter()
        try:
            query_started = time.perf_counter()
            self.session.query(User.id).limit(1).all()
            query_ms = (time.perf_counter() - query_started) * 1000
            if query_ms > SLOW_QUERY_MS:
                self._add('Performance', WARNING, f"Slow database query: {query_ms:.2f}ms")
            else:
                self._add('Performance', PASS, f"Database query time: {query_ms:.2f}ms")
            total_ms = (time.perf_counter() - started) * 1000
            self._add('Performance', PASS, f"Diagnostic completed in {total_ms:.2f}ms")
        except Exception as e:
            self.session.rollback()
            self._add('Performance', FAIL, f"Performance test failed: {e}")

    def generate_health_report(self) -> SystemHealth:
        summary = {
            'passed': sum(1 for r in self.results if r.status == PASS),
            'failed': sum(1 for r in self.results if r.status == FAIL),
            'warnings': sum(1 for r in self.results if r.status == WARNING),
        }
        if summary['failed'] > 0:
            overall = 'critical'
        elif summary['warnings'] > 2:
            overall = 'degraded'
        else:
            overall = 'healthy'
        return SystemHealth(overall=overall, results=list(self.results), summary=summary)

    def run_automated_fixes(self) -> List[DiagnosticResult]:
        fixes = []
        try:
            settings = self._settings()
            if not settings:
                settings = create_default_ai_settings(self.session)
                fixes.append(DiagnosticResult('Auto-Fix', PASS, 'Created default AI settings'))

            keys = settings.api_keys or []
            if settings.current_index < 0 or (keys and settings.current_index >= len(keys)):
                settings.current_index = 0
                self.session.commit()
                fixes.append(DiagnosticResult('Auto-Fix', PASS, 'Reset invalid current_index to 0'))
        except Exception as e:
            self.session.rollback()
            logger.error(f"❌ Automated fix failed: {e}")
            fixes.append(DiagnosticResult('Auto-Fix', FAIL, f"Automated fix failed: {e}"))
        return fixes
