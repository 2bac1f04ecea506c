"""
Behavior report helpers
"""

import logging
from sqlalchemy import or_

from teacher_models import BehaviorReport

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ('student_name', 'class_level', 'incident', 'action_taken')


def create_behavior_report(db_session, teacher_id, data):
    """
    Returns:
        tuple: (success, message, report)
    """
    values = {name: (data.get(name) or '').strip() for name in REQUIRED_FIELDS}
    missing = [name for name, value in values.items() if not value]
    if missing:
        return False, f"Missing required fields: {', '.join(missing)}", None

    try:
        report = BehaviorReport(teacher_id=teacher_id, **values)
        db_session.add(report)
        db_session.commit()
        logger.info(f"Behavior report filed for {report.student_name} by {teacher_id}")
        return True, "Behavior report submitted successfully", report
    except Exception as e:
        db_session.rollback()
        logger.error(f"Behavior report insert error: {e}")
        return False, "Please contact creator - Shan", None


def get_recent_reports(db_session, teacher_id=None, limit=5):
    query = db_session.query(BehaviorReport)
    if teacher_id:
        query = query.filter_by(teacher_id=teacher_id)
    return query.order_by(BehaviorReport.created_at.desc()).limit(limit).all()


def get_all_reports(db_session, class_level=None, search=None, sort='newest'):
    """All reports, optionally for one class level and matching a search term"""
    query = db_session.query(BehaviorReport)
    if class_level:
        query = query.filter(BehaviorReport.class_level == class_level)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(
            BehaviorReport.student_name.ilike(term),
            BehaviorReport.incident.ilike(term),
            BehaviorReport.action_taken.ilike(term),
        ))
    order = BehaviorReport.created_at.asc() if sort == 'oldest' else BehaviorReport.created_at.desc()
    return query.order_by(order).all()
