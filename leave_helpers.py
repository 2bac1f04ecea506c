"""
Leave Management Helper Functions

Balances are created lazily from the system-wide default. Approve, reject and
cancel each run as one transaction (row lock, status check, update, commit)
and report back as {success, message, remaining_balance}.
"""

from datetime import datetime, date
from dateutil.relativedelta import relativedelta
import logging

logger = logging.getLogger(__name__)

FALLBACK_DEFAULT_LEAVES = 14
DEFAULT_PAGE_SIZE = 10


def _parse_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value), '%Y-%m-%d').date()


# ===== SYSTEM DEFAULT =====

def get_system_default_leaves(session, fallback=FALLBACK_DEFAULT_LEAVES):
    """Default annual leave days for new balances (system_flags, falling back to 14)"""
    from models import SystemFlag, DEFAULT_LEAVES_FLAG

    flag = session.query(SystemFlag).filter_by(key=DEFAULT_LEAVES_FLAG).first()
    if not flag or flag.value in (None, ''):
        return fallback
    try:
        return int(flag.value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid default_annual_leaves value {flag.value!r}; using {fallback}")
        return fallback


def set_system_default_leaves(session, days):
    """
    Returns:
        tuple: (success, message)
    """
    from models import SystemFlag, DEFAULT_LEAVES_FLAG

    try:
        days = int(days)
    except (TypeError, ValueError):
        return False, "Default leave days must be a whole number."
    if days < 0:
        return False, "Default leave days cannot be negative."

    try:
        flag = session.query(SystemFlag).filter_by(key=DEFAULT_LEAVES_FLAG).first()
        if not flag:
            flag = SystemFlag(key=DEFAULT_LEAVES_FLAG, is_active=True)
            session.add(flag)
        flag.value = str(days)
        session.commit()
        logger.info(f"System default annual leaves set to {days}")
        return True, f"Default annual leaves set to {days}."
    except Exception as e:
        session.rollback()
        logger.error(f"Error setting default leaves: {e}")
        return False, "Failed to update default leaves. Please contact Creator - Shan"


# ===== BALANCES =====

def get_leave_balance(session, teacher_id, commit=True):
    """
    Get a teacher's balance, creating it from the system default on first access.
    With commit=False a new row is only flushed (for callers inside a transaction).

    Returns:
        TeacherLeaveBalance
    """
    from leave_models import TeacherLeaveBalance

    balance = session.query(TeacherLeaveBalance).filter_by(teacher_id=teacher_id).first()
    if balance:
        return balance

    balance = TeacherLeaveBalance(
        teacher_id=teacher_id,
        total_leaves=get_system_default_leaves(session),
        used_leaves=0
    )
    session.add(balance)
    if commit:
        session.commit()
    else:
        session.flush()
    logger.info(f"Created leave balance for teacher {teacher_id}: {balance.total_leaves} days")
    return balance


def get_all_teacher_balances(session):
    """Balance for every teacher (creating missing ones), ordered by name"""
    from models import User, ROLE_TEACHER

    teachers = session.query(User).filter(User.role == ROLE_TEACHER).order_by(User.name).all()
    return [get_leave_balance(session, t.id) for t in teachers]


def update_teacher_total_leaves(session, teacher_id, total_leaves):
    """
    Returns:
        tuple: (success, message)
    """
    try:
        total_leaves = int(total_leaves)
    except (TypeError, ValueError):
        return False, "Total leaves must be a whole number."
    if total_leaves < 0:
        return False, "Total leaves cannot be negative."

    balance = get_leave_balance(session, teacher_id)
    if total_leaves < balance.used_leaves:
        return False, f"Total leaves cannot be less than leaves already used ({balance.used_leaves})."

    try:
        balance.total_leaves = total_leaves
        session.commit()
        logger.info(f"Leave total for teacher {teacher_id} set to {total_leaves}")
        return True, "Leave balance updated."
    except Exception as e:
        session.rollback()
        logger.error(f"Error updating leave total: {e}")
        return False, "Failed to update leave balance. Please contact Creator - Shan"


# ===== APPLICATIONS =====

def validate_leave_date(leave_date, today=None):
    """Leave date must be strictly after today"""
    today = today or date.today()
    if leave_date < today + relativedelta(days=1):
        return False, 'Leave date must be in the future.'
    return True, None


def submit_leave_application(session, teacher_id, leave_data, today=None):
    """
    Submit a single-day leave application (Pending).

    Args:
        leave_data: dict with leave_date (date or YYYY-MM-DD), leave_type, reason

    Returns:
        tuple: (success, leave_application_or_error_message)
    """
    from leave_models import AnnualLeaveApplication, LeaveTypeEnum, LeaveStatusEnum, BLOCKING_STATUSES

    try:
        leave_date = _parse_date(leave_data['leave_date'])
    except (KeyError, ValueError):
        return False, 'A valid leave date (YYYY-MM-DD) is required.'

    try:
        leave_type = LeaveTypeEnum(leave_data.get('leave_type') or LeaveTypeEnum.ANNUAL.value)
    except ValueError:
        return False, f"Unknown leave type '{leave_data.get('leave_type')}'."

    is_valid, error_msg = validate_leave_date(leave_date, today)
    if not is_valid:
        return False, error_msg

    balance = get_leave_balance(session, teacher_id)
    if balance.remaining_leaves <= 0:
        return False, 'You have no remaining leave days.'

    # Checked by query, not a constraint
    existing = session.query(AnnualLeaveApplication).filter(
        AnnualLeaveApplication.teacher_id == teacher_id,
        AnnualLeaveApplication.leave_date == leave_date,
        AnnualLeaveApplication.status.in_(BLOCKING_STATUSES)
    ).first()
    if existing:
        return False, f"You already have a 'Pending' or 'Approved' leave application for {leave_date.isoformat()}."

    try:
        leave_app = AnnualLeaveApplication(
            teacher_id=teacher_id,
            leave_date=leave_date,
            leave_type=leave_type,
            reason=(leave_data.get('reason') or '').strip() or None,
            status=LeaveStatusEnum.PENDING
        )
        session.add(leave_app)
        session.commit()
        logger.info(f"Leave applied: teacher={teacher_id} date={leave_date}")
        return True, leave_app
    except Exception as e:
        session.rollback()
        logger.error(f"Error applying leave: {e}")
        return False, "Failed to submit leave application. Please contact Creator - Shan"


def _decision(success, message, remaining_balance=None):
    return {'success': success, 'message': message, 'remaining_balance': remaining_balance}


def _locked_application(session, leave_id):
    from leave_models import AnnualLeaveApplication
    return session.query(AnnualLeaveApplication).filter_by(id=leave_id).with_for_update().first()


def approve_leave_application(session, leave_id, reviewer_id, reviewer_notes=None):
    """
    Approve a pending application and charge one day to the teacher's balance.

    Returns:
        dict: {success, message, remaining_balance}
    """
    from leave_models import LeaveStatusEnum

    try:
        leave_app = _locked_application(session, leave_id)
        if not leave_app:
            session.rollback()
            return _decision(False, "Leave application not found")
        if leave_app.status != LeaveStatusEnum.PENDING:
            session.rollback()
            return _decision(False, f"Leave is already {leave_app.status.value}")

        balance = get_leave_balance(session, leave_app.teacher_id, commit=False)

        leave_app.status = LeaveStatusEnum.APPROVED
        leave_app.reviewed_by = reviewer_id
        leave_app.decision_time = datetime.utcnow()
        leave_app.reviewer_notes = reviewer_notes
        balance.used_leaves = (balance.used_leaves or 0) + 1

        session.commit()
        logger.info(f"Leave approved: leave_id={leave_id} by reviewer={reviewer_id}")
        return _decision(True, "Leave approved successfully", balance.remaining_leaves)
    except Exception as e:
        session.rollback()
        logger.error(f"Error approving leave: {e}")
        return _decision(False, "Failed to approve leave. Please contact Creator - Shan")


def reject_leave_application(session, leave_id, reviewer_id, reviewer_notes=None):
    """
    Reject a pending application. The balance is untouched.

    Returns:
        dict: {success, message, remaining_balance}
    """
    from leave_models import LeaveStatusEnum

    try:
        leave_app = _locked_application(session, leave_id)
        if not leave_app:
            session.rollback()
            return _decision(False, "Leave application not found")
        if leave_app.status != LeaveStatusEnum.PENDING:
            session.rollback()
            return _decision(False, f"Leave is already {leave_app.status.value}")

        leave_app.status = LeaveStatusEnum.REJECTED
        leave_app.reviewed_by = reviewer_id
        leave_app.decision_time = datetime.utcnow()
        leave_app.reviewer_notes = reviewer_notes

        session.commit()
        balance = get_leave_balance(session, leave_app.teacher_id)
        logger.info(f"Leave rejected: leave_id={leave_id} by reviewer={reviewer_id}")
        return _decision(True, "Leave rejected successfully", balance.remaining_leaves)
    except Exception as e:
        session.rollback()
        logger.error(f"Error rejecting leave: {e}")
        return _decision(False, "Failed to reject leave. Please contact Creator - Shan")


def cancel_leave_application(session, leave_id, teacher_id):
    """
    Cancel the teacher's own application while it is still pending.

    Returns:
        dict: {success, message, remaining_balance}
    """
    from leave_models import LeaveStatusEnum

    try:
        leave_app = _locked_application(session, leave_id)
        if not leave_app or leave_app.teacher_id != teacher_id:
            session.rollback()
            return _decision(False, "Leave application not found")
        if leave_app.status != LeaveStatusEnum.PENDING:
            session.rollback()
            return _decision(False, "Only pending applications can be cancelled")

        leave_app.status = LeaveStatusEnum.CANCELLED
        leave_app.decision_time = datetime.utcnow()

        session.commit()
        balance = get_leave_balance(session, teacher_id)
        logger.info(f"Leave cancelled: leave_id={leave_id}")
        return _decision(True, "Leave application cancelled successfully", balance.remaining_leaves)
    except Exception as e:
        session.rollback()
        logger.error(f"Error cancelling leave: {e}")
        return _decision(False, "Failed to cancel leave. Please contact Creator - Shan")


# ===== LISTINGS =====

def get_teacher_leave_applications(session, teacher_id, page=1, per_page=DEFAULT_PAGE_SIZE):
    """
    A teacher's applications, newest leave date first.

    Returns:
        tuple: (applications, total_count)
    """
    from leave_models import AnnualLeaveApplication

    page = max(int(page or 1), 1)
    query = session.query(AnnualLeaveApplication).filter_by(teacher_id=teacher_id)
    total = query.count()
    applications = query.order_by(
        AnnualLeaveApplication.leave_date.desc(),
        AnnualLeaveApplication.created_at.desc()
    ).offset((page - 1) * per_page).limit(per_page).all()
    return applications, total


def get_pending_leave_applications(session):
    from leave_models import AnnualLeaveApplication, LeaveStatusEnum

    return session.query(AnnualLeaveApplication).filter_by(
        status=LeaveStatusEnum.PENDING
    ).order_by(AnnualLeaveApplication.leave_date, AnnualLeaveApplication.created_at).all()


def get_all_leave_applications(session, filters=None):
    """
    Every application, filtered by teacher_id / status / leave_type / date_from / date_to.
    Newest leave date first.
    """
    from leave_models import AnnualLeaveApplication, LeaveStatusEnum, LeaveTypeEnum

    filters = filters or {}
    query = session.query(AnnualLeaveApplication)

    if filters.get('teacher_id'):
        query = query.filter(AnnualLeaveApplication.teacher_id == filters['teacher_id'])
    if filters.get('status'):
        query = query.filter(AnnualLeaveApplication.status == LeaveStatusEnum(filters['status']))
    if filters.get('leave_type'):
        query = query.filter(AnnualLeaveApplication.leave_type == LeaveTypeEnum(filters['leave_type']))
    if filters.get('date_from'):
        query = query.filter(AnnualLeaveApplication.leave_date >= _parse_date(filters['date_from']))
    if filters.get('date_to'):
        query = query.filter(AnnualLeaveApplication.leave_date <= _parse_date(filters['date_to']))

    return query.order_by(
        AnnualLeaveApplication.leave_date.desc(),
        AnnualLeaveApplication.created_at.desc()
    ).all()


def get_teachers_on_leave_for_date(session, on_date=None):
    """Approved leave for one date, as dicts with teacher name, type and reason"""
    from leave_models import AnnualLeaveApplication, LeaveStatusEnum

    on_date = _parse_date(on_date) if on_date else date.today()
    applications = session.query(AnnualLeaveApplication).filter(
        AnnualLeaveApplication.leave_date == on_date,
        AnnualLeaveApplication.status == LeaveStatusEnum.APPROVED
    ).all()
    return [{
        'teacher_id': a.teacher_id,
        'teacher_name': a.teacher.name if a.teacher else 'Unknown Teacher',
        'leave_type': a.leave_type.value,
        'reason': a.reason,
    } for a in applications]
