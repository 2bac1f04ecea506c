"""
Announcement helper functions
"""

from datetime import datetime
import logging

from announcement_models import Announcement, URGENCY_LEVELS
from models import ROLES, ROLE_ADMIN

logger = logging.getLogger(__name__)


def _parse_datetime(value):
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace('Z', '+00:00')).replace(tzinfo=None)


def parse_urgency(value):
    """Accept a level name ('low', 'normal', 'high', 'critical') or its number"""
    if value in (None, ''):
        return URGENCY_LEVELS['normal']
    if isinstance(value, str) and value.lower() in URGENCY_LEVELS:
        return URGENCY_LEVELS[value.lower()]
    return int(value)


def _clean_audience(audience):
    audience = audience or []
    unknown = [role for role in audience if role not in ROLES]
    if unknown:
        raise ValueError(f"Unknown audience role(s): {', '.join(unknown)}")
    return list(audience)


def create_announcement(db_session, user, data):
    """
    Returns:
        tuple: (success, message, announcement)
    """
    if not user or not getattr(user, 'id', None):
        return False, 'User not authenticated.', None

    title = (data.get('title') or '').strip()
    body = (data.get('body') or '').strip()
    if not title or not body:
        return False, 'Title and body are required.', None

    try:
        announcement = Announcement(
            title=title,
            body=body,
            audience=_clean_audience(data.get('audience')),
            urgency=parse_urgency(data.get('urgency')),
            expires_at=_parse_datetime(data.get('expires_at')),
            creator_id=user.id,
        )
    except ValueError as e:
        return False, str(e), None

    try:
        db_session.add(announcement)
        db_session.commit()
        logger.info(f"Announcement created: {title!r} by {user.id}")
        return True, 'Announcement published.', announcement
    except Exception as e:
        db_session.rollback()
        logger.error(f"Error creating announcement: {e}")
        return False, 'Failed to create announcement. Please contact Creator - Shan', None


def can_manage_announcement(user, announcement):
    """Creator and admin manage every announcement; others only their own"""
    if not user:
        return False
    return user.has_role_at_least(ROLE_ADMIN) or announcement.creator_id == user.id


def update_announcement(db_session, user, announcement_id, data):
    """
    Returns:
        tuple: (success, message, announcement)
    """
    if not user or not getattr(user, 'id', None):
        return False, 'User not authenticated.', None

    announcement = db_session.get(Announcement, announcement_id)
    if not announcement:
        return False, 'Announcement not found.', None
    if not can_manage_announcement(user, announcement):
        return False, 'You can only edit your own announcements.', None

    try:
        if 'title' in data:
            announcement.title = (data['title'] or '').strip() or announcement.title
        if 'body' in data:
            announcement.body = (data['body'] or '').strip() or announcement.body
        if 'audience' in data:
            announcement.audience = _clean_audience(data['audience'])
        if 'urgency' in data:
            announcement.urgency = parse_urgency(data['urgency'])
        if 'expires_at' in data:
            announcement.expires_at = _parse_datetime(data['expires_at'])
    except ValueError as e:
        db_session.rollback()
        return False, str(e), None

    try:
        db_session.commit()
        return True, 'Announcement updated.', announcement
    except Exception as e:
        db_session.rollback()
        logger.error(f"Error updating announcement: {e}")
        return False, 'Failed to update announcement. Please contact Creator - Shan', None


def delete_announcement(db_session, user, announcement_id):
    """
    Returns:
        tuple: (success, message)
    """
    if not user or not getattr(user, 'id', None):
        return False, 'User not authenticated.'

    announcement = db_session.get(Announcement, announcement_id)
    if not announcement:
        return False, 'Announcement not found.'
    if not can_manage_announcement(user, announcement):
        return False, 'Only the creator, an admin or the author can delete this announcement.'

    try:
        db_session.delete(announcement)
        db_session.commit()
        logger.info(f"Announcement deleted: {announcement_id} by {user.id}")
        return True, 'Announcement deleted.'
    except Exception as e:
        db_session.rollback()
        logger.error(f"Error deleting announcement: {e}")
        return False, 'Failed to delete announcement. Please contact Creator - Shan'


def get_active_announcements(db_session, role=None, now=None):
    """Unexpired announcements for a role, most urgent first, then newest"""
    now = now or datetime.utcnow()
    announcements = db_session.query(Announcement).filter(
        (Announcement.expires_at.is_(None)) | (Announcement.expires_at > now)
    ).order_by(Announcement.urgency.desc(), Announcement.created_at.desc()).all()

    if role:
        announcements = [a for a in announcements if a.is_visible_to(role)]
    return announcements
