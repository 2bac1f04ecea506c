"""
School calendar event helpers
"""

from datetime import datetime
import logging

from announcement_models import Event
from announcement_helpers import _parse_datetime

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ('title', 'description', 'event_type', 'start_time', 'end_time',
                   'location', 'is_all_day', 'audience')


def _check_range(start_time, end_time):
    if not start_time or not end_time:
        return False, 'Event start and end time are required.'
    if end_time <= start_time:
        return False, 'Event end time must be after start time.'
    return True, None


def create_event(db_session, user, data):
    """
    Returns:
        tuple: (success, message, event)
    """
    if not user or not getattr(user, 'id', None):
        return False, 'User not authenticated. Cannot create event.', None

    title = (data.get('title') or '').strip()
    if not title:
        return False, 'Event title is required.', None

    try:
        start_time = _parse_datetime(data.get('start_time'))
        end_time = _parse_datetime(data.get('end_time'))
    except ValueError:
        return False, 'Event times must be ISO-8601 datetimes.', None

    ok, error = _check_range(start_time, end_time)
    if not ok:
        return False, error, None

    try:
        event = Event(
            title=title,
            description=data.get('description'),
            event_type=data.get('event_type') or 'general',
            start_time=start_time,
            end_time=end_time,
            location=data.get('location'),
            is_all_day=bool(data.get('is_all_day')),
            audience=list(data.get('audience') or []),
            created_by=user.id,
        )
        db_session.add(event)
        db_session.commit()
        logger.info(f"Event created: {title!r} {start_time} - {end_time}")
        return True, 'Event created.', event
    except Exception as e:
        db_session.rollback()
        logger.error(f"Error creating event: {e}")
        return False, 'Failed to create event. Please contact Creator - Shan', None


def get_events(db_session, start=None, end=None, event_type=None):
    """Events overlapping [start, end], ordered by start time"""
    query = db_session.query(Event)
    if start:
        query = query.filter(Event.end_time >= _parse_datetime(start))
    if end:
        query = query.filter(Event.start_time <= _parse_datetime(end))
    if event_type:
        query = query.filter(Event.event_type == event_type)
    return query.order_by(Event.start_time).all()


def update_event(db_session, event_id, data):
    """
    Returns:
        tuple: (success, message, event)
    """
    event = db_session.get(Event, event_id)
    if not event:
        return False, 'Event not found.', None

    try:
        start_time = _parse_datetime(data['start_time']) if 'start_time' in data else event.start_time
        end_time = _parse_datetime(data['end_time']) if 'end_time' in data else event.end_time
    except ValueError:
        return False, 'Event times must be ISO-8601 datetimes.', None

    ok, error = _check_range(start_time, end_time)
    if not ok:
        return False, error, None

    try:
        for name in EDITABLE_FIELDS:
            if name in data and name not in ('start_time', 'end_time'):
                setattr(event, name, data[name])
        event.start_time = start_time
        event.end_time = end_time
        db_session.commit()
        return True, 'Event updated.', event
    except Exception as e:
        db_session.rollback()
        logger.error(f"Error updating event {event_id}: {e}")
        return False, 'Failed to update event. Please contact Creator - Shan', None


def delete_event(db_session, event_id):
    event = db_session.get(Event, event_id)
    if not event:
        return False, 'Event not found.'
    try:
        db_session.delete(event)
        db_session.commit()
        return True, 'Event deleted.'
    except Exception as e:
        db_session.rollback()
        logger.error(f"Error deleting event {event_id}: {e}")
        return False, 'Failed to delete event. Please contact Creator - Shan'


def check_event_conflicts(db_session, start_time, end_time, exclude_event_id=None):
    """Events whose time range overlaps [start_time, end_time)"""
    start_time = _parse_datetime(start_time)
    end_time = _parse_datetime(end_time)
    query = db_session.query(Event).filter(
        Event.start_time < end_time,
        Event.end_time > start_time
    )
    if exclude_event_id:
        query = query.filter(Event.id != exclude_event_id)
    return query.order_by(Event.start_time).all()
