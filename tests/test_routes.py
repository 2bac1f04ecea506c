"""
HTTP tests for the Flask app: login, role guards, maintenance gate and the main dashboard flows

Run with: pytest tests/test_routes.py -v
"""

import sys
import json
from datetime import date, timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from auth_routes import INVALID_LOGIN_MESSAGE
from main import MAINTENANCE_MESSAGE
from leave_models import TeacherLeaveBalance
from timetable_models import Schedule
from conftest import PASSWORD


# =============================================================================
# AUTH
# =============================================================================

def test_root_redirects_to_login(client):
    response = client.get('/')
    assert response.status_code == 302
    assert response.headers['Location'].endswith('/login')


def test_staff_login(client, teacher):
    response = client.post('/login', json={'email': 'TOM@edusync.test ', 'password': PASSWORD})
    body = response.get_json()
    assert response.status_code == 200
    assert body['user']['role'] == 'teacher'
    assert body['redirect'] == '/teacher'

    me = client.get('/api/me').get_json()
    assert me['user']['name'] == 'Tom Teacher'


def test_bad_password(client, teacher):
    response = client.post('/login', json={'email': teacher.email, 'password': 'nope'})
    assert response.status_code == 401
    assert response.get_json()['error'] == INVALID_LOGIN_MESSAGE


def test_missing_credentials(client):
    response = client.post('/login', json={})
    assert response.status_code == 400


def test_creator_must_use_creator_login(client, creator):
    assert client.post('/login', json={'email': creator.email, 'password': PASSWORD}).status_code == 401
    assert client.post('/creator-login', json={'email': creator.email, 'password': PASSWORD}).status_code == 200


def test_logout(teacher_client):
    assert teacher_client.post('/logout').get_json()['success'] is True
    assert teacher_client.get('/api/me').status_code == 401


# =============================================================================
# ROLE GUARDS
# =============================================================================

def test_anonymous_gets_401(client):
    response = client.get('/head/')
    assert response.status_code == 401
    assert response.get_json()['error'] == 'Authentication required'


def test_wrong_role_gets_403(teacher_client):
    for path in ('/head/', '/admin/schedules', '/creator/users'):
        response = teacher_client.get(path)
        assert response.status_code == 403, path
        assert response.get_json()['error'] == 'Access denied for your role'


def test_creator_reaches_admin_and_head(creator_client):
    assert creator_client.get('/admin/schedules').status_code == 200
    assert creator_client.get('/head/').status_code == 200


def test_public_config(client):
    body = client.get('/api/config').get_json()
    assert body['success'] is True
    assert body['maintenance'] is False
    assert body['class_start_window_minutes'] == 15


def test_unknown_path_is_json_404(client):
    response = client.get('/does-not-exist')
    assert response.status_code == 404
    assert response.get_json() == {'success': False, 'error': 'Not found'}


# =============================================================================
# MAINTENANCE
# =============================================================================

def test_maintenance_gate(app, creator_client, teacher_client, client):
    response = creator_client.post('/creator/maintenance', json={'active': True})
    assert response.get_json() == {'success': True, 'message': 'Maintenance mode enabled', 'maintenance': True}

    blocked = teacher_client.get('/teacher/leave-balance')
    assert blocked.status_code == 503
    assert blocked.get_json() == {'success': False, 'maintenance': True, 'error': MAINTENANCE_MESSAGE}

    assert client.get('/login').status_code == 200
    assert client.get('/maintenance').get_json()['maintenance'] is True
    assert creator_client.get('/creator/users').status_code == 200

    creator_client.post('/creator/maintenance', json={'active': False})
    assert teacher_client.get('/teacher/leave-balance').status_code == 200


def test_maintenance_requires_active_field(creator_client):
    assert creator_client.post('/creator/maintenance', json={}).status_code == 400


# =============================================================================
# LEAVE FLOW
# =============================================================================

def test_teacher_applies_and_head_approves(db, teacher, teacher_client, head_client):
    leave_date = (date.today() + timedelta(days=7)).isoformat()
    response = teacher_client.post('/teacher/leaves', json={'leave_date': leave_date, 'leave_type': 'Annual',
                                                            'reason': 'Wedding'})
    assert response.status_code == 201
    leave_id = response.get_json()['application']['id']

    again = teacher_client.post('/teacher/leaves', json={'leave_date': leave_date})
    assert again.status_code == 400

    decision = head_client.post(f'/head/leaves/{leave_id}/approve', json={'notes': 'Congratulations'})
    assert decision.status_code == 200
    assert decision.get_json() == {'success': True, 'message': 'Leave approved successfully',
                                   'remaining_balance': 13}

    assert head_client.post(f'/head/leaves/{leave_id}/reject').status_code == 400

    db.expire_all()
    balance = db.query(TeacherLeaveBalance).filter_by(teacher_id=teacher.id).one()
    assert balance.used_leaves == 1


def test_leave_export_is_plain_text(teacher_client, head_client):
    leave_date = (date.today() + timedelta(days=4)).isoformat()
    leave_id = teacher_client.post('/teacher/leaves', json={'leave_date': leave_date}).get_json()['application']['id']

    response = head_client.get(f'/head/leaves/{leave_id}/export')

    assert response.status_code == 200
    assert response.mimetype == 'text/plain'
    assert 'Teacher: Tom Teacher' in response.get_data(as_text=True)


# =============================================================================
# AI SCHEDULER REVIEW
# =============================================================================

def test_plan_and_apply_ai_commands(db, admin_client, teacher):
    raw = '```json\n' + json.dumps([
        {'command': 'AddSchedule', 'day': 'Monday', 'time': '09:00', 'level': 'P1',
         'subject': 'Art', 'teacher_id': teacher.id},
        {'command': 'AddSchedule', 'day': 'Monday', 'time': '09:00'},
    ]) + '\n```'

    planned = admin_client.post('/admin/ai/plan', json={'raw_response': raw}).get_json()
    assert planned['success'] is True
    assert planned['valid_count'] == 1

    applied = admin_client.post('/admin/ai/review/apply', json={'entries': planned['entries']}).get_json()

    assert applied['summary']['applied'] == 1
    assert applied['summary']['skipped'] == 1
    assert applied['summary']['should_reload'] is True
    assert [s['subject'] for s in applied['schedules']] == ['Art']
    db.expire_all()
    assert db.query(Schedule).count() == 1


def test_plan_rejects_non_json(admin_client):
    response = admin_client.post('/admin/ai/plan', json={'raw_response': 'I could not do that.'})
    assert response.status_code == 400
    assert response.get_json()['success'] is False


def test_apply_needs_entries(admin_client):
    assert admin_client.post('/admin/ai/review/apply', json={'entries': []}).status_code == 400


# =============================================================================
# AI CHAT
# =============================================================================

def test_chat_uses_injected_transport(head_client, ai_settings, fake_transport):
    response = head_client.post('/api/ai/chat', json={'message': 'Any absences today?'})

    assert response.status_code == 200
    assert response.get_json()['content'] == 'Hello from the assistant'
    assert fake_transport.call_count == 1

    history = head_client.get('/api/ai/history').get_json()['messages']
    assert len(history) == 2


def test_chat_blocked_for_teacher_by_default(teacher_client, ai_settings, fake_transport):
    assert teacher_client.get('/api/ai/status').get_json()['enabled'] is False
    response = teacher_client.post('/api/ai/chat', json={'message': 'hello'})
    assert response.status_code == 400
    fake_transport.assert_not_called()


# =============================================================================
# ANNOUNCEMENTS
# =============================================================================

def test_head_publishes_and_teacher_reads(head_client, teacher_client):
    response = head_client.post('/api/announcements', json={'title': 'Fire drill', 'body': 'At 10am.',
                                                            'urgency': 'high', 'audience': ['teacher']})
    assert response.status_code == 201
    assert response.get_json()['announcement']['creator_name'] == 'Harriet Head'

    listed = teacher_client.get('/api/announcements').get_json()['announcements']
    assert [a['title'] for a in listed] == ['Fire drill']
    assert listed[0]['urgency_label'] == 'high'

    assert teacher_client.post('/api/announcements', json={'title': 'x', 'body': 'y'}).status_code == 403


# =============================================================================
# MALFORMED CLIENT INPUT
# =============================================================================

def test_review_routes_reject_non_object_entries(admin_client):
    for path in ('/admin/ai/review/apply', '/admin/ai/review/toggle', '/admin/ai/review/save'):
        response = admin_client.post(path, json={'entries': ['junk'], 'entry_id': 'x'})
        assert response.status_code == 400, path
        assert response.get_json() == {'success': False, 'error': 'Review entries must be a list of objects.'}


def test_review_save_with_non_string_json(admin_client):
    planned = admin_client.post('/admin/ai/plan', json={
        'raw_response': '[{"command": "DeleteSchedule", "id": "ffffffff-ffff-4fff-bfff-ffffffffffff"}]'
    }).get_json()
    entry_id = planned['entries'][0]['id']

    response = admin_client.post('/admin/ai/review/save', json={
        'entries': planned['entries'], 'entry_id': entry_id, 'edited_json': 5,
    })

    assert response.status_code == 200
    body = response.get_json()
    assert body['success'] is False
    assert body['message'].startswith('Invalid JSON')
    assert body['entries'][0]['validation']['is_valid'] is False


def test_chat_ignores_client_trigger(head_client, ai_settings, fake_transport):
    head_client.post('/api/ai/chat', json={'message': 'Any absences today?'})
    response = head_client.post('/api/ai/chat', json={'message': 'Any absences today?', 'trigger': True})

    assert response.get_json()['cached'] is True
    assert fake_transport.call_count == 1


def test_chat_with_non_string_message(head_client, ai_settings, fake_transport):
    response = head_client.post('/api/ai/chat', json={'message': 5})
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Message cannot be empty'
    fake_transport.assert_not_called()
