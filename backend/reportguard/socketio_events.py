from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from reportguard import socketio
from reportguard.services import roster
from reportguard.services.ratelimit import check_report_rate, forget_report_rate
from reportguard.services.reports import ReportRejected, file_report, is_shadowed
from typing import Dict, Any


_sid_to_ctx: Dict[str, Dict[str, Any]] = {}


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    sid = _get_sid()
    forget_report_rate(f"ws:{sid}")
    ctx = _sid_to_ctx.pop(sid, None)
    if ctx:
        roster.remove_member(ctx['room_id'], ctx['player_id'])


def handle_join_room(data):
    data = data or {}
    room_id = (data.get('room_id') or '').upper()
    player_id = data.get('player_id')
    install_id = data.get('install_id')
    if not all([room_id, player_id, install_id]):
        emit('error', {'message': 'room_id, player_id and install_id are required'})
        return
    room = f"room:{room_id}"
    join_room(room)
    roster.add_member(room_id, player_id, install_id)
    # Shadow-banned players join like everyone else; only their reports stop counting
    _sid_to_ctx[_get_sid()] = {
        'room_id': room_id,
        'player_id': player_id,
        'install_id': install_id,
        'shadowed': is_shadowed(install_id),
    }
    emit('joined', {'room': room})


def handle_leave_room(data):
    room_id = ((data or {}).get('room_id') or '').upper()
    if not room_id:
        emit('error', {'message': 'room_id is required'})
        return
    room = f"room:{room_id}"
    leave_room(room)
    ctx = _sid_to_ctx.get(_get_sid())
    if ctx and ctx['room_id'] == room_id:
        roster.remove_member(room_id, ctx['player_id'])
        _sid_to_ctx.pop(_get_sid(), None)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def handle_report(data):
    """Report another player in the sender's room; answers with reportAck."""
    ctx = _sid_to_ctx.get(_get_sid())
    if not ctx:
        return
    data = data or {}
    target_player_id = str(data.get('targetPlayerId') or '')
    if not target_player_id:
        return
    # The reporter is whoever joined on this socket, not what the payload claims
    install_id = ctx['install_id']
    claimed = data.get('installId')
    if claimed and claimed != install_id:
        current_app.logger.info(f"[report] install id mismatch room={ctx['room_id']}")
        emit('reportAck', {'ok': False, 'error': 'Install id mismatch'})
        return
    target_install_id = roster.member_install_id(ctx['room_id'], target_player_id)
    if target_install_id is None:
        return

    allowed, retry_after = check_report_rate(current_app, f"ws:{_get_sid()}")
    if not allowed:
        current_app.logger.info(f"[report] rate limit exceeded room={ctx['room_id']} retry_after={retry_after}s")
        emit('reportAck', {'ok': False, 'error': 'Rate limit exceeded', 'retryAfter': retry_after})
        return

    try:
        file_report(
            install_id,
            target_player_id,
            ctx['room_id'],
            reporter_player_id=ctx['player_id'],
            target_install_id=target_install_id,
            message_id=data.get('messageId'),
            shadowed=ctx['shadowed'],
        )
    except ReportRejected as exc:
        emit('reportAck', {'ok': False, **exc.to_dict()})
        return
    except Exception as exc:
        current_app.logger.error(f"[report] failed room={ctx['room_id']}: {exc}")
        emit('reportAck', {'ok': False, 'error': 'Internal error'})
        return
    emit('reportAck', {'ok': True})


def handle_message(data):
    # Envelope form: {"type": "report", "payload": {...}}
    data = data or {}
    if data.get('type') == 'report':
        handle_report(data.get('payload'))


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    handlers = [
        ('connect', handle_connect),
        ('disconnect', handle_disconnect),
        ('join_room', handle_join_room),
        ('leave_room', handle_leave_room),
        ('ping', handle_ping),
        ('report', handle_report),
        ('message', handle_message),
    ]
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        for event, handler in handlers:
            socketio.on_event(event, handler, namespace=namespace)
