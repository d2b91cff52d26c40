from reportguard.fingerprint import fingerprint_for
from reportguard.ledger import ledger_from_config


def _acks(client):
    return [pkt['args'][0] for pkt in client.get_received('/ws') if pkt['name'] == 'reportAck']


def test_socket_connect_and_join(sio_client):
    if not sio_client.is_connected('/ws'):
        sio_client.connect(namespace='/ws')
    assert sio_client.is_connected('/ws')
    sio_client.emit('join_room', {'room_id': 'abcd', 'player_id': 'p1', 'install_id': 'dev-1'}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'joined' and pkt['args'][0]['room'] == 'room:ABCD' for pkt in received)


def test_join_requires_identity(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('join_room', {'room_id': 'abcd'}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'error' for pkt in received)


def test_report_is_acked_and_counted(make_player):
    alice = make_player('R1', 'p1', 'dev-a')
    make_player('R1', 'p2', 'dev-b')

    alice.emit('report', {'targetPlayerId': 'p2', 'installId': 'dev-a', 'messageId': 'm1'}, namespace='/ws')
    assert _acks(alice) == [{'ok': True}]
    assert ledger_from_config().report_count(fingerprint_for('dev-b')) == 1


def test_report_envelope_form(make_player):
    alice = make_player('R1', 'p1', 'dev-a')
    make_player('R1', 'p2', 'dev-b')
    alice.emit('message', {'type': 'report', 'payload': {'targetPlayerId': 'p2', 'installId': 'dev-a'}}, namespace='/ws')
    assert _acks(alice) == [{'ok': True}]


def test_duplicate_and_self_reports_rejected(make_player):
    alice = make_player('R1', 'p1', 'dev-a')
    make_player('R1', 'p2', 'dev-b')
    alice.emit('report', {'targetPlayerId': 'p2', 'installId': 'dev-a'}, namespace='/ws')
    alice.emit('report', {'targetPlayerId': 'p2', 'installId': 'dev-a'}, namespace='/ws')
    alice.emit('report', {'targetPlayerId': 'p1', 'installId': 'dev-a'}, namespace='/ws')
    acks = _acks(alice)
    assert acks[0] == {'ok': True}
    assert acks[1] == {'ok': False, 'error': 'Already reported this player today'}
    assert acks[2] == {'ok': False, 'error': 'Self-reporting is not allowed'}
    assert ledger_from_config().report_count(fingerprint_for('dev-b')) == 1


def test_report_against_unknown_player_is_ignored(make_player):
    alice = make_player('R1', 'p1', 'dev-a')
    alice.emit('report', {'targetPlayerId': 'ghost', 'installId': 'dev-a'}, namespace='/ws')
    assert _acks(alice) == []


def test_report_before_join_is_ignored(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('report', {'targetPlayerId': 'p2', 'installId': 'dev-a'}, namespace='/ws')
    assert _acks(sio_client) == []


def test_three_reporters_shadow_ban_target(make_player):
    target = make_player('R1', 'bad', 'dev-bad')
    for i in range(3):
        reporter = make_player('R1', f'p{i}', f'dev-{i}')
        reporter.emit('report', {'targetPlayerId': 'bad', 'installId': f'dev-{i}'}, namespace='/ws')
        assert _acks(reporter) == [{'ok': True}]
        banned = ledger_from_config().is_shadow_banned(fingerprint_for('dev-bad'))
        assert banned is (i == 2)

    # A shadowed player rejoins: their reports are acked but not counted
    target.disconnect(namespace='/ws')
    rejoined = make_player('R2', 'bad', 'dev-bad')
    make_player('R2', 'victim', 'dev-victim')
    rejoined.emit('report', {'targetPlayerId': 'victim', 'installId': 'dev-bad'}, namespace='/ws')
    assert _acks(rejoined) == [{'ok': True}]
    assert ledger_from_config().report_count(fingerprint_for('dev-victim')) == 0


def test_socket_rate_limit(flask_app, make_player):
    flask_app.config['ENABLE_RATE_LIMIT'] = True
    flask_app.config['RATE_REPORT_PER_5MIN'] = 1
    alice = make_player('R1', 'p1', 'dev-a')
    make_player('R1', 'p2', 'dev-b')
    make_player('R1', 'p3', 'dev-c')
    alice.emit('report', {'targetPlayerId': 'p2', 'installId': 'dev-a'}, namespace='/ws')
    alice.emit('report', {'targetPlayerId': 'p3', 'installId': 'dev-a'}, namespace='/ws')
    acks = _acks(alice)
    assert acks[0] == {'ok': True}
    assert acks[1]['ok'] is False
    assert acks[1]['error'] == 'Rate limit exceeded'
    assert acks[1]['retryAfter'] > 0


def test_leave_removes_from_roster(make_player):
    from reportguard.services import roster
    bob = make_player('R1', 'p2', 'dev-b')
    assert roster.member_install_id('R1', 'p2') == 'dev-b'
    bob.emit('leave_room', {'room_id': 'r1'}, namespace='/ws')
    assert roster.member_install_id('R1', 'p2') is None


def test_report_uses_joined_identity_not_payload(make_player):
    alice = make_player('R1', 'p1', 'dev-a')
    make_player('R1', 'victim', 'dev-victim')
    for i in range(3):
        alice.emit('report', {'targetPlayerId': 'victim', 'installId': f'spoof-{i}'}, namespace='/ws')
    acks = _acks(alice)
    assert acks == [{'ok': False, 'error': 'Install id mismatch'}] * 3
    ledger = ledger_from_config()
    assert ledger.report_count(fingerprint_for('dev-victim')) == 0
    assert not ledger.is_shadow_banned(fingerprint_for('dev-victim'))

    # Without a claimed id the joined identity is used, and only once a day
    alice.emit('report', {'targetPlayerId': 'victim'}, namespace='/ws')
    alice.emit('report', {'targetPlayerId': 'victim'}, namespace='/ws')
    assert _acks(alice) == [{'ok': True}, {'ok': False, 'error': 'Already reported this player today'}]
    assert ledger.report_count(fingerprint_for('dev-victim')) == 1


def test_disconnect_frees_rate_window(flask_app, make_player):
    from reportguard.services import ratelimit
    flask_app.config['ENABLE_RATE_LIMIT'] = True
    alice = make_player('R1', 'p1', 'dev-a')
    make_player('R1', 'p2', 'dev-b')
    alice.emit('report', {'targetPlayerId': 'p2', 'installId': 'dev-a'}, namespace='/ws')
    assert len(ratelimit._report_limiter) == 1
    alice.disconnect(namespace='/ws')
    assert len(ratelimit._report_limiter) == 0
