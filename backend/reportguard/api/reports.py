from flask import Blueprint, jsonify, request, current_app
from reportguard.services import roster
from reportguard.services.ratelimit import check_report_rate
from reportguard.services.reports import ReportRejected, file_report, is_shadowed, report_status


reports = Blueprint('reports', __name__)


def _client_ip() -> str:
    cf_ip = request.headers.get('CF-Connecting-IP')
    if cf_ip:
        return cf_ip
    forwarded = request.headers.get('X-Forwarded-For')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.remote_addr or 'unknown'


@reports.route('/status/<string:install_id>', methods=['GET'])
def get_report_status(install_id):
    return jsonify(report_status(install_id))


@reports.route('', methods=['POST'])
def submit_report():
    allowed, retry_after = check_report_rate(current_app, f"http:{_client_ip()}")
    if not allowed:
        current_app.logger.warning(f"[report] rate limit exceeded ip={_client_ip()} retry_after={retry_after}s")
        return jsonify(ReportRejected('Rate limit exceeded', 429, retry_after).to_dict()), 429

    data = request.get_json(silent=True)
    if not data:
        return jsonify({'error': 'Invalid request body'}), 400

    install_id = data.get('installId')
    target_player_id = data.get('targetPlayerId')
    room_id = data.get('roomId')
    phase = data.get('phase')
    if not all([install_id, target_player_id, room_id, phase]):
        return jsonify({'error': 'Missing required parameters'}), 400

    if phase not in current_app.config.get('REPORTABLE_PHASES', ('DISCUSS',)):
        return jsonify({'error': 'Reports are only allowed during discussion phase'}), 400

    try:
        result = file_report(
            install_id,
            target_player_id,
            room_id,
            target_install_id=roster.member_install_id(room_id, target_player_id),
            message_id=data.get('messageId'),
            shadowed=is_shadowed(install_id),
        )
    except ReportRejected as exc:
        return jsonify(exc.to_dict()), exc.status_code

    return jsonify(result), 200
