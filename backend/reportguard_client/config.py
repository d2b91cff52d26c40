import os

class ClientConfig:
    API_BASE_URL = os.environ.get('REPORTGUARD_API_BASE_URL') or 'http://localhost:5000'
    SOCKET_NAMESPACE = os.environ.get('REPORTGUARD_SOCKET_NAMESPACE', '/ws')
    # Status fetch timeout (seconds); a stalled network must never block play
    STATUS_TIMEOUT_SEC = float(os.environ.get('REPORTGUARD_STATUS_TIMEOUT_SEC', '5'))
    # "<device>.<tab>-<run>" identities so one machine can act as several players
    MULTITAB = os.environ.get('REPORTGUARD_MULTITAB', '0') == '1'
    LOCALE = os.environ.get('REPORTGUARD_LOCALE', 'ja')
    STATE_DIR = os.environ.get('REPORTGUARD_STATE_DIR') or os.path.join(os.path.expanduser('~'), '.reportguard')
    # Points added to the local tally per report; mirrors the server's REPORT_POINTS
    REPORT_POINTS = int(os.environ.get('REPORTGUARD_REPORT_POINTS', '4'))
