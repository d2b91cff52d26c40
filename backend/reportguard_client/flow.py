"""Two-step report confirmation and submission over the real-time channel."""

import logging
from typing import Callable, Dict, Optional

import socketio
from socketio.exceptions import SocketIOError

logger = logging.getLogger(__name__)

# Flow stages
PROMPT = 'prompt'
CONFIRMING = 'confirming'
FAILED = 'failed'
CLOSED = 'closed'

MESSAGES: Dict[str, Dict[str, str]] = {
    'ja': {
        'prompt_title': '通報しますか？',
        'prompt_body': '通報は匿名で送信されます。一定ポイントに達すると、その日はプレイできなくなります。',
        'confirm_title': '本当に通報しますか？',
        'confirm_body': 'この操作は取り消せません。',
        'submitted': '通報しました',
        'failed': '送信に失敗しました。通信状況をご確認ください',
        'already_reported': 'このプレイヤーは本日すでに通報済みです',
    },
    'en': {
        'prompt_title': 'Report this player?',
        'prompt_body': 'Reports are anonymous. Reaching a point limit blocks play for the rest of the day.',
        'confirm_title': 'Really report?',
        'confirm_body': 'This cannot be undone.',
        'submitted': 'Report sent',
        'failed': 'Could not send the report. Please check your connection and try again.',
        'already_reported': 'You already reported this player today',
    },
}

TRANSPORT_ERRORS = (SocketIOError, OSError)


def message(key: str, locale: str = 'ja') -> str:
    return MESSAGES.get(locale, MESSAGES['en']).get(key) or MESSAGES['en'][key]


class ReportFlowError(Exception):
    """A flow step was invoked out of order."""


class ReportClient:
    """Sends reports and records them locally once sent."""

    def __init__(self, channel, identity, store, notify: Optional[Callable[[str, str], None]] = None,
                 locale: str = 'ja', namespace: str = '/ws', points: int = 4):
        self.channel = channel
        self.identity = identity
        self.store = store
        self._notify = notify or (lambda text, kind: None)
        self.locale = locale
        self.namespace = namespace
        self.points = points

    def notify(self, key: str, kind: str) -> None:
        self._notify(message(key, self.locale), kind)

    def send_report(self, target_player_id: str, message_id: Optional[str] = None) -> bool:
        payload = {
            'targetPlayerId': target_player_id,
            'installId': self.identity.get_install_id(),
        }
        if message_id:
            payload['messageId'] = message_id
        try:
            self.channel.emit('report', payload, namespace=self.namespace)
        except TRANSPORT_ERRORS as exc:
            logger.warning("report send failed: %s", exc)
            self.notify('failed', 'error')
            return False
        # The server counts asynchronously; acknowledge right away
        self.store.add_report(target_player_id, self.points)
        self.notify('submitted', 'info')
        return True


class ReportFlow:
    """prompt -> confirming -> closed, or failed with one manual retry."""

    def __init__(self, client: ReportClient, target_player_id: str, message_id: Optional[str] = None,
                 on_close: Optional[Callable[['ReportFlow'], None]] = None):
        self.client = client
        self.target_player_id = target_player_id
        self.message_id = message_id
        self.stage = PROMPT
        self._retried = False
        self._on_close = on_close

    def _close(self) -> None:
        self.stage = CLOSED
        if self._on_close is not None:
            self._on_close(self)

    @property
    def is_open(self) -> bool:
        return self.stage != CLOSED

    def proceed(self) -> None:
        if self.stage != PROMPT:
            raise ReportFlowError(f"cannot proceed from {self.stage}")
        self.stage = CONFIRMING

    def cancel(self) -> None:
        if self.stage == CONFIRMING:
            self.stage = PROMPT
        elif self.stage != CLOSED:
            self._close()

    def confirm(self) -> bool:
        if self.stage == FAILED and not self._retried:
            self._retried = True
        elif self.stage != CONFIRMING:
            raise ReportFlowError(f"cannot confirm from {self.stage}")
        ok = self.client.send_report(self.target_player_id, self.message_id)
        if ok or self._retried:
            self._close()
        else:
            self.stage = FAILED
        return ok


class ReportingSession:
    """What the UI layer talks to: prompt gating, submission, lock state."""

    def __init__(self, client: ReportClient, store):
        self.client = client
        self.store = store
        self._flows: Dict[str, ReportFlow] = {}

    def can_show_report_prompt(self, target_id: str) -> bool:
        self.store.check_and_reset_daily()
        return self.store.can_report(target_id) and not self.store.is_lock_active()

    def open_report(self, target_id: str, message_id: Optional[str] = None) -> Optional[ReportFlow]:
        if not self.can_show_report_prompt(target_id):
            if not self.store.can_report(target_id):
                self.client.notify('already_reported', 'info')
            return None
        flow = ReportFlow(self.client, target_id, message_id, on_close=self._forget)
        self._flows[target_id] = flow
        return flow

    def submit_report(self, target_id: str) -> bool:
        flow = self._flows.get(target_id)
        if flow is None or flow.stage not in (CONFIRMING, FAILED):
            raise ReportFlowError('report must be confirmed before it is sent')
        return flow.confirm()

    def _forget(self, flow: ReportFlow) -> None:
        if self._flows.get(flow.target_player_id) is flow:
            del self._flows[flow.target_player_id]

    def current_lock_state(self):
        return self.store.current_lock_state()


def connect_channel(url: str, namespace: str = '/ws', timeout: float = 5.0) -> socketio.Client:
    """Connect a Socket.IO client to the report namespace."""
    client = socketio.Client(reconnection=False)
    client.connect(url, namespaces=[namespace], wait_timeout=timeout)
    return client
