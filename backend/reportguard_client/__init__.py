"""Client side of anonymous reporting.

Build everything once per process with ``create_reporting`` and hand the
returned session to the UI layer.
"""

import os

from reportguard_client.api import ReportApi, ReportStatus, StatusSync
from reportguard_client.config import ClientConfig
from reportguard_client.flow import ReportClient, ReportFlow, ReportFlowError, ReportingSession, connect_channel
from reportguard_client.identity import IdentityProvider
from reportguard_client.storage import FileStorage, MemoryStorage, StorageError
from reportguard_client.store import LocalReportStore


def create_reporting(channel, config_class=ClientConfig, notify=None, tab_hint=None, transport=None):
    """Wire identity, local store, report session and status sync together."""
    state_dir = config_class.STATE_DIR
    identity = IdentityProvider(
        FileStorage(os.path.join(state_dir, 'device.json')),
        multitab=config_class.MULTITAB,
        tab_hint=tab_hint,
    )
    store = LocalReportStore(FileStorage(os.path.join(state_dir, 'report-state.json')))
    client = ReportClient(
        channel,
        identity,
        store,
        notify=notify,
        locale=config_class.LOCALE,
        namespace=config_class.SOCKET_NAMESPACE,
        points=config_class.REPORT_POINTS,
    )
    api = ReportApi(config_class.API_BASE_URL, identity, timeout=config_class.STATUS_TIMEOUT_SEC, transport=transport)
    return ReportingSession(client, store), StatusSync(api, store)


__all__ = [
    'ClientConfig',
    'FileStorage',
    'IdentityProvider',
    'LocalReportStore',
    'MemoryStorage',
    'ReportApi',
    'ReportClient',
    'ReportFlow',
    'ReportFlowError',
    'ReportStatus',
    'ReportingSession',
    'StatusSync',
    'StorageError',
    'connect_channel',
    'create_reporting',
]
