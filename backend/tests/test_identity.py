import re

import pytest

from reportguard_client.identity import DEVICE_KEY, IdentityProvider, base36, uid
from reportguard_client.storage import FileStorage, MemoryStorage, StorageError


class BrokenStorage:
    def get_item(self, key):
        raise StorageError('disk gone')

    def set_item(self, key, value):
        raise StorageError('disk gone')

    def remove_item(self, key):
        raise StorageError('disk gone')


def test_uid_and_base36():
    assert re.fullmatch(r'[0-9a-f]{8}', uid(8))
    assert re.fullmatch(r'[0-9a-f]{3}', uid(3))
    assert base36(0) == '0'
    assert base36(35) == 'z'
    assert base36(36) == '10'


def test_single_tab_identity_is_device_id(tmp_path):
    storage = FileStorage(str(tmp_path / 'device.json'))
    provider = IdentityProvider(storage)
    install_id = provider.get_install_id()
    assert re.fullmatch(r'[0-9a-z]+-[0-9a-f]{8}', install_id)
    assert provider.get_install_id() == install_id
    assert storage.get_item(DEVICE_KEY) == install_id


def test_device_id_survives_restart(tmp_path):
    path = str(tmp_path / 'device.json')
    first = IdentityProvider(FileStorage(path), multitab=True).get_install_id()
    second = IdentityProvider(FileStorage(path), multitab=True).get_install_id()
    device_a, rest_a = first.split('.', 1)
    device_b, rest_b = second.split('.', 1)
    assert device_a == device_b
    # New session storage and new process: tab and run layers differ
    assert rest_a != rest_b


def test_multitab_identity_layers():
    device = MemoryStorage()
    session = MemoryStorage()
    provider = IdentityProvider(device, session, multitab=True, tab_hint=' tab7 ')
    install_id = provider.get_install_id()
    assert install_id == f"{provider.device_id}.tab7-{provider.run_id}"
    assert provider.get_install_id() == install_id

    # Same tab (session storage), new run
    again = IdentityProvider(device, session, multitab=True)
    assert again.get_install_id().startswith(f"{provider.device_id}.tab7-")


def test_storage_failure_falls_back_to_memory():
    provider = IdentityProvider(BrokenStorage())
    first = provider.get_install_id()
    assert first
    assert provider.get_install_id() == first


def test_file_storage_round_trip_and_corruption(tmp_path):
    path = tmp_path / 'kv.json'
    storage = FileStorage(str(path))
    assert storage.get_item('missing') is None
    storage.set_item('k', 'v')
    assert FileStorage(str(path)).get_item('k') == 'v'
    storage.remove_item('k')
    assert storage.get_item('k') is None
    path.write_text('{not json')
    with pytest.raises(StorageError):
        storage.get_item('k')
