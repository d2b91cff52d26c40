import hashlib
from flask import current_app


def fingerprint(pepper: str, ref: str, install_id: str) -> str:
    """One-way digest of an anonymous identity.

    The ledger only ever sees this value. Changing the pepper invalidates
    every fingerprint issued under the previous one.
    """
    material = f"{pepper}:{ref}:{install_id}".encode('utf-8')
    return hashlib.sha256(material).hexdigest()


def device_ref(install_id: str) -> str:
    # "<device>.<tab>-<run>" in multi-tab mode, "<device>" otherwise
    return (install_id or '').split('.', 1)[0]


def fingerprint_for(install_id: str) -> str:
    pepper = current_app.config['REPORT_PEPPER']
    return fingerprint(pepper, device_ref(install_id), install_id)
