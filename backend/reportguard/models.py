from reportguard import db
import time


class KVEntry(db.Model):
    """One key of the expiring key/value space shared by the ledger and report records."""
    __tablename__ = 'kv_entry'
    key = db.Column(db.String(255), primary_key=True)
    value = db.Column(db.Text, nullable=False)
    # Epoch seconds; NULL never expires
    expires_at = db.Column(db.Float, nullable=True, index=True)

    def is_expired(self, now=None):
        if self.expires_at is None:
            return False
        return (now if now is not None else time.time()) >= self.expires_at

    def to_dict(self):
        return {
            'key': self.key,
            'value': self.value,
            'expires_at': self.expires_at,
        }
