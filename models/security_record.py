from datetime import datetime
from models.db import db

class SecurityRecord(db.Model):
    __tablename__ = "security_records"

    id = db.Column(db.Integer, primary_key=True)

    # e.g. login_security_alice@example.com, global_login_security, security_logs
    key = db.Column(db.String(255), unique=True, nullable=False, index=True)
    value_json = db.Column(db.Text, nullable=False)

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
