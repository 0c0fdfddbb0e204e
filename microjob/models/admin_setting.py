from microjob.extensions import db
from microjob.utils.clock import utc_now


class AdminSetting(db.Model):
    __tablename__ = "admin_settings"

    setting_key = db.Column(db.String(100), primary_key=True)
    setting_value = db.Column(db.JSON, nullable=False, default=dict)

    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)
    updated_by = db.Column(db.String(50))
