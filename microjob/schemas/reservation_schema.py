from marshmallow import fields, validate, EXCLUDE

from microjob.extensions import ma


class ReservationCreateSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    # zero or missing falls back to the admin default
    duration_minutes = fields.Integer(load_default=None, validate=validate.Range(min=0, max=7 * 24 * 60))
