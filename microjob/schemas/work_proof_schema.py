from marshmallow import fields, validate, EXCLUDE

from microjob.extensions import ma


class WorkProofSubmitSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    title = fields.String(required=True, validate=validate.Length(min=1, max=255))
    description = fields.String(load_default=None)
    submission_text = fields.String(load_default=None)
    application_id = fields.String(load_default=None)
    payment_amount = fields.Decimal(required=True, places=2, validate=validate.Range(min=0, min_inclusive=False))

    proof_files = fields.List(fields.Raw(), load_default=list)
    proof_links = fields.List(fields.Url(), load_default=list)
    screenshots = fields.List(fields.Raw(), load_default=list)
    attachments = fields.List(fields.Raw(), load_default=list)


class ReviewSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    notes = fields.String(load_default=None)
    timeout_hours = fields.Integer(load_default=None, validate=validate.Range(min=1, max=24 * 30))


class RejectSchema(ReviewSchema):
    notes = fields.String(required=True, validate=validate.Length(min=1))


class ResubmitSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    description = fields.String(load_default=None)
    submission_text = fields.String(load_default=None)
    proof_files = fields.List(fields.Raw(), load_default=None)
    proof_links = fields.List(fields.Url(), load_default=None)
    screenshots = fields.List(fields.Raw(), load_default=None)
    attachments = fields.List(fields.Raw(), load_default=None)
