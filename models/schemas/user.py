from marshmallow import Schema, fields, pre_load, validate, validates, ValidationError


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


def _check_password_length(value):
    if len(value) < 8:
        raise ValidationError("Password must be at least 8 characters long.")


class UserCreateSchema(Schema):
    f_name = fields.String(allow_none=True)
    l_name = fields.String(allow_none=True)
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data["email"] = _norm_email(data["email"])
        return data

    @validates("password")
    def validate_password(self, value, **kwargs):
        _check_password_length(value)


class UserLoginSchema(Schema):
    email = fields.String(required=True)
    password = fields.String(required=True, load_only=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data["email"] = _norm_email(data["email"])
        return data


class PasswordChangeSchema(Schema):
    current_password = fields.String(required=True, load_only=True)
    new_password = fields.String(required=True, load_only=True)

    @validates("new_password")
    def validate_new_password(self, value, **kwargs):
        _check_password_length(value)


class UserOutSchema(Schema):
    id = fields.String(allow_none=False)
    f_name = fields.String(allow_none=True)
    l_name = fields.String(allow_none=True)
    email = fields.String(allow_none=True)
    role = fields.String(allow_none=True)


class IdentityOutSchema(Schema):
    user_id = fields.String()
    role = fields.String()


class ForgotPasswordSchema(Schema):
    email = fields.Email(required=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data["email"] = _norm_email(data["email"])
        return data


class ResetPasswordSchema(Schema):
    token = fields.String(required=True, validate=validate.Length(min=1), load_only=True)
    password = fields.String(required=True, load_only=True)

    @validates("password")
    def validate_password(self, value, **kwargs):
        _check_password_length(value)
