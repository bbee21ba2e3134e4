from flask import jsonify, request
from flask_wtf import FlaskForm
from flask_wtf.file import FileField, FileRequired
from werkzeug.datastructures import MultiDict
from wtforms import BooleanField, IntegerField, PasswordField, StringField
from wtforms.validators import AnyOf, DataRequired, Email, Length, Optional

from ..models.folder import FOLDER_TYPES
from ..models.user import USER_TYPES
from ..services.identity import MIN_PASSWORD_LENGTH

PASSWORD_LENGTH_MSG = f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def json_formdata():
    """Request JSON object as form data; None when the body is not an object.

    Nulls are dropped and booleans spelled the way BooleanField expects.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None
    out = MultiDict()
    for key, value in data.items():
        if value is None or isinstance(value, (dict, list)):
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        out.add(key, value if isinstance(value, str) else str(value))
    return out


def form_error_response(form):
    errors = {k: v for k, v in form.errors.items() if k}
    message = "Invalid request"
    for field_errors in errors.values():
        if field_errors:
            message = field_errors[0]
            break
    return jsonify({"error": message, "fields": errors}), 400


class SignupForm(FlaskForm):
    password = PasswordField("password", validators=[
        DataRequired(message="Password is required"),
        Length(min=MIN_PASSWORD_LENGTH, message=PASSWORD_LENGTH_MSG),
    ])
    phone = StringField("phone", filters=[_strip],
                        validators=[DataRequired(message="Both phone and email are required")])
    email = StringField("email", filters=[_strip], validators=[
        DataRequired(message="Both phone and email are required"),
        Email(message="Invalid email address"),
    ])
    userType = StringField("userType", default="individual",
                           validators=[AnyOf(USER_TYPES, message="Invalid user type")])


class LoginForm(FlaskForm):
    password = PasswordField("password", validators=[DataRequired(message="Password is required")])
    phone = StringField("phone", filters=[_strip], validators=[Optional()])
    email = StringField("email", filters=[_strip], validators=[Optional(), Email(message="Invalid email address")])

    def validate(self, extra_validators=None):
        ok = super().validate(extra_validators=extra_validators)
        if ok and not (self.phone.data or self.email.data):
            self.phone.errors.append("Phone or email is required")
            return False
        return ok


class PasswordResetRequestForm(FlaskForm):
    email = StringField("email", filters=[_strip], validators=[
        DataRequired(message="Email is required"),
        Email(message="Invalid email address"),
    ])


class PasswordResetForm(FlaskForm):
    token = StringField("token", validators=[DataRequired(message="Reset token is required")])
    password = PasswordField("password", validators=[
        DataRequired(message="Password is required"),
        Length(min=MIN_PASSWORD_LENGTH, message=PASSWORD_LENGTH_MSG),
    ])


class FolderForm(FlaskForm):
    name = StringField("name", filters=[_strip], validators=[
        DataRequired(message="Folder name is required"),
        Length(max=255, message="Folder name is too long"),
    ])
    parentId = IntegerField("parentId", validators=[Optional()])
    folderType = StringField("folderType", default="custom",
                             validators=[AnyOf(FOLDER_TYPES, message="Invalid folder type")])


class UploadForm(FlaskForm):
    file = FileField("file", validators=[FileRequired(message="No file provided")])
    folderId = IntegerField("folderId", validators=[Optional()])
    convertToPdf = BooleanField("convertToPdf")
