"""Accounting staff accounts (ICT view)."""

from src.core import config
from src.core.forms import FormSchema
from src.core.query import QueryCapabilities, SortDirection, full_name, status_filter
from src.core.validation import digits, length, matches, password_strength, required, required_on_create, unique

from .types import RosterCapabilities, avatar_url_resolver, deactivate_schema, format_contact_phone, phone_digits

TEMPLATE = {
    "username": "",
    "first_name": "",
    "last_name": "",
    "phone": "",
    "password": "",
    "password_confirmation": "",
}

LABELS = {
    "username": "Username",
    "first_name": "First Name",
    "last_name": "Last Name",
    "phone": "Contact Number",
    "password": "Password",
    "password_confirmation": "Confirm Password",
}

RULES = {
    "username": [
        required("Username is required"),
        unique("username", "This username is already taken", case_insensitive=True),
    ],
    "first_name": [required("First name is required")],
    "last_name": [required("Last name is required")],
    "phone": [digits(11, "Contact number must be exactly 11 digits (e.g., 0951-341-9336)")],
    "password": [
        required_on_create("Password is required"),
        length("Password must be at least 8 characters", min_length=8),
        password_strength("Password must include uppercase, lowercase, and a number"),
    ],
    "password_confirmation": [matches("password", "Passwords do not match")],
}

FORM = FormSchema(
    entity="Accounting",
    template=TEMPLATE,
    labels=LABELS,
    rules=RULES,
    password_fields=("password", "password_confirmation"),
    formatters={"phone": format_contact_phone},
    payload_transforms={"phone": phone_digits},
    file_field="avatar",
    file_path_field="avatar_path",
    max_file_bytes=config.AVATAR_MAX_BYTES,
)

ACCOUNTING = RosterCapabilities(
    key="accounting",
    entity="Accounting",
    query=QueryCapabilities(
        search_fields=("full_name", "username", "employee_id", "phone", "email"),
        accessors={"full_name": full_name},
        filters={"status": status_filter},
        descending_fields=frozenset({"created_at", "updated_at"}),
    ),
    default_sort=("created_at", SortDirection.DESC),
    form=FORM,
    deactivate_form=deactivate_schema("Accounting"),
    file_url=avatar_url_resolver("accounting-avatar", "avatars/"),
)
