"""School personnel roster (property custodian view)."""

from src.core import config
from src.core.forms import FormSchema
from src.core.query import QueryCapabilities, SortDirection, status_filter
from src.core.validation import (
    digits,
    length,
    matches,
    pattern,
    required,
    required_on_create,
    unique,
)

from .types import RosterCapabilities, avatar_url_resolver, deactivate_schema, format_contact_phone, phone_digits

TEMPLATE = {
    "first_name": "",
    "last_name": "",
    "employee_id": "",
    "id_number": "",
    "username": "",
    "phone": "",
    "employment_status": "",
    "employment_level": "",
    "position": "",
    "subject_area": "",
    "rating": "",
    "notes": "",
    "password": "",
    "password_confirmation": "",
    "is_active": True,
}

LABELS = {
    "first_name": "First Name",
    "last_name": "Last Name",
    "employee_id": "Employee Number",
    "id_number": "ID Number",
    "username": "Username",
    "phone": "Contact Number",
    "employment_status": "Employment Status",
    "employment_level": "Employment Level",
    "password": "Portal Password",
    "password_confirmation": "Confirm Password",
}

RULES = {
    "first_name": [required("First name is required")],
    "last_name": [required("Last name is required")],
    "employee_id": [
        required("Employee number is required"),
        unique("employee_id", "Employee number already exists"),
    ],
    "id_number": [
        required("ID number is required"),
        unique("id_number", "ID number already exists"),
    ],
    "username": [
        required("Username is required"),
        pattern(r"[A-Za-z0-9._-]+",
                "Username may only contain letters, numbers, dots, underscores, and hyphens"),
        unique("username", "Username already exists"),
    ],
    "phone": [digits(11, "Contact number must be exactly 11 digits")],
    "employment_status": [required("Employment status is required")],
    "employment_level": [required("Employment level is required")],
    "password": [
        required_on_create("Portal password is required"),
        length("Password must be at least 6 characters", min_length=6),
    ],
    "password_confirmation": [
        required_on_create("Please confirm the password"),
        matches("password", "Passwords do not match"),
    ],
}

FORM = FormSchema(
    entity="Personnel",
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

PERSONNEL = RosterCapabilities(
    key="personnel",
    entity="Personnel",
    query=QueryCapabilities(
        search_fields=(
            "first_name", "last_name", "employee_id", "id_number", "username",
            "position", "department", "employment_status", "employment_level",
        ),
        filters={"status": status_filter},
    ),
    default_sort=("last_name", SortDirection.ASC),
    form=FORM,
    deactivate_form=deactivate_schema("Personnel"),
    file_url=avatar_url_resolver("personnel-avatar", "personnel-avatars/"),
)
