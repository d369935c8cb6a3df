"""
Capability descriptor for one feature area.

The core never hard-codes a record shape; each area hands the controller a
RosterCapabilities describing how its records are searched, filtered,
sorted, edited and how their stored files are reached.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Tuple

from src.core import config
from src.core.forms import FormSchema
from src.core.query import QueryCapabilities, SortDirection, full_name
from src.core.validation import required


@dataclass(frozen=True)
class RosterCapabilities:
    key: str
    entity: str
    query: QueryCapabilities
    default_sort: Tuple[str, SortDirection]
    form: Optional[FormSchema] = None
    deactivate_form: Optional[FormSchema] = None
    name_of: Callable[[Mapping[str, Any]], str] = full_name
    # (record, kind) -> URL of a stored file, or None
    file_url: Callable[[Mapping[str, Any], str], Optional[str]] = lambda record, kind: None
    supports_status: bool = True
    can_create: bool = True
    can_delete: bool = True

    def preview_url(self, record: Mapping[str, Any]) -> Optional[str]:
        """Remote preview for the form's file field (avatar)."""
        if not self.form or not self.form.file_field:
            return None
        return self.file_url(record, self.form.file_field)


def format_contact_phone(value: Any) -> str:
    """0951-341-9336 style formatting, at most 11 digits."""
    digits = re.sub(r"\D", "", "" if value is None else str(value))[:11]
    if len(digits) <= 4:
        return digits
    if len(digits) <= 7:
        return f"{digits[:4]}-{digits[4:]}"
    return f"{digits[:4]}-{digits[4:7]}-{digits[7:]}"


def phone_digits(value: Any) -> str:
    return re.sub(r"\D", "", "" if value is None else str(value))


def avatar_url_resolver(endpoint: str, prefix: str) -> Callable[[Mapping[str, Any], str], Optional[str]]:
    """Maps a stored avatar_path onto the API's avatar endpoint."""
    def resolve(record: Mapping[str, Any], kind: str) -> Optional[str]:
        if kind != "avatar":
            return None
        path = record.get("avatar_path")
        if not path:
            return None
        filename = str(path).replace(prefix, "").split("/")[-1]
        return f"{config.get_api_base_url()}/{endpoint}/{filename}"
    return resolve


def deactivate_schema(entity: str) -> FormSchema:
    return FormSchema(
        entity=entity,
        template={"deactivate_reason": ""},
        labels={"deactivate_reason": "Reason"},
        rules={"deactivate_reason": [required("Please provide a reason for deactivation")]},
    )
