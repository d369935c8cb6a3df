"""DCP equipment package batches and their delivery progress."""

from src.core import config
from src.core.forms import FormSchema
from src.core.query import QueryCapabilities, SortDirection, any_status_filter
from src.core.validation import required

from .types import RosterCapabilities

DELIVERY_STATUSES = ["Pending", "In Transit", "Delivered", "Partially Delivered", "Cancelled"]
INSTALLATION_STATUSES = ["Not Started", "Ongoing", "Completed", "On Hold"]
DOCUMENT_TYPES = ("dr", "ptr", "iar")

TEMPLATE = {
    "batch_name": "",
    "quantity": 1,
    "details": "",
    "delivery_date": "",
    "delivery_status": "",
    "installation_status": "",
    "remarks": "",
    "dr_number": "",
    "ptr_number": "",
    "iar_number": "",
}

LABELS = {
    "batch_name": "Batch Name",
    "quantity": "Quantity",
    "details": "Details",
    "delivery_date": "Delivery Date",
    "delivery_status": "Delivery Status",
    "installation_status": "Installation Status",
    "dr_number": "DR Number",
    "ptr_number": "PTR Number",
    "iar_number": "IAR Number",
}


def minimum_quantity(value, ctx):
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        quantity = 0
    return None if quantity >= 1 else "Minimum of 1 item"


def one_of(options, message):
    def rule(value, ctx):
        if not value:
            return None
        return None if value in options else message
    return rule


def as_quantity(value) -> int:
    try:
        return max(1, int(value))
    except (TypeError, ValueError):
        return 1


def document_url(record, kind):
    """Stored DR/PTR/IAR document of a package batch."""
    if kind not in DOCUMENT_TYPES or not record.get(f"{kind}_filename"):
        return None
    return f"{config.get_api_base_url()}/dcp-package-file/{record.get('id')}/{kind}"


FORM = FormSchema(
    entity="DCP Package",
    template=TEMPLATE,
    labels=LABELS,
    rules={
        "batch_name": [required("Batch name is required")],
        "details": [required("Provide package details")],
        "quantity": [minimum_quantity],
        "delivery_status": [one_of(DELIVERY_STATUSES, "Select a valid delivery status")],
        "installation_status": [one_of(INSTALLATION_STATUSES, "Select a valid installation status")],
    },
    date_fields=("delivery_date",),
    payload_transforms={"quantity": as_quantity},
)

PACKAGES = RosterCapabilities(
    key="packages",
    entity="DCP Package",
    query=QueryCapabilities(
        search_fields=("batch_name", "details", "remarks"),
        filters={"status": any_status_filter("delivery_status", "installation_status")},
        date_fields=frozenset({"created_at", "updated_at", "delivery_date"}),
        descending_fields=frozenset({"created_at", "updated_at", "delivery_date"}),
    ),
    default_sort=("created_at", SortDirection.DESC),
    form=FORM,
    name_of=lambda record: record.get("batch_name") or "Unnamed Batch",
    file_url=document_url,
    supports_status=False,
)
