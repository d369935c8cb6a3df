"""
Wire models for the roster API.
Records are validated on the way in and handed to the core as plain dicts.
"""

from pydantic import BaseModel, ConfigDict, field_validator
from typing import Any, Dict, List, Optional, Union
from datetime import datetime


class RosterRecord(BaseModel):
    """Any record the API returns; unknown fields are kept."""
    # Numeric employee ids and phones arrive as JSON numbers from some endpoints
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: Union[int, str]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_record(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json")
        return data


class PersonnelRecord(RosterRecord):
    first_name: str = ""
    last_name: str = ""
    employee_id: Optional[str] = None
    id_number: Optional[str] = None
    username: Optional[str] = None
    phone: Optional[str] = None
    employment_status: Optional[str] = None
    employment_level: Optional[str] = None
    position: Optional[str] = None
    avatar_path: Optional[str] = None
    is_active: bool = True
    deactivate_reason: Optional[str] = None


class AccountingRecord(RosterRecord):
    username: str = ""
    first_name: str = ""
    last_name: str = ""
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    avatar_path: Optional[str] = None
    is_active: bool = True
    deactivate_reason: Optional[str] = None


class DcpPackageRecord(RosterRecord):
    batch_name: str = ""
    quantity: int = 1
    details: Optional[str] = None
    delivery_date: Optional[str] = None
    delivery_status: Optional[str] = None
    installation_status: Optional[str] = None
    remarks: Optional[str] = None
    dr_number: Optional[str] = None
    dr_filename: Optional[str] = None
    ptr_number: Optional[str] = None
    ptr_filename: Optional[str] = None
    iar_number: Optional[str] = None
    iar_filename: Optional[str] = None


class ApiErrorBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: str = "Request failed"
    errors: Dict[str, Union[List[str], str]] = {}

    @field_validator('message', mode='before')
    @classmethod
    def message_must_not_be_empty(cls, v):
        if v is None or not str(v).strip():
            return "Request failed"
        return v

    def first_errors(self) -> Dict[str, str]:
        """First message per field, the way forms display them."""
        flattened = {}
        for field, messages in self.errors.items():
            if isinstance(messages, list):
                if messages:
                    flattened[field] = str(messages[0])
            elif messages:
                flattened[field] = str(messages)
        return flattened


class StatusChangeRequest(BaseModel):
    deactivate_reason: str

    @field_validator('deactivate_reason')
    @classmethod
    def reason_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('deactivate_reason cannot be empty')
        return v.strip()


RECORD_MODELS = {
    "personnel": PersonnelRecord,
    "accounting": AccountingRecord,
    "packages": DcpPackageRecord,
}
