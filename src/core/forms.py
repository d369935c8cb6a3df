"""
Form schema and Form Draft.

A FormSchema describes one modal form of a feature area: its fields and
defaults, labels, validation rules and how the draft becomes a request
payload. A FormDraft is the working copy the modal edits; it lives from
modal open to modal close.
"""

import copy
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .preview import PreviewManager, SelectedFile
from .validation import Rule


def normalize_date(value: Any) -> str:
    """Date-only (YYYY-MM-DD) representation; blank when missing or unreadable."""
    if not value:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date().isoformat()
    except ValueError:
        try:
            return date.fromisoformat(text[:10]).isoformat()
        except ValueError:
            return ""


@dataclass
class FormSchema:
    entity: str
    template: Dict[str, Any]
    labels: Dict[str, str] = field(default_factory=dict)
    rules: Dict[str, List[Rule]] = field(default_factory=dict)
    password_fields: Tuple[str, ...] = ()
    date_fields: Tuple[str, ...] = ()
    # Applied to a value as it is typed and when a record is loaded
    formatters: Dict[str, Callable[[Any], Any]] = field(default_factory=dict)
    # Applied to a value when the payload is built
    payload_transforms: Dict[str, Callable[[Any], Any]] = field(default_factory=dict)
    file_field: Optional[str] = None
    file_path_field: Optional[str] = None
    max_file_bytes: int = 2 * 1024 * 1024
    close_on_save: bool = True

    @property
    def fields(self) -> List[str]:
        return list(self.template.keys())

    @property
    def removal_flag(self) -> Optional[str]:
        return f"remove_{self.file_field}" if self.file_field else None

    def label(self, name: str) -> str:
        return self.labels.get(name, name.replace("_", " ").capitalize())

    def blank(self) -> Dict[str, Any]:
        return copy.deepcopy(self.template)

    def from_record(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        """Field-for-field copy of a record onto the template."""
        values = self.blank()
        for name in values:
            if name in self.password_fields:
                continue
            raw = record.get(name)
            if raw is None:
                continue
            if name in self.date_fields:
                raw = normalize_date(raw)
            formatter = self.formatters.get(name)
            values[name] = formatter(raw) if formatter else copy.deepcopy(raw)
        return values


class FormDraft:
    """Working copy of a record inside an open modal."""

    def __init__(self, schema: FormSchema, values: Dict[str, Any], source: Optional[Mapping[str, Any]] = None,
                 preview: Optional[PreviewManager] = None):
        self.schema = schema
        self.source = dict(source) if source is not None else None
        self.values = values
        self.initial = copy.deepcopy(values)
        self.errors: Dict[str, str] = {}
        self.file: Optional[SelectedFile] = None
        self.file_removed = False
        self.is_submitting = False
        self.focus_field: Optional[str] = None
        self.preview = preview or PreviewManager()
        self._generations: Dict[str, int] = {}

    @property
    def record_id(self):
        return self.source.get("id") if self.source else None

    @property
    def is_edit(self) -> bool:
        return self.source is not None

    @property
    def is_dirty(self) -> bool:
        if self.file is not None or self.file_removed:
            return True
        return self.values != self.initial

    def set_value(self, name: str, value: Any) -> int:
        """Apply an edit; returns the generation validation results must carry."""
        formatter = self.schema.formatters.get(name)
        self.values[name] = formatter(value) if formatter else value
        generation = self._generations.get(name, 0) + 1
        self._generations[name] = generation
        return generation

    def generation(self, name: str) -> int:
        return self._generations.get(name, 0)

    def record_error(self, name: str, message: Optional[str], generation: Optional[int] = None) -> bool:
        """Store a validation result unless a newer edit superseded it."""
        if generation is not None and generation != self.generation(name):
            return False
        if message:
            self.errors[name] = message
        else:
            self.errors.pop(name, None)
        return True

    def snapshot(self, record: Optional[Mapping[str, Any]] = None) -> None:
        """Re-baseline after a save; the draft is clean again."""
        if record is not None:
            self.source = dict(record)
            self.values = self.schema.from_record(record)
        self.initial = copy.deepcopy(self.values)
        self.file = None
        self.file_removed = False

    def build_payload(self) -> Dict[str, Any]:
        schema = self.schema
        payload: Dict[str, Any] = {}
        for name, value in self.values.items():
            if self.is_edit and name in schema.password_fields and not value:
                continue
            transform = schema.payload_transforms.get(name)
            payload[name] = transform(value) if transform else value
        for name in schema.date_fields:
            if name in payload and not payload[name]:
                payload[name] = None
        if schema.file_field:
            if self.file is not None:
                payload[schema.file_field] = self.file
            elif self.file_removed:
                payload[schema.removal_flag] = True
        return payload
