"""
Modal Form Lifecycle Controller.

Drives one record's create / edit / deactivate form through

    CLOSED -> OPEN -> VALIDATING -> CONFIRMING -> SUBMITTING -> RECONCILING -> CLOSED

with an OPEN -> CLOSED edge for cancel, escape and backdrop clicks that asks
before discarding unsaved changes. Every mutation is confirmed by the
operator, serialized through the ActionLock, dispatched exactly once, and
merged back into the roster by the owning controller. Errors thrown by the
roster source stop here and become field errors or a notification.
"""

from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from util.logging import audit_event, logger

from .action_lock import NEW_RECORD, ActionLock
from .errors import (
    ConcurrencyRejection,
    ConflictError,
    FormValidationError,
    SourceError,
    classify_source_error,
)
from .forms import FormDraft, FormSchema
from .notify import ConfirmationPrompt, Notifier
from .preview import PreviewAllocator, PreviewManager, SelectedFile
from .validation import ValidationContext, aggregate, clean, first_invalid, run_rules_async

BUSY_MESSAGE = "Please wait until the current action completes"


class ModalState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    VALIDATING = "validating"
    CONFIRMING = "confirming"
    SUBMITTING = "submitting"
    RECONCILING = "reconciling"


class FormMode(str, Enum):
    CREATE = "create"
    EDIT = "edit"
    DEACTIVATE = "deactivate"


class SubmitResult(str, Enum):
    SAVED = "saved"
    INVALID = "invalid"
    DECLINED = "declined"
    BUSY = "busy"
    FAILED = "failed"
    CANCELLED = "cancelled"


# States in which the close button is disabled
IN_FLIGHT = (ModalState.SUBMITTING, ModalState.RECONCILING)


class ModalFormController:
    """Lifecycle of the one form a roster page may have open."""

    def __init__(self, area: str, lock: ActionLock, source, confirm: ConfirmationPrompt,
                 notifier: Notifier, roster_snapshot: Callable[[], List[Mapping[str, Any]]],
                 on_saved: Callable[[Mapping[str, Any], FormMode], None],
                 url_resolver: Optional[Callable[[Mapping[str, Any]], Optional[str]]] = None,
                 name_of: Callable[[Mapping[str, Any]], str] = lambda record: "",
                 allocator: Optional[PreviewAllocator] = None):
        self.area = area
        self.lock = lock
        self.source = source
        self.confirm = confirm
        self.notifier = notifier
        self.roster_snapshot = roster_snapshot
        self.on_saved = on_saved
        self.url_resolver = url_resolver
        self.name_of = name_of
        self.allocator = allocator

        self.state = ModalState.CLOSED
        self.mode: Optional[FormMode] = None
        self.draft: Optional[FormDraft] = None

    @property
    def is_open(self) -> bool:
        return self.state is not ModalState.CLOSED

    @property
    def can_close(self) -> bool:
        return self.state not in IN_FLIGHT

    # Opening

    def open(self, mode: FormMode, schema: FormSchema, record: Optional[Mapping[str, Any]] = None) -> FormDraft:
        if self.is_open:
            raise RuntimeError(f"{self.area} form already open ({self.mode.value})")
        if mode is not FormMode.CREATE and record is None:
            raise ValueError(f"{mode.value} needs a record")

        values = schema.from_record(record) if record is not None else schema.blank()
        preview = PreviewManager(self.allocator)
        self.draft = FormDraft(schema, values, source=record, preview=preview)
        if record is not None and schema.file_field and self.url_resolver:
            preview.set_from_url(self.url_resolver(record))

        self.mode = mode
        self.state = ModalState.OPEN
        logger.log_operation(f"form.{mode.value}", "opened",
                             {"area": self.area, "record_id": self.draft.record_id})
        return self.draft

    # Editing

    def _context(self) -> ValidationContext:
        draft = self.draft
        return ValidationContext(
            values=draft.values,
            is_edit=draft.is_edit,
            record_id=draft.record_id,
            roster=self.roster_snapshot(),
        )

    def _editable(self) -> bool:
        return self.state is ModalState.OPEN

    async def edit_field(self, name: str, value: Any) -> Optional[str]:
        """Apply an edit and re-run only that field's rules. Returns its error."""
        if not self._editable():
            return None
        draft = self.draft
        generation = draft.set_value(name, value)
        rules = draft.schema.rules.get(name)
        if not rules:
            draft.record_error(name, None, generation)
            return None

        message = await run_rules_async(rules, draft.values[name], self._context())
        if self.draft is not draft:
            return None
        # A newer edit of the same field wins over this result
        draft.record_error(name, message, generation)
        return draft.errors.get(name)

    def select_file(self, file: SelectedFile) -> bool:
        if not self._editable():
            return False
        draft = self.draft
        schema = draft.schema
        if not schema.file_field:
            raise ValueError(f"{self.area} form has no file field")

        if not file.is_image:
            draft.errors[schema.file_field] = "Only image files (PNG, JPG, GIF, SVG, WebP) are allowed"
            return False
        if file.size > schema.max_file_bytes:
            limit_mb = schema.max_file_bytes / (1024 * 1024)
            draft.errors[schema.file_field] = f"Please upload an image no larger than {limit_mb:g}MB"
            return False

        draft.errors.pop(schema.file_field, None)
        draft.file = file
        draft.file_removed = False
        draft.preview.set_from_file(file)
        return True

    def clear_file(self) -> None:
        if not self._editable():
            return
        draft = self.draft
        schema = draft.schema
        draft.file = None
        # Only an already stored file can be asked to be removed
        draft.file_removed = bool(draft.source and schema.file_path_field
                                  and draft.source.get(schema.file_path_field))
        draft.preview.clear()
        if schema.file_field:
            draft.errors.pop(schema.file_field, None)

    # Submitting

    async def validate_all(self) -> Dict[str, str]:
        draft = self.draft
        ctx = self._context()
        errors = {}
        for name, rules in draft.schema.rules.items():
            errors[name] = await run_rules_async(rules, draft.values.get(name), ctx)
        draft.errors = clean(errors)
        return draft.errors

    async def ensure_valid(self) -> None:
        """Full validation pass; raises FormValidationError listing every failing field."""
        errors = await self.validate_all()
        if errors:
            raise FormValidationError(errors)

    def _confirmation(self):
        draft = self.draft
        entity = draft.schema.entity
        name = self.name_of({**(draft.source or {}), **draft.values})
        if self.mode is FormMode.CREATE:
            return (f"Register {entity}?",
                    f'Are you sure you want to register "{name}"? '
                    "Please verify all information is correct before proceeding.",
                    f"Register {entity}")
        if self.mode is FormMode.EDIT:
            return (f"Update {entity}?",
                    f'Are you sure you want to update "{name}"? '
                    "This will save all the changes you've made.",
                    f"Update {entity}")
        return (f"Deactivate {entity}?",
                f'Are you sure you want to deactivate "{name}"?',
                "Deactivate")

    def _success_message(self) -> str:
        entity = self.draft.schema.entity
        return {
            FormMode.CREATE: f"{entity} registered",
            FormMode.EDIT: f"{entity} updated successfully",
            FormMode.DEACTIVATE: f"{entity} deactivated",
        }[self.mode]

    async def _dispatch(self, draft: FormDraft) -> Mapping[str, Any]:
        payload = draft.build_payload()
        audit_event(f"{self.area}.{self.mode.value}", {"record_id": draft.record_id}, payload)
        if self.mode is FormMode.CREATE:
            return await self.source.create(payload)
        if self.mode is FormMode.EDIT:
            return await self.source.update(draft.record_id, payload)
        reason = str(payload.get("deactivate_reason") or "").strip()
        return await self.source.set_status(draft.record_id, "inactive", reason)

    async def submit(self) -> SubmitResult:
        if self.state is ModalState.CLOSED:
            return SubmitResult.CANCELLED
        if self.state is not ModalState.OPEN:
            self.notifier.notify_warning(BUSY_MESSAGE)
            return SubmitResult.BUSY

        draft = self.draft
        schema = draft.schema
        self.state = ModalState.VALIDATING
        try:
            await self.ensure_valid()
        except FormValidationError as e:
            if self.draft is not draft:
                return SubmitResult.CANCELLED
            draft.focus_field = first_invalid(e.errors, schema.fields)
            logger.log_validation_errors(self.area, e.errors, draft.record_id)
            self.notifier.notify_error(aggregate(e.errors, schema.labels))
            self.state = ModalState.OPEN
            return SubmitResult.INVALID
        if self.draft is not draft or self.state is not ModalState.VALIDATING:
            return SubmitResult.CANCELLED

        self.state = ModalState.CONFIRMING
        title, message, confirm_label = self._confirmation()
        answer = await self.confirm.confirm(title, message, confirm_label, "Cancel")
        if self.draft is not draft or self.state is not ModalState.CONFIRMING:
            # Closed while the prompt was up
            return SubmitResult.CANCELLED
        if not answer.confirmed:
            self.state = ModalState.OPEN
            return SubmitResult.DECLINED

        lock_id = draft.record_id if draft.is_edit else NEW_RECORD
        try:
            self.lock.require(lock_id)
        except ConcurrencyRejection as e:
            self.notifier.notify_warning(str(e))
            self.state = ModalState.OPEN
            return SubmitResult.BUSY

        try:
            self.state = ModalState.SUBMITTING
            draft.is_submitting = True
            self.notifier.notify_busy(f"Saving {schema.entity.lower()}")
            try:
                saved = await self._dispatch(draft)
            except Exception as exc:
                self.notifier.notify_busy_done()
                self._apply_failure(classify_source_error(exc))
                return SubmitResult.FAILED
            self.notifier.notify_busy_done()

            self.state = ModalState.RECONCILING
            self.lock.assert_held(lock_id)
            self.on_saved(saved, self.mode)
            logger.log_roster_action(self.area, self.mode.value, saved.get("id"))
            self.notifier.notify_success(self._success_message())
            self._after_save(saved)
            return SubmitResult.SAVED
        finally:
            draft.is_submitting = False
            self.lock.end_action()
            if self.state in IN_FLIGHT:
                self.state = ModalState.OPEN

    def _apply_failure(self, error: SourceError) -> None:
        draft = self.draft
        if isinstance(error, ConflictError):
            draft.errors.update(error.field_errors)
            draft.focus_field = first_invalid(error.field_errors, draft.schema.fields)
        logger.log_roster_action(self.area, self.mode.value, draft.record_id, "failed",
                                 {"error": error.message, "fields": sorted(error.field_errors)})
        self.notifier.notify_error(error.message)

    def _after_save(self, saved: Mapping[str, Any]) -> None:
        draft = self.draft
        if self.mode is FormMode.DEACTIVATE or draft.schema.close_on_save:
            self._close()
            return
        # Staying open: the saved record is the new baseline
        draft.snapshot(saved)
        draft.errors.clear()
        self.mode = FormMode.EDIT
        if draft.schema.file_field:
            url = self.url_resolver(saved) if self.url_resolver else None
            draft.preview.set_from_url(url)

    # Closing

    async def request_close(self, trigger: str = "button") -> bool:
        """Close on cancel/escape/backdrop; asks first when the draft is dirty."""
        if self.state is ModalState.CLOSED:
            return True
        if not self.can_close:
            return False
        if self.draft.is_dirty:
            answer = await self.confirm.confirm(
                "Discard changes?",
                "You have unsaved changes. Close without saving?",
                "Discard",
                "Continue editing",
            )
            if not answer.confirmed or not self.can_close:
                return False
        logger.log_operation("form.close", trigger, {"area": self.area})
        self._close()
        return True

    def _close(self) -> None:
        if self.draft is not None:
            self.draft.preview.clear()
        self.draft = None
        self.mode = None
        self.state = ModalState.CLOSED
