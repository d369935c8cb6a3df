"""
Roster Management Controller - the page-level contract of one feature area.

Owns the canonical Roster, the current QueryState, the ActionLock and the
page's single modal form. Presentation reads `view` and the is_disabled /
is_busy flags and calls the methods below; it never touches the roster
directly. The roster changes only through refresh and reconciliation.
"""

from typing import Any, Callable, Dict, Mapping, Optional

from util.logging import logger

from . import config
from .action_lock import ROSTER_ACTION, ActionLock
from .errors import ConcurrencyRejection, classify_source_error
from .modal import BUSY_MESSAGE, FormMode, ModalFormController
from .notify import ConfirmationPrompt, Notifier
from .preview import PreviewAllocator
from .query import QueryState, RosterView, compute_view, describe, next_sort, page_window
from .reconcile import Roster


class RosterController:
    """Search, paging, row actions and forms for one roster."""

    def __init__(self, capabilities, source, confirm: ConfirmationPrompt, notifier: Notifier,
                 page_size: Optional[int] = None, current_user_id: Any = None,
                 allocator: Optional[PreviewAllocator] = None):
        self.capabilities = capabilities
        self.source = source
        self.confirm = confirm
        self.notifier = notifier
        self.current_user_id = current_user_id

        self.roster = Roster()
        self.lock = ActionLock()
        self.loading = False
        sort_field, sort_direction = capabilities.default_sort
        self.query = QueryState(
            sort_field=sort_field,
            sort_direction=sort_direction,
            page_size=page_size or config.DEFAULT_PAGE_SIZE,
        )
        self.modal = ModalFormController(
            area=capabilities.key,
            lock=self.lock,
            source=source,
            confirm=confirm,
            notifier=notifier,
            roster_snapshot=lambda: self.roster.records,
            on_saved=self._on_saved,
            url_resolver=capabilities.preview_url,
            name_of=capabilities.name_of,
            allocator=allocator,
        )

    @property
    def area(self) -> str:
        return self.capabilities.key

    # Derived views

    @property
    def view(self) -> RosterView:
        return compute_view(self.roster.records, self.query, self.capabilities.query)

    def pages(self, max_visible: Optional[int] = None):
        view = self.view
        return page_window(view.current_page, view.total_pages, max_visible or config.PAGINATION_WINDOW)

    def stats(self) -> Dict[str, int]:
        records = self.roster.records
        stats = {"total": len(records), "filtered": self.view.total_filtered}
        if self.capabilities.supports_status:
            counts = self.roster.count_by("is_active")
            stats["active"] = counts.get(True, 0)
            stats["inactive"] = len(records) - stats["active"]
        return stats

    def is_disabled(self, record_id: Any = None) -> bool:
        return self.loading or self.lock.is_disabled(record_id)

    def is_busy(self, record_id: Any) -> bool:
        return self.lock.is_busy(record_id)

    def file_url(self, record: Mapping[str, Any], kind: str) -> Optional[str]:
        return self.capabilities.file_url(record, kind)

    # Query updates

    def _set_query(self, query: QueryState) -> QueryState:
        # Keep the stored page inside the filtered range
        total = compute_view(self.roster.records, query, self.capabilities.query).total_filtered
        self.query = query.clamp(total)
        logger.debug(f"{self.area} query {describe(self.query)}")
        return self.query

    def set_search(self, term: str) -> QueryState:
        return self._set_query(self.query.with_search(term))

    def set_filter(self, name: str, value: Any) -> QueryState:
        return self._set_query(self.query.with_filter(name, value))

    def clear_filters(self) -> QueryState:
        return self._set_query(self.query.without_filters())

    def set_page_size(self, page_size: int) -> QueryState:
        return self._set_query(self.query.with_page_size(page_size))

    def set_page(self, page: int) -> QueryState:
        return self._set_query(self.query.with_page(page))

    def sort_by(self, field_name: str) -> QueryState:
        if self.lock.is_locked:
            return self.query
        return self._set_query(next_sort(self.query, field_name, self.capabilities.query))

    # Loading

    async def load(self) -> bool:
        """Initial fetch; failures keep whatever was shown before."""
        self.loading = True
        try:
            records = await self.source.fetch_all()
        except Exception as exc:
            error = classify_source_error(exc)
            logger.log_roster_action(self.area, "fetch", status="failed", details={"error": error.message})
            self.notifier.notify_error(error.message or f"Unable to load {self.capabilities.entity.lower()} records")
            return False
        finally:
            self.loading = False
        self.roster.replace_all(records)
        self._set_query(self.query)
        logger.log_roster_action(self.area, "fetch", details={"count": len(self.roster)})
        return True

    async def refresh(self) -> bool:
        """Re-fetch under the action lock so it cannot race an edit."""
        if not self._begin(ROSTER_ACTION):
            return False
        try:
            loaded = await self.load()
        finally:
            self.lock.end_action()
        if loaded:
            self.notifier.notify_success(f"{self.capabilities.entity} data refreshed")
        return loaded

    # Forms

    def _can_open(self) -> bool:
        if self.lock.is_locked:
            self.notifier.notify_warning(BUSY_MESSAGE)
            return False
        if self.modal.is_open:
            self.notifier.notify_warning("Finish or close the open form first")
            return False
        return True

    def _record(self, record_id: Any) -> Mapping[str, Any]:
        record = self.roster.get(record_id)
        if record is None:
            raise KeyError(f"{self.area} record {record_id!r} is not loaded")
        return record

    def open_create(self) -> Optional[ModalFormController]:
        if not self.capabilities.can_create or not self._can_open():
            return None
        self.modal.open(FormMode.CREATE, self.capabilities.form)
        return self.modal

    def open_edit(self, record_id: Any) -> Optional[ModalFormController]:
        record = self._record(record_id)
        if not self._can_open():
            return None
        self.modal.open(FormMode.EDIT, self.capabilities.form, record)
        return self.modal

    def open_deactivate(self, record_id: Any) -> Optional[ModalFormController]:
        record = self._record(record_id)
        if self.capabilities.deactivate_form is None or not self._not_self(record_id, "deactivate"):
            return None
        if not self._can_open():
            return None
        self.modal.open(FormMode.DEACTIVATE, self.capabilities.deactivate_form, record)
        return self.modal

    def _on_saved(self, saved: Mapping[str, Any], mode: FormMode) -> None:
        replaced = self.roster.reconcile(saved)
        logger.debug(f"{self.area} reconciled {saved.get('id')} ({'replaced' if replaced else 'inserted'}, {mode.value})")
        self._set_query(self.query)

    # Row actions

    def _begin(self, record_id: Any) -> bool:
        try:
            self.lock.require(record_id)
        except ConcurrencyRejection as e:
            self.notifier.notify_warning(str(e))
            return False
        return True

    def _not_self(self, record_id: Any, action: str) -> bool:
        if self.current_user_id is not None and record_id == self.current_user_id:
            self.notifier.notify_error(f"You cannot {action} your own account")
            return False
        return True

    async def _row_action(self, record_id: Any, action: str, prompt, busy: str,
                          call: Callable, success: str, on_success: Callable) -> bool:
        """Confirm, lock, call the source once, reconcile. The lock is always released."""
        if self.lock.is_locked:
            self.notifier.notify_warning(BUSY_MESSAGE)
            return False
        title, message, confirm_label = prompt
        answer = await self.confirm.confirm(title, message, confirm_label, "Cancel")
        if not answer.confirmed:
            return False
        if not self._begin(record_id):
            return False
        try:
            self.notifier.notify_busy(busy)
            try:
                result = await call()
            except Exception as exc:
                error = classify_source_error(exc)
                logger.log_roster_action(self.area, action, record_id, "failed", {"error": error.message})
                self.notifier.notify_error(error.message)
                return False
            finally:
                self.notifier.notify_busy_done()
            self.lock.assert_held(record_id)
            on_success(result)
            self._set_query(self.query)
            logger.log_roster_action(self.area, action, record_id)
            self.notifier.notify_success(success)
            return True
        finally:
            self.lock.end_action()

    def _require_status(self) -> None:
        if not self.capabilities.supports_status:
            raise ValueError(f"{self.area} records have no active/inactive status")

    async def activate(self, record_id: Any) -> bool:
        self._require_status()
        record = self._record(record_id)
        entity = self.capabilities.entity
        name = self.capabilities.name_of(record)
        return await self._row_action(
            record_id, "activate",
            (f"Reactivate {entity}", f"Allow {name} to access the portal again?", "Reactivate"),
            f"Reactivating {entity.lower()}",
            lambda: self.source.set_status(record_id, "active"),
            f"{entity} account reactivated",
            self.roster.reconcile,
        )

    async def deactivate(self, record_id: Any, reason: str) -> bool:
        """Deactivate with a reason collected outside a form (quick action)."""
        self._require_status()
        record = self._record(record_id)
        if not self._not_self(record_id, "deactivate"):
            return False
        reason = (reason or "").strip()
        if not reason:
            self.notifier.notify_error("Please provide a reason for deactivation")
            return False
        entity = self.capabilities.entity
        name = self.capabilities.name_of(record)
        return await self._row_action(
            record_id, "deactivate",
            (f"Deactivate {entity}?", f'Are you sure you want to deactivate "{name}"?', "Deactivate"),
            f"Deactivating {entity.lower()}",
            lambda: self.source.set_status(record_id, "inactive", reason),
            f"{entity} deactivated",
            self.roster.reconcile,
        )

    async def delete(self, record_id: Any) -> bool:
        record = self._record(record_id)
        if not self.capabilities.can_delete or not self._not_self(record_id, "delete"):
            return False
        entity = self.capabilities.entity
        name = self.capabilities.name_of(record)
        return await self._row_action(
            record_id, "delete",
            (f"Remove {entity}", f"Are you sure you want to remove {name}?", "Yes, remove"),
            f"Removing {entity.lower()}",
            lambda: self.source.delete(record_id),
            f"{entity} removed successfully",
            lambda _result: self.roster.remove(record_id),
        )
