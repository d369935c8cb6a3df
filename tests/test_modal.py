"""
Modal form lifecycle tests - validation, confirmation, single dispatch,
reconciliation, failure handling and guarded closing.
"""

import asyncio
from dataclasses import replace

import pytest

from src.core.action_lock import ActionLock
from src.core.controller import RosterController
from src.core.errors import ConflictError, FormValidationError, LockInvariantViolation
from src.core.forms import FormSchema
from src.core.modal import BUSY_MESSAGE, FormMode, ModalFormController, ModalState, SubmitResult
from src.core.notify import ConfirmResult
from src.core.preview import SelectedFile
from src.rosters import PERSONNEL

NEW_PERSON = {
    "first_name": "Mara",
    "last_name": "Manalo",
    "employee_id": "E100",
    "id_number": "ID-100",
    "username": "mara.manalo",
    "phone": "09171234567",
    "employment_status": "Permanent",
    "employment_level": "Teacher II",
    "password": "secret1",
    "password_confirmation": "secret1",
}


async def fill(modal, values):
    for name, value in values.items():
        await modal.edit_field(name, value)


class TestEditFlow:
    """Open an existing record, change it, save."""

    def test_edit_saves_once_and_reconciles(self, controller, source, confirm, notifier):
        async def scenario():
            modal = controller.open_edit(4)
            await modal.edit_field("position", "Head Teacher")
            return modal, await modal.submit()

        modal, result = asyncio.run(scenario())

        assert result is SubmitResult.SAVED
        assert source.count("update") == 1
        assert confirm.prompts == ["Update Personnel?"]
        assert controller.roster.get(4)["position"] == "Head Teacher"
        assert len(controller.roster) == 12
        assert modal.state is ModalState.CLOSED
        assert not controller.lock.is_locked
        assert notifier.successes == ["Personnel updated successfully"]
        assert notifier.busy == ["Saving personnel"]
        assert notifier.busy_done == 1

    def test_edit_payload_skips_blank_password(self, controller, source):
        async def scenario():
            modal = controller.open_edit(4)
            await modal.edit_field("notes", "Transferred from annex")
            await modal.submit()

        asyncio.run(scenario())
        _, record_id, payload = source.calls[-1]
        assert record_id == 4
        assert "password" not in payload
        assert payload["phone"] == "09513419336"

    def test_declined_confirmation_keeps_form_open(self, controller, source, confirm):
        confirm.answers.append(False)

        async def scenario():
            modal = controller.open_edit(4)
            await modal.edit_field("position", "Head Teacher")
            return modal, await modal.submit()

        modal, result = asyncio.run(scenario())
        assert result is SubmitResult.DECLINED
        assert modal.state is ModalState.OPEN
        assert source.count("update") == 0
        assert not controller.lock.is_locked


class TestCreateFlow:
    """Register a new record."""

    def test_validation_failure_stops_before_prompt(self, controller, source, confirm, notifier):
        async def scenario():
            modal = controller.open_create()
            return modal, await modal.submit()

        modal, result = asyncio.run(scenario())

        assert result is SubmitResult.INVALID
        assert confirm.prompts == []
        assert source.count("create") == 0
        assert modal.state is ModalState.OPEN
        assert modal.draft.focus_field == "first_name"
        assert notifier.errors[-1].startswith("Please fix the following errors before submitting:")
        assert "- First Name: First name is required" in notifier.errors[-1]
        assert "- Portal Password: Portal password is required" in notifier.errors[-1]

    def test_ensure_valid_raises_with_every_field(self, controller):
        modal = controller.open_create()
        with pytest.raises(FormValidationError) as exc_info:
            asyncio.run(modal.ensure_valid())
        assert {"first_name", "last_name", "employee_id", "password"} <= set(exc_info.value.errors)
        assert "phone" not in exc_info.value.errors

    def test_duplicate_employee_number_caught_locally(self, controller, source):
        async def scenario():
            modal = controller.open_create()
            await fill(modal, {**NEW_PERSON, "employee_id": "E004"})
            return modal, await modal.submit()

        modal, result = asyncio.run(scenario())
        assert result is SubmitResult.INVALID
        assert modal.draft.errors["employee_id"] == "Employee number already exists"
        assert source.count("create") == 0

    def test_create_with_avatar(self, controller, source, allocator, avatar_file, notifier):
        async def scenario():
            modal = controller.open_create()
            await fill(modal, NEW_PERSON)
            assert modal.select_file(avatar_file)
            return modal, await modal.submit()

        modal, result = asyncio.run(scenario())

        assert result is SubmitResult.SAVED
        _, payload = source.calls[-1]
        assert payload["avatar"] is avatar_file
        assert payload["password"] == "secret1"
        created = controller.roster.records[0]
        assert created["id"] == 13
        assert created["avatar_path"] == "personnel-avatars/13.png"
        assert notifier.successes == ["Personnel registered"]
        # Preview handle freed when the form closed
        assert allocator.live == {}
        assert len(allocator.released) == 1

    def test_stay_open_after_save_rebaselines(self, source, confirm, notifier, allocator, monkeypatch):
        monkeypatch.setenv("API_BASE_URL", "http://api.test")
        capabilities = replace(PERSONNEL, form=replace(PERSONNEL.form, close_on_save=False))
        controller = RosterController(capabilities, source, confirm, notifier, allocator=allocator)

        async def scenario():
            await controller.load()
            modal = controller.open_create()
            await fill(modal, NEW_PERSON)
            modal.select_file(SelectedFile("a.png", "image/png", 100, data=b"x"))
            result = await modal.submit()
            return modal, result

        modal, result = asyncio.run(scenario())

        assert result is SubmitResult.SAVED
        assert modal.state is ModalState.OPEN
        assert modal.mode is FormMode.EDIT
        assert modal.draft.record_id == 13
        assert not modal.draft.is_dirty
        assert modal.draft.preview.url == "http://api.test/personnel-avatar/13.png"

        prompts_before = len(confirm.prompts)
        assert asyncio.run(modal.request_close()) is True
        # Nothing changed since the save, so no discard prompt
        assert len(confirm.prompts) == prompts_before


class TestDeactivateForm:
    """Deactivation collects a reason through its own form."""

    def test_reason_required_then_saved(self, controller, source, notifier):
        async def scenario():
            modal = controller.open_deactivate(4)
            first = await modal.submit()
            await modal.edit_field("deactivate_reason", "Retired")
            second = await modal.submit()
            return modal, first, second

        modal, first, second = asyncio.run(scenario())

        assert first is SubmitResult.INVALID
        assert "Please provide a reason for deactivation" in notifier.errors[0]
        assert second is SubmitResult.SAVED
        assert source.calls[-1] == ("set_status", 4, "inactive", "Retired")
        assert controller.roster.get(4)["is_active"] is False
        assert modal.state is ModalState.CLOSED
        assert notifier.successes == ["Personnel deactivated"]


class TestFailures:
    """Source errors stop at the modal boundary."""

    def test_conflict_merges_field_errors(self, controller, source, notifier):
        source.fail_with = ConflictError("The given data was invalid.",
                                         {"username": "The username has already been taken."}, 422)

        async def scenario():
            modal = controller.open_edit(4)
            await modal.edit_field("username", "someone.else")
            return modal, await modal.submit()

        modal, result = asyncio.run(scenario())

        assert result is SubmitResult.FAILED
        assert modal.state is ModalState.OPEN
        assert modal.draft.errors == {"username": "The username has already been taken."}
        assert modal.draft.focus_field == "username"
        assert modal.draft.is_dirty
        assert notifier.errors == ["The given data was invalid."]
        assert not controller.lock.is_locked
        assert controller.roster.get(4)["username"] == "dino.dizon"

    def test_transport_failure_keeps_draft(self, controller, source, notifier):
        source.fail_with = RuntimeError("Connection reset")

        async def scenario():
            modal = controller.open_edit(4)
            await modal.edit_field("position", "Head Teacher")
            return modal, await modal.submit()

        modal, result = asyncio.run(scenario())

        assert result is SubmitResult.FAILED
        assert notifier.errors == ["Connection reset"]
        assert modal.draft.values["position"] == "Head Teacher"
        assert modal.draft.is_dirty
        assert not modal.draft.is_submitting
        assert not controller.lock.is_locked
        assert notifier.busy_done == 1

    def test_reconcile_without_lock_is_an_invariant_violation(self, controller, source):
        async def steal_lock(record_id, payload):
            controller.lock.end_action()
            controller.lock.begin_action(99)
            return {**controller.roster.get(record_id), **payload}

        source.update = steal_lock

        async def scenario():
            modal = controller.open_edit(4)
            await modal.edit_field("position", "Head Teacher")
            await modal.submit()

        with pytest.raises(LockInvariantViolation):
            asyncio.run(scenario())
        assert controller.roster.get(4)["position"] == "Teacher"
        assert not controller.lock.is_locked


class TestConcurrency:
    """Single flight within one modal."""

    def test_second_submit_while_in_flight_is_refused(self, controller, source, notifier):
        async def scenario():
            source.gate = asyncio.Event()
            modal = controller.open_edit(4)
            await modal.edit_field("position", "Head Teacher")
            first = asyncio.create_task(modal.submit())
            while modal.state is not ModalState.SUBMITTING:
                await asyncio.sleep(0)

            second = await modal.submit()
            flags = (controller.is_busy(4), controller.is_disabled(5), controller.is_disabled(),
                     await modal.request_close("escape"))
            source.gate.set()
            return await first, second, flags

        first, second, flags = asyncio.run(scenario())

        assert first is SubmitResult.SAVED
        assert second is SubmitResult.BUSY
        assert flags == (True, True, True, False)
        assert BUSY_MESSAGE in notifier.warnings
        assert source.count("update") == 1

    def test_stale_async_validation_is_dropped(self, notifier, confirm):
        async def availability(value, ctx):
            # Older edits answer later than newer ones
            await asyncio.sleep(0.02 if value == "taken" else 0)
            return "Username already exists" if value == "taken" else None

        schema = FormSchema(entity="Account", template={"username": ""}, rules={"username": [availability]})
        modal = ModalFormController("accounts", lock=ActionLock(), source=None, confirm=confirm,
                                    notifier=notifier, roster_snapshot=list, on_saved=lambda r, m: None)

        async def scenario():
            modal.open(FormMode.CREATE, schema)
            await asyncio.gather(modal.edit_field("username", "taken"), modal.edit_field("username", "free"))

        asyncio.run(scenario())
        assert modal.draft.values["username"] == "free"
        assert "username" not in modal.draft.errors

    def test_open_twice_is_an_error(self, controller):
        controller.open_edit(4)
        with pytest.raises(RuntimeError):
            controller.modal.open(FormMode.EDIT, PERSONNEL.form, controller.roster.get(5))


class TestClosing:
    """Cancel, escape and backdrop handling."""

    def test_clean_form_closes_without_prompt(self, controller, confirm):
        modal = controller.open_edit(4)
        assert asyncio.run(modal.request_close("backdrop")) is True
        assert confirm.prompts == []
        assert modal.state is ModalState.CLOSED

    def test_dirty_backdrop_close_asks_first(self, controller, source, confirm):
        confirm.answers.extend([False, True])

        async def scenario():
            modal = controller.open_edit(4)
            await modal.edit_field("first_name", "Dina")
            kept = await modal.request_close("backdrop")
            state_after_keep = modal.state
            closed = await modal.request_close("backdrop")
            return modal, kept, state_after_keep, closed

        modal, kept, state_after_keep, closed = asyncio.run(scenario())

        assert kept is False
        assert state_after_keep is ModalState.OPEN
        assert closed is True
        assert modal.state is ModalState.CLOSED
        assert confirm.prompts == ["Discard changes?", "Discard changes?"]
        assert source.count("update") == 0
        assert controller.roster.get(4)["first_name"] == "Dino"

    def test_close_releases_preview(self, controller, allocator, avatar_file):
        async def scenario():
            modal = controller.open_create()
            modal.select_file(avatar_file)
            modal.select_file(avatar_file)
            return await modal.request_close()

        assert asyncio.run(scenario()) is True
        assert allocator.live == {}
        assert len(allocator.released) == 2

    def test_close_during_confirmation_cancels_submit(self, controller, source):
        class ClosingConfirm:
            def __init__(self):
                self.prompts = []

            async def confirm(self, title, message, confirm_label, cancel_label):
                self.prompts.append(title)
                if title.startswith("Update"):
                    await controller.modal.request_close("escape")
                return ConfirmResult(True)

        prompt = ClosingConfirm()
        controller.modal.confirm = prompt

        async def scenario():
            modal = controller.open_edit(4)
            await modal.edit_field("position", "Head Teacher")
            return await modal.submit()

        assert asyncio.run(scenario()) is SubmitResult.CANCELLED
        assert prompt.prompts == ["Update Personnel?", "Discard changes?"]
        assert source.count("update") == 0
        assert not controller.lock.is_locked


class TestFileSelection:
    """Avatar selection rules."""

    def test_rejects_non_image(self, controller):
        modal = controller.open_create()
        ok = modal.select_file(SelectedFile("cv.pdf", "application/pdf", 100))
        assert ok is False
        assert modal.draft.errors["avatar"] == "Only image files (PNG, JPG, GIF, SVG, WebP) are allowed"
        assert modal.draft.file is None

    def test_rejects_oversize(self, controller):
        modal = controller.open_create()
        ok = modal.select_file(SelectedFile("big.png", "image/png", 3 * 1024 * 1024))
        assert ok is False
        assert modal.draft.errors["avatar"] == "Please upload an image no larger than 2MB"

    def test_clear_stored_avatar_requests_removal(self, controller, source):
        source.records[3]["avatar_path"] = "personnel-avatars/4.png"
        asyncio.run(controller.load())
        modal = controller.open_edit(4)
        modal.clear_file()
        assert modal.draft.file_removed
        assert modal.draft.is_dirty
        assert modal.draft.build_payload()["remove_avatar"] is True

    def test_clear_without_stored_avatar_is_noop(self, controller):
        modal = controller.open_edit(4)
        modal.clear_file()
        assert not modal.draft.file_removed
        assert not modal.draft.is_dirty

    def test_edit_shows_stored_avatar(self, controller, source, monkeypatch):
        monkeypatch.setenv("API_BASE_URL", "http://api.test")
        source.records[3]["avatar_path"] = "personnel-avatars/dizon.png"
        asyncio.run(controller.load())
        modal = controller.open_edit(4)
        assert modal.draft.preview.url == "http://api.test/personnel-avatar/dizon.png"
        assert not modal.draft.preview.handle.local
