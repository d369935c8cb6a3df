"""
Shared fakes for roster console tests: an in-memory roster source, a
recording notifier and a scripted confirmation prompt.
"""

import asyncio
import copy

import pytest

from src.core.controller import RosterController
from src.core.errors import SourceError
from src.core.notify import ConfirmResult
from src.core.preview import LocalPreviewAllocator, SelectedFile
from src.rosters import PERSONNEL


class FakeRosterSource:
    """In-memory roster source that records every call."""

    def __init__(self, records=None):
        self.records = [dict(r) for r in (records or [])]
        self.calls = []
        self.fail_with = None
        self.gate = None
        self.next_id = max([r["id"] for r in self.records if isinstance(r.get("id"), int)] or [0]) + 1
        self.response_overrides = {}

    async def _enter(self, name, *args):
        self.calls.append((name,) + args)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with

    def _find(self, record_id):
        for record in self.records:
            if record["id"] == record_id:
                return record
        raise SourceError("Record not found", status=404)

    @staticmethod
    def _stored(payload):
        return {
            k: v for k, v in payload.items()
            if not isinstance(v, SelectedFile) and not k.startswith("remove_")
            and k not in ("password", "password_confirmation")
        }

    async def fetch_all(self):
        await self._enter("fetch_all")
        return copy.deepcopy(self.records)

    async def create(self, payload):
        await self._enter("create", payload)
        record = {"id": self.next_id, **self._stored(payload)}
        if any(isinstance(v, SelectedFile) for v in payload.values()):
            record["avatar_path"] = f"personnel-avatars/{self.next_id}.png"
        record.update(self.response_overrides)
        self.next_id += 1
        self.records.insert(0, record)
        return dict(record)

    async def update(self, record_id, payload):
        await self._enter("update", record_id, payload)
        record = self._find(record_id)
        record.update(self._stored(payload))
        if payload.get("remove_avatar"):
            record["avatar_path"] = None
        record.update(self.response_overrides)
        return dict(record)

    async def delete(self, record_id):
        await self._enter("delete", record_id)
        self.records.remove(self._find(record_id))

    async def set_status(self, record_id, status, reason=None):
        await self._enter("set_status", record_id, status, reason)
        record = self._find(record_id)
        record["is_active"] = status == "active"
        record["deactivate_reason"] = reason if status == "inactive" else None
        return dict(record)

    def count(self, name):
        return sum(1 for call in self.calls if call[0] == name)


class RecordingNotifier:
    def __init__(self):
        self.successes = []
        self.errors = []
        self.warnings = []
        self.busy = []
        self.busy_done = 0

    def notify_success(self, message):
        self.successes.append(message)

    def notify_error(self, message):
        self.errors.append(message)

    def notify_warning(self, message):
        self.warnings.append(message)

    def notify_busy(self, message):
        self.busy.append(message)

    def notify_busy_done(self):
        self.busy_done += 1


class ScriptedConfirm:
    """Answers prompts from a script; answers True once the script runs out."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.prompts = []

    async def confirm(self, title, message, confirm_label, cancel_label):
        self.prompts.append(title)
        await asyncio.sleep(0)
        answer = self.answers.pop(0) if self.answers else True
        return ConfirmResult(answer)


def person(record_id, first, last, **fields):
    record = {
        "id": record_id,
        "first_name": first,
        "last_name": last,
        "employee_id": f"E{record_id:03d}",
        "id_number": f"ID-{record_id:03d}",
        "username": f"{first.lower()}.{last.lower()}",
        "phone": "09513419336",
        "employment_status": "Permanent",
        "employment_level": "Teacher I",
        "position": "Teacher",
        "is_active": True,
        "created_at": f"2024-01-{record_id:02d}T08:00:00Z",
    }
    record.update(fields)
    return record


@pytest.fixture
def people():
    """Twelve personnel records, ids 1..12."""
    names = [
        ("Ana", "Abad"), ("Ben", "Bautista"), ("Carla", "Cruz"), ("Dino", "Dizon"),
        ("Ella", "Estrada"), ("Fe", "Flores"), ("Gino", "Garcia"), ("Hana", "Hernandez"),
        ("Ivan", "Ilagan"), ("Jo", "Jimenez"), ("Karl", "Katigbak"), ("Lia", "Lopez"),
    ]
    return [person(i + 1, first, last) for i, (first, last) in enumerate(names)]


@pytest.fixture
def source(people):
    return FakeRosterSource(people)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def confirm():
    return ScriptedConfirm()


@pytest.fixture
def allocator():
    return LocalPreviewAllocator()


@pytest.fixture
def avatar_file():
    return SelectedFile(name="me.png", content_type="image/png", size=1024, data=b"\x89PNG")


@pytest.fixture
def make_person():
    return person


@pytest.fixture
def controller(source, confirm, notifier, allocator):
    """Personnel controller loaded with the twelve records, five per page."""
    ctl = RosterController(PERSONNEL, source, confirm, notifier, page_size=5, allocator=allocator)
    assert asyncio.run(ctl.load())
    return ctl


@pytest.fixture
def make_source():
    return FakeRosterSource
