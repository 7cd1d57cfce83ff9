"""In-memory record stores and the sample dubbo providers built on them."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Raised when a provider call cannot be served."""


@dataclass
class Record:
    """A person known to a provider: a user, a student or a teacher."""

    id: str = ""
    code: int = 0
    name: str = ""
    age: int = 0
    time: datetime = field(default_factory=datetime.now)


class RecordStore:
    """Records indexed both by name and by code."""

    def __init__(self) -> None:
        self._by_name: dict[str, Record] = {}
        self._by_code: dict[int, Record] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_name)

    def add(self, record: Record) -> bool:
        """Add a record with a fresh non-empty name and a fresh positive code."""
        with self._lock:
            if not record.name or record.code <= 0:
                return False
            if record.name in self._by_name or record.code in self._by_code:
                return False
            return self._add_for_name(record) and self._add_for_code(record)

    def add_for_name(self, record: Record) -> bool:
        """Index a record by name only; False if the name is empty or taken."""
        with self._lock:
            return self._add_for_name(record)

    def add_for_code(self, record: Record) -> bool:
        """Index a record by code only; False if the code is not positive or taken."""
        with self._lock:
            return self._add_for_code(record)

    def get_by_name(self, name: str) -> Record | None:
        """Return the record with this name, or None."""
        with self._lock:
            return self._by_name.get(name)

    def get_by_code(self, code: int) -> Record | None:
        """Return the record with this code, or None."""
        with self._lock:
            return self._by_code.get(code)

    def _add_for_name(self, record: Record) -> bool:
        if not record.name or record.name in self._by_name:
            return False
        self._by_name[record.name] = record
        return True

    def _add_for_code(self, record: Record) -> bool:
        if record.code <= 0 or record.code in self._by_code:
            return False
        self._by_code[record.code] = record
        return True


class RecordProvider:
    """A dubbo-style service exposing create, query and update calls over a store."""

    def __init__(
        self,
        reference: str,
        java_class_name: str,
        store: RecordStore | None = None,
    ) -> None:
        self.reference = reference
        self.java_class_name = java_class_name
        self.store = store if store is not None else RecordStore()

    def create(self, record: Record | None) -> Record:
        """Add a new record and return it."""
        logger.debug("%s create: %r", self.reference, record)
        if record is None:
            raise ProviderError("not found")
        if self.store.get_by_name(record.name) is not None:
            raise ProviderError("data is exist")
        if not self.store.add(record):
            raise ProviderError("add error")
        return record

    def get_by_name(self, name: str) -> Record | None:
        """Return the record with this name, or None."""
        logger.debug("%s get_by_name: %r", self.reference, name)
        return self.store.get_by_name(name)

    def get_by_code(self, code: int) -> Record | None:
        """Return the record with this code, or None."""
        logger.debug("%s get_by_code: %r", self.reference, code)
        return self.store.get_by_code(code)

    def get_timeout(self, name: str, delay: float = 10.0) -> Record | None:
        """Look a record up by name after waiting ``delay`` seconds."""
        logger.debug("%s get_timeout: %r", self.reference, name)
        time.sleep(delay)
        return self.store.get_by_name(name)

    def get_by_name_and_age(self, name: str, age: int) -> Record | None:
        """Return the record with this name; the age is only logged when it matches."""
        record = self.store.get_by_name(name)
        if record is not None and record.age == age:
            logger.debug("%s get_by_name_and_age matched: %r", self.reference, record)
        return record

    def update(self, record: Record) -> bool:
        """Update the stored record that has the same name."""
        return self.update_by_name(record.name, record)

    def update_by_name(self, name: str, record: Record) -> bool:
        """Copy the id (if set) and the age (if not negative) onto the record named ``name``."""
        logger.debug("%s update %r: %r", self.reference, name, record)
        stored = self.store.get_by_name(name)
        if stored is None:
            raise ProviderError("not found")
        if record.id:
            stored.id = record.id
        if record.age >= 0:
            stored.age = record.age
        return True


def _seeded_provider(reference: str, java_class_name: str, suffix: str) -> RecordProvider:
    provider = RecordProvider(reference, java_class_name)
    provider.store.add(Record(id="0001", code=1, name=f"tc{suffix}", age=18))
    provider.store.add(Record(id="0002", code=2, name=f"ic{suffix}", age=88))
    return provider


def make_user_provider() -> RecordProvider:
    """Return the user provider seeded with its two sample users."""
    return _seeded_provider("UserProvider", "com.dubbogo.pixiu.User", "")


def make_student_provider() -> RecordProvider:
    """Return the student provider seeded with its two sample students."""
    return _seeded_provider("StudentProvider", "com.dubbogo.pixiu.StudentService", "-student")


def make_teacher_provider() -> RecordProvider:
    """Return the teacher provider seeded with its two sample teachers."""
    return _seeded_provider("TeacherProvider", "com.dubbogo.pixiu.TeacherService", "-teacher")