"""In-memory person repository.

A list with linear scans guarded by a lock; records live for the lifetime
of the process. Writes return what they changed so routes can decide on
404s without a second lookup.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable

from minimal_api.core.errors import ConflictAppError
from minimal_api.schemas.person import Person

logger = logging.getLogger(__name__)


def seed_persons() -> list[Person]:
    """Return the records the repository starts with."""

    return [
        Person(id=1, name="Poornima", has_a_pet_unicorn=True),
        Person(id=2, name="Rachel", has_a_pet_unicorn=True),
        Person(id=3, name="Wilmur", has_a_pet_unicorn=True),
        Person(id=4, name="Kavya", has_a_pet_unicorn=False),
        Person(id=5, name="Paul", has_a_pet_unicorn=True),
        Person(id=6, name="Shanice", has_a_pet_unicorn=True),
    ]


class PersonRepository:
    """Thread-safe CRUD over an in-memory list of persons."""

    def __init__(self, persons: Iterable[Person] | None = None) -> None:
        self._persons: list[Person] = [
            p.model_copy() for p in (seed_persons() if persons is None else persons)
        ]
        self._lock = threading.RLock()

    def get_all(self) -> list[Person]:
        with self._lock:
            return [p.model_copy() for p in self._persons]

    def get_by_id(self, person_id: int) -> Person | None:
        with self._lock:
            person = self._find_locked(person_id)
            return person.model_copy() if person else None

    def get_by_ids(self, person_ids: Iterable[int]) -> list[Person]:
        """Return persons whose id is in ``person_ids``, in repository order."""

        wanted = set(person_ids)
        with self._lock:
            return [p.model_copy() for p in self._persons if p.id in wanted]

    def create(self, person: Person) -> Person:
        """Add a person.

        Raises:
            ConflictAppError: If a person with the same id already exists.
        """

        with self._lock:
            if self._find_locked(person.id) is not None:
                raise ConflictAppError(
                    code="person_exists",
                    message=f"Person {person.id} already exists",
                    details={"person_id": person.id},
                )
            stored = person.model_copy()
            self._persons.append(stored)

        logger.info("person.created", extra={"person_id": person.id})
        return stored.model_copy()

    def update(self, person_id: int, changes: Person) -> Person | None:
        """Copy name and unicorn flag from ``changes`` onto ``person_id``.

        The id in ``changes`` is ignored; ``person_id`` is authoritative.

        Returns:
            The updated person, or None if ``person_id`` does not exist.
        """

        with self._lock:
            existing = self._find_locked(person_id)
            if existing is None:
                return None
            existing.name = changes.name
            existing.has_a_pet_unicorn = changes.has_a_pet_unicorn
            updated = existing.model_copy()

        logger.info("person.updated", extra={"person_id": person_id})
        return updated

    def delete(self, person_id: int) -> bool:
        """Remove a person. Returns False if it did not exist."""

        with self._lock:
            existing = self._find_locked(person_id)
            if existing is None:
                return False
            self._persons.remove(existing)

        logger.info("person.deleted", extra={"person_id": person_id})
        return True

    def _find_locked(self, person_id: int) -> Person | None:
        return next((p for p in self._persons if p.id == person_id), None)
