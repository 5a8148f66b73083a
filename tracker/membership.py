"""
Project membership helpers.

A project's members live in a single text column as a comma-separated list
of user ids, oldest first. Everything that reads or writes that column goes
through ``decode``/``encode`` so the column stays parseable, and membership
checks compare whole tokens instead of searching the raw text.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Union

from tracker.db import DbClient, ProjectRecord
from tracker.errors import MembershipWriteError, ProjectNotFound, StorageError

logger = logging.getLogger(__name__)

DELIMITER = ","

ATOMIC = "atomic"
READ_MODIFY_WRITE = "read_modify_write"
APPEND_MODES = (ATOMIC, READ_MODIFY_WRITE)


def decode(serialized: Optional[str]) -> list[str]:
    """Split a serialized member list. Never fails; fragments are not validated."""
    if not serialized:
        return []
    return serialized.split(DELIMITER)


def encode(ids: Iterable[Union[int, str]]) -> str:
    """Join ids into the stored form; ``encode([])`` is the empty string."""
    return DELIMITER.join(str(member_id) for member_id in ids)


class MembershipManager:
    """Adds users to projects and answers "which projects is this user in"."""

    def __init__(self, db: DbClient, append_mode: str = ATOMIC):
        if append_mode not in APPEND_MODES:
            raise ValueError(f"Unknown membership append mode: {append_mode}")
        self.db = db
        self.append_mode = append_mode

    def add_member(self, project_id: int, email: str) -> None:
        """
        Append the user registered under ``email`` to the project's member list.

        The append is unconditional: adding a user twice leaves two entries.
        In ``read_modify_write`` mode the read and the write are separate
        statements, so two concurrent calls on one project can lose an update.

        Raises UserNotFound or ProjectNotFound before anything is written.
        """
        user = self.db.get_user_by_email(email)
        project = self.db.get_project(project_id)

        try:
            if self.append_mode == ATOMIC:
                changed = self.db.append_member(project.id, user.id)
            else:
                member_ids = decode(project.member_ids)
                member_ids.append(str(user.id))
                changed = self.db.set_member_ids(project.id, encode(member_ids))
        except StorageError as exc:
            raise MembershipWriteError(str(exc)) from exc
        if not changed:
            # Deleted between the lookup and the write.
            raise ProjectNotFound()
        logger.info("Added user %s to project %s", user.id, project.id)

    def find_projects_for_member(self, user_id: Union[int, str]) -> list[ProjectRecord]:
        token = str(user_id)
        # The storage prefilter is a substring match; keep exact tokens only.
        return [
            project
            for project in self.db.list_projects_matching(token)
            if token in decode(project.member_ids)
        ]
