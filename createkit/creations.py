"""
Feed and toggle operations on stored creations.

Toggles are plain read-modify-write sequences against the store; two
concurrent toggles on the same row can lose an update.
"""

from __future__ import annotations

import logging
from typing import Optional

from createkit.db import CreationRecord, DbClient
from createkit.errors import Forbidden, NotFound
from createkit.identity import Caller

logger = logging.getLogger(__name__)


def toggled_likes(likes: list[str], user_id: str) -> tuple[list[str], bool]:
    """Return the new likes list and whether ``user_id`` now likes the row."""
    if user_id in likes:
        return [like for like in likes if like != user_id], False
    return [*likes, user_id], True


def toggle_like(db: DbClient, caller: Caller, creation_id: int) -> bool:
    creation = db.get_creation(creation_id)
    if creation is None:
        raise NotFound("Creation not found", envelope_key="message")
    likes, liked = toggled_likes(creation.likes, caller.user_id)
    db.update_likes(creation_id, likes)
    return liked


def toggle_publish(
    db: DbClient, caller: Caller, creation_id: int, publish: Optional[bool] = None
) -> bool:
    """
    Set the publish flag of an owned creation.

    With ``publish`` omitted the stored flag is negated.
    """
    creation = db.get_creation(creation_id)
    if creation is None:
        raise NotFound("Creation not found", envelope_key="message")
    if creation.user_id != caller.user_id:
        logger.warning(
            "User %s tried to change publish state of creation %s",
            caller.user_id,
            creation_id,
        )
        raise Forbidden(
            "Not authorized to modify this creation", envelope_key="message"
        )
    new_state = (not creation.publish) if publish is None else publish
    db.update_publish(creation_id, new_state)
    return new_state


def list_user_creations(db: DbClient, caller: Caller) -> list[CreationRecord]:
    creations = db.list_user_creations(caller.user_id)
    if not creations:
        raise NotFound("No creations found for this user.", envelope_key="message")
    return creations
