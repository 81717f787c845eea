import logging
from operator import attrgetter
from typing import Any, Callable

from blogapi.exceptions import Forbidden

logger = logging.getLogger(__name__)

_author_of = attrgetter("author_id")


def require_owner(
    resource: Any,
    requester_id: int,
    owner_of: Callable[[Any], int] = _author_of,
    message: str | None = None,
) -> None:
    """
    Raise ``Forbidden`` unless *requester_id* owns *resource*.

    *owner_of* extracts the owner id from the resource; it defaults to the
    ``author_id`` attribute shared by articles and comments.
    """
    owner_id = owner_of(resource)
    if owner_id != requester_id:
        logger.warning(
            "User %s denied write access to %s %s owned by %s",
            requester_id,
            type(resource).__name__,
            getattr(resource, "id", "?"),
            owner_id,
        )
        raise Forbidden(message)
