"""Per-call member attribution for log records."""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

_current_member: ContextVar[str] = ContextVar("current_member", default="-")


def current_member() -> str:
    return _current_member.get()


@contextmanager
def member_context(member_id: str) -> Iterator[None]:
    """Tag every log record emitted inside the block with member_id.

    Each asyncio task runs in a copy of the context, so concurrent members
    never see each other's id.
    """
    token = _current_member.set(member_id)
    try:
        yield
    finally:
        _current_member.reset(token)


class MemberContextFilter(logging.Filter):
    """Adds `member_id` to every record passing through the handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.member_id = _current_member.get()
        return True
