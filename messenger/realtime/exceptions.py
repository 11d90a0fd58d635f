class RealtimeError(Exception):
    """Base class for errors raised while handling socket events."""


class MalformedEvent(RealtimeError):
    """An inbound event is missing a required field.

    Never reported to the client: the event is logged and dropped.
    """

    def __init__(self, event: str, reason: str):
        self.event = event
        self.reason = reason
        super().__init__(f"Malformed {event} event: {reason}")


class IdentityMismatch(MalformedEvent):
    """An identify event claims a user other than the authenticated one."""

    def __init__(self, claimed_user_id: str, authenticated_user_id: str):
        self.claimed_user_id = claimed_user_id
        self.authenticated_user_id = authenticated_user_id
        super().__init__(
            "identify",
            f"claimed user {claimed_user_id} but authenticated as "
            f"{authenticated_user_id}",
        )
