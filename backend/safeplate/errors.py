"""
Error taxonomy for the filtering pipeline.

Only RuleDataError escapes to callers, and only while a registry is being
built. Everything else is raised and handled inside the pipeline, or used as
a log message, so filtering degrades to "fewer items" instead of failing.
"""


class SafePlateError(Exception):
    """Base class for safeplate errors."""


class InvalidInputError(SafePlateError):
    """The items argument is not a list-like sequence."""

    def __init__(self, received: object):
        self.received_type = type(received).__name__
        super().__init__(f"expected a list of items, got {self.received_type}")


class MissingSafetyMetadataError(SafePlateError):
    """A meal carries no tag collection at all, so its safety cannot be judged."""

    def __init__(self, item_name: str):
        self.item_name = item_name
        super().__init__(f"meal {item_name!r} has no dietary tags")


class RuleDataError(SafePlateError):
    """The rules data file is malformed."""


class UnknownRestrictionWarning(UserWarning):
    """A free-text allergy or restriction matched no known rule and was ignored."""

    def __init__(self, term: str, field: str):
        self.term = term
        self.field = field
        super().__init__(f"{field} term {term!r} matched no rule; not filtered")


class FallbackExhaustion(UserWarning):
    """A synthetic fallback meal failed the profile and is returned unfiltered."""

    def __init__(self, slot: str, item_id: str):
        self.slot = slot
        self.item_id = item_id
        super().__init__(f"fallback {item_id} for slot {slot} failed the profile filter; returned unfiltered")
