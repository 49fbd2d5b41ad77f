"""MeetQ - Meeting classification and note matching"""

from __future__ import annotations

__version__ = "1.0.0"


# Lazy imports so lightweight modules (scoring, matching) don't pull in the API stack
def __getattr__(name: str):
    if name == "MeetingClassifier":
        from meetq.classification.classifier import MeetingClassifier

        return MeetingClassifier

    if name == "NoteMatcher":
        from meetq.matching.note_matcher import NoteMatcher

        return NoteMatcher

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)


__all__ = [
    "MeetingClassifier",
    "NoteMatcher",
]
