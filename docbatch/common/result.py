"""
Result envelope returned by every public docbatch operation.

Shape: {status, resp | text}
- success with data:        {status: True,  resp: <payload>}
- success without data:     {status: True,  text: <informational message>}
- failure:                  {status: False, text: <human-readable message>}
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Result:
    """
    Uniform outcome of a store operation.

    Attributes:
        status: True when the operation succeeded
        resp: Operation payload (None means absent)
        text: Failure description, or informational text for empty results
    """
    status: bool
    resp: Any = None
    text: Optional[str] = None

    def __post_init__(self):
        if not self.status:
            if not self.text:
                raise ValueError("A failed Result must carry a text message")
            if self.resp is not None:
                raise ValueError("A failed Result must not carry a resp payload")
        elif self.resp is None and not self.text:
            raise ValueError("A successful Result without resp must carry a text message")

    @classmethod
    def ok(cls, resp: Any) -> "Result":
        """Successful call that produced data."""
        return cls(status=True, resp=resp)

    @classmethod
    def empty(cls, text: str) -> "Result":
        """Successful call that legitimately produced nothing."""
        return cls(status=True, text=text)

    @classmethod
    def fail(cls, text: str) -> "Result":
        """Failed call."""
        return cls(status=False, text=text or "Unknown error")

    @classmethod
    def wrap(cls, value: Any, empty_text: str) -> "Result":
        """
        Turn an arbitrary return value into an envelope.

        Envelopes pass through verbatim, None becomes an informational
        success, anything else becomes the resp payload.
        """
        if isinstance(value, Result):
            return value
        if value is None:
            return cls.empty(empty_text)
        return cls.ok(value)

    @property
    def has_resp(self) -> bool:
        return self.resp is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, emitting only the populated keys."""
        out: Dict[str, Any] = {"status": self.status}
        if self.resp is not None:
            out["resp"] = self.resp
        if self.text:
            out["text"] = self.text
        return out

    def __bool__(self) -> bool:
        return self.status
