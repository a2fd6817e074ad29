"""
Response grouper: classify responses into outcome groups.

Two responses are the same outcome when status code, body content and
content length all match. Groups keep the first response seen as their
exemplar, an occurrence count, and the distinct targets that produced them.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .config import TargetSpec
from .http_client import BodyReadError, RaceError, ResponseRecord
from .utils import setup_logging

logger = setup_logging("grouper")

GroupKey = Tuple[int, bytes, Optional[int]]


@dataclass
class ResponseSnapshot:
    """Consumer-facing copy of the response that represents a group."""

    status_code: int
    body: bytes
    content_length: Optional[int]
    protocol: str
    headers: Dict[str, List[str]] = field(default_factory=dict)
    location: str = ""

    @property
    def body_text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    @property
    def key(self) -> GroupKey:
        return (self.status_code, self.body, self.content_length)

    @classmethod
    def from_record(cls, record: ResponseRecord, body: bytes) -> "ResponseSnapshot":
        response = record.response
        return cls(
            status_code=response.status_code,
            body=body,
            content_length=response.content_length,
            protocol=response.protocol,
            headers=response.header_dict(),
            location=response.redirect_location or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status_code": self.status_code,
            "protocol": self.protocol,
            "headers": self.headers,
            "location": self.location,
            "length": self.content_length,
            "body": self.body_text,
        }


@dataclass
class OutcomeGroup:
    """An equivalence class of responses."""

    exemplar: ResponseSnapshot
    count: int = 1
    targets: List[TargetSpec] = field(default_factory=list)

    @property
    def key(self) -> GroupKey:
        return self.exemplar.key

    @property
    def similar(self) -> int:
        """How many additional responses matched the exemplar."""
        return self.count - 1

    def matches(self, snapshot: ResponseSnapshot) -> bool:
        return (
            snapshot.status_code == self.exemplar.status_code
            and snapshot.body == self.exemplar.body
            and snapshot.content_length == self.exemplar.content_length
        )

    def add(self, target: TargetSpec):
        """Count one more matching response and remember its target if new."""
        self.count += 1
        if target not in self.targets:
            self.targets.append(target)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "response": self.exemplar.to_dict(),
            "count": self.count,
            "similar": self.similar,
            "targets": [t.to_dict() for t in self.targets],
        }


class ResponseGrouper:
    """
    Groups response records in arrival order.

    Each record is compared with the existing groups in creation order and
    joins the first one that matches; otherwise it starts a new group.
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def group(
        self, records: Iterable[ResponseRecord]
    ) -> Tuple[List[OutcomeGroup], List[RaceError]]:
        """
        Classify records into outcome groups.

        Returns:
            (groups in creation order, body-read errors). Records whose body
            cannot be read are skipped and reported as errors.
        """
        groups: List[OutcomeGroup] = []
        errors: List[RaceError] = []

        if self.verbose:
            logger.info("[VERBOSE] Unique response comparison begin.")

        for record in records:
            try:
                body = record.response.read_body()
            except BodyReadError as e:
                error = RaceError("body", str(e), record.index, record.response.url)
                errors.append(error)
                logger.warning(str(error))
                continue

            snapshot = ResponseSnapshot.from_record(record, body)

            for existing in groups:
                if existing.matches(snapshot):
                    existing.add(record.origin_target)
                    break
            else:
                groups.append(OutcomeGroup(exemplar=snapshot, targets=[record.origin_target]))

        if self.verbose:
            logger.info(f"[VERBOSE] Unique response comparison complete: {len(groups)} group(s).")

        return groups, errors
