"""Run ledger entry model — append-only, hash-chained audit trail.

One entry per state transition. ``subject`` is either a platform key
(build tasks) or ``"release"`` (the publisher).
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

RELEASE_SUBJECT = "release"
PIPELINE_SUBJECT = "pipeline"


class LedgerEntry(BaseModel):
    """A single entry in the run ledger."""

    model_config = ConfigDict(frozen=True)

    entry_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    run_id: str
    subject: str
    state_transition: str  # "from->to", e.g. "pending->running"
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    version: str = ""
    detail: str = ""
    previous_entry_hash: str = ""
    entry_hash: str = ""  # computed on append, seals this entry
