# cf_core/audit/types.py
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from django.utils import timezone


@dataclass(frozen=True)
class AuditEntry:
    event_code: str
    entity_type: str
    entity_id: UUID
    patient_id: Optional[UUID]
    metadata: Dict[str, Any]
    id: UUID = field(default_factory=uuid.uuid4)
    occurred_at: datetime = field(default_factory=timezone.now)
