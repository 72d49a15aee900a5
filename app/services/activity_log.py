from __future__ import annotations

import json
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.infra.models import ActivityLogORM


def log_activity(
    db: Session,
    *,
    user_id: Optional[int],
    action: str,
    entity_type: str,
    description: str,
    entity_id: Optional[int] = None,
    details: Optional[dict[str, Any]] = None,
) -> ActivityLogORM:
    row = ActivityLogORM(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        description=description,
        details_json=json.dumps(details, default=str) if details else None,
    )
    db.add(row)
    return row
