from __future__ import annotations

import json

from pydantic import BaseModel


def render_json(model: BaseModel, exclude_none: bool = False) -> str:
    """Render any result model (scan, port info, kill result, changes) as JSON."""
    data = model.model_dump(mode="json", exclude_none=exclude_none)
    return json.dumps(data, indent=2, default=str)
