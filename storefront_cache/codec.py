"""
Serialization boundary for cached values.

Encoding and shape validation are separate steps: the codec only turns a
validated model into bytes-on-the-wire and back into plain data. The
coordinator validates the decoded data against the family's model.
"""

import json
import logging
from typing import Any, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class JsonCodec:
    """JSON text, the format every family stores under its keys."""

    def encode(self, value: BaseModel) -> str:
        return value.model_dump_json()

    def decode(self, raw: Optional[str]) -> Optional[Any]:
        if raw is None or raw == "":
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Discarding undecodable cache value: {e}")
            return None
