# dbqueue/serialization/json_serializer.py
import json
from typing import Any, Dict, Mapping, Union

from dbqueue.common.payload import Payload, payload_to_dict
from dbqueue.serialization.base import BaseSerializer


class JsonSerializer(BaseSerializer):
    def serialize_payload(self, data: Union[Payload, Mapping[str, Any]]) -> str:
        # Sorted keys and fixed separators make equal payloads byte-identical,
        # which the duplicate lookup on send depends on.
        return json.dumps(
            payload_to_dict(data), sort_keys=True, separators=(",", ":"), default=str
        )

    def deserialize_payload(self, data_str: str) -> Dict[str, Any]:
        if not data_str:
            return {}
        return json.loads(data_str)
