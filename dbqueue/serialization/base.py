# dbqueue/serialization/base.py
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Union

from dbqueue.common.payload import Payload


class BaseSerializer(ABC):
    @abstractmethod
    def serialize_payload(self, data: Union[Payload, Mapping[str, Any]]) -> str: ...

    @abstractmethod
    def deserialize_payload(self, data_str: str) -> Dict[str, Any]: ...
