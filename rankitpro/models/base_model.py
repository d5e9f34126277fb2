from datetime import datetime
from typing import Optional, Dict, Any


class BaseModel:
    # Attributes parsed into datetimes when loaded from a row
    DATETIME_SUFFIXES = ('_at', '_date')

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BaseModel':
        if not data:
            return None

        instance = cls()
        for key, value in data.items():
            if hasattr(instance, key):
                attr_name = key
            else:
                attr_name = cls.snake_case(key)

            if attr_name.endswith(cls.DATETIME_SUFFIXES) and value and isinstance(value, str):
                try:
                    value = datetime.fromisoformat(value.replace('Z', "+00:00"))
                except ValueError:
                    pass

            if hasattr(instance, attr_name):
                setattr(instance, attr_name, value)

        return instance

    @staticmethod
    def snake_case(key: str) -> str:
        """camelCase payload keys map onto snake_case attributes."""
        return ''.join(['_' + c.lower() if c.isupper() else c for c in key]).lstrip('_')

    def to_dict(self, exclude_none: bool = False) -> Dict[str, Any]:
        result = {}
        for attr_name, attr_value in self.__dict__.items():
            if attr_name.startswith('_'):
                continue
            if exclude_none and attr_value is None:
                continue

            if isinstance(attr_value, datetime):
                attr_value = attr_value.isoformat()

            result[attr_name] = attr_value

        return result

    @staticmethod
    def format_datetime(dt: Optional[datetime]) -> Optional[str]:
        if not dt:
            return None
        return dt.isoformat()
