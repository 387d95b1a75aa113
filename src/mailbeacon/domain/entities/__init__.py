from mailbeacon.domain.entities.raw_message import RawMessage

__all__ = ["RawMessage"]
