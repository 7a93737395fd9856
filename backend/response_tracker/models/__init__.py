from .emergency import EmergencyRow
from .response import ResponseRow
from .setting import Setting

__all__ = [
    "EmergencyRow",
    "ResponseRow",
    "Setting",
]
