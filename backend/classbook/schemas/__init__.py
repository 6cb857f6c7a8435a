from .conflict import ConflictResult
from .updates import ClassSessionUpdate, PartialUpdate, SwapRequestResolution

__all__ = ["ClassSessionUpdate", "ConflictResult", "PartialUpdate", "SwapRequestResolution"]
