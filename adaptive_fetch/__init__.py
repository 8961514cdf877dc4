from .config import EngineConfig, FetchConfig
from .errors import ErrorKind, FetchError
from .models import CountEstimate, CountProvenance, FetchResult, ProbeResult, RecordSet, Strategy
from .orchestrator import FetchOrchestrator

__all__ = [
    "CountEstimate",
    "CountProvenance",
    "EngineConfig",
    "ErrorKind",
    "FetchConfig",
    "FetchError",
    "FetchOrchestrator",
    "FetchResult",
    "ProbeResult",
    "RecordSet",
    "Strategy",
]
