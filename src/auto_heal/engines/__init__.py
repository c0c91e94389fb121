"""Runtime engines: manifest detection and runtime profiles."""

from auto_heal.engines.base import Engine, EngineType, FailurePredicate, RuntimeProfile, marker_predicate
from auto_heal.engines.exceptions import EngineDetectionError, EngineError, NoEngineDetectedError
from auto_heal.engines.node import NodeEngine
from auto_heal.engines.python import PythonEngine
from auto_heal.engines.selector import EngineSelector

__all__ = [
    "Engine",
    "EngineDetectionError",
    "EngineError",
    "EngineSelector",
    "EngineType",
    "FailurePredicate",
    "NoEngineDetectedError",
    "NodeEngine",
    "PythonEngine",
    "RuntimeProfile",
    "marker_predicate",
]
