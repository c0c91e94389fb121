"""Engine detection exceptions."""


class EngineError(Exception):
    """Base exception for runtime engine errors."""


class EngineDetectionError(EngineError):
    """A manifest was found but could not be understood."""


class NoEngineDetectedError(EngineError):
    """No runtime engine matches the working tree."""
