"""
Sensory Dashboard Exceptions
Error taxonomy for the mixer engine and its output device
"""


class SensoryError(Exception):
    """Base class for all dashboard backend errors"""
    pass


class EngineError(SensoryError):
    """Errors raised by the mixer engine"""
    pass


class EngineInitializationError(EngineError):
    """Output device or graph could not be brought up; the engine stays uninitialized"""
    pass


class OutputDeviceError(EngineError):
    """Output device could not be opened, started or resumed"""
    pass


class UnknownChannelError(EngineError, ValueError):
    """Channel id outside the fixed mixer channel set"""

    def __init__(self, channel_id):
        self.channel_id = channel_id
        super().__init__(f"Unknown mixer channel: {channel_id}")


class VoiceStateError(EngineError):
    """A single-use voice was started twice"""
    pass
