"""
Exception types raised by ge2ismrmrd.

Every stage wraps the lower-level error with its own message and chains the
original cause, so the top-level message reads like a short trace of which
stage failed.
"""


class ConversionError(Exception):
    def __init__(self, message: str = None):
        self.message = message
        super().__init__(message)


class ConfigurationError(ConversionError):
    """Invalid or incomplete conversion configuration."""


class UnknownConverterError(ConfigurationError):
    def __init__(self, class_name: str):
        self.class_name = class_name
        super().__init__(f"Plugin class name: {class_name} not implemented.")


class RawLoadError(ConversionError):
    """The raw data container could not be opened or read."""


class ParameterLookupError(ConversionError):
    def __init__(self, key: str, message: str = None):
        self.key = key
        super().__init__(message or f"Processing parameter '{key}' not found.")


class HeaderGenerationError(ConversionError):
    """Building or transforming the header failed."""


class StylesheetNotConfiguredError(HeaderGenerationError):
    def __init__(self):
        super().__init__("No stylesheet configured.")


class TransformError(HeaderGenerationError):
    """One step of the XSLT transform failed."""


class UnsupportedCombinationError(HeaderGenerationError):
    """The raw container kind cannot provide what the sequence family needs."""
