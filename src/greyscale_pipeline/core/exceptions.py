"""Error taxonomy for the greyscale pipeline."""


class GreyscalePipelineError(Exception):
    """Base exception for all greyscale pipeline errors."""


class ConfigurationError(GreyscalePipelineError):
    """Error raised for missing or invalid configuration values."""


class InputError(GreyscalePipelineError):
    """The notification carries no usable source locator."""


class SourceReadError(GreyscalePipelineError):
    """Fetching or draining the source object failed."""


class DecodeError(GreyscalePipelineError):
    """The collected bytes are not a parsable image."""


class EncodeError(GreyscalePipelineError):
    """The transformed image could not be serialized to the target format."""


class PublishError(GreyscalePipelineError):
    """Creating the destination container or writing the object failed."""
