class LayerwiseError(Exception):
    """Base class for every error raised by layerwise modules."""


class NoOutputAvailable(LayerwiseError):
    """Output requested before any successful `calc` or `forward`."""


class NoInputGradientAvailable(LayerwiseError):
    """Input gradient requested before any `backward`."""


class ShapeMismatch(LayerwiseError, ValueError):
    pass


class InvalidConfiguration(LayerwiseError, ValueError):
    pass


class GradientNotSupported(LayerwiseError, NotImplementedError):
    pass
