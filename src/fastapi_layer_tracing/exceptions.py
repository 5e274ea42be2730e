"""Exception hierarchy for layer tracing configuration errors."""


class LayerTracingError(Exception):
    """Base exception for all layer tracing errors.

    This is the parent class for all exceptions raised by the
    fastapi-layer-tracing package. Catching this exception
    will catch all tracing configuration errors.

    Example:
        try:
            config = InstrumentationConfig(ignore_layers=[42])
        except LayerTracingError as e:
            logger.error(f"Invalid tracing config: {e}")
    """


class IgnorePatternError(LayerTracingError, TypeError):
    """Raised when an ignore pattern has an unsupported datatype.

    Ignore patterns must be a string (exact match), a regular expression
    or a callable taking the layer name. Anything else is rejected when
    the configuration is built, never while a request is being traced.

    Example:
        IgnorePatternError("Pattern is in unsupported datatype: int")
    """


class LayerConfigError(LayerTracingError):
    """Raised when instrumentation configuration is invalid.

    This exception is raised when:
        - ignore_layers_type contains an unknown layer type
        - A hook is not callable
        - A traced middleware is not an async callable

    Example:
        LayerConfigError(
            "Invalid middleware for traced route: "
            "middleware at index 1 must be async, got sync function audit"
        )
    """
