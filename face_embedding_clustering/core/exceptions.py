"""
Exception hierarchy for the face embedding clustering engine.

Malformed input, bad parameters and unexpected failures each get their own
class, all rooted at ClusteringError. Every error carries the component
that raised it and a details dict that ends up in the message.
"""


class ClusteringError(Exception):
    """
    Root of every error raised by this package.

    Attributes:
        message: Message without component prefix or details
        component: Component that raised the error, if known
        details: Structured context, e.g. offending shapes or values
    """

    def __init__(self, message: str, component: str = None, details: dict = None):
        self.message = message
        self.component = component
        self.details = details or {}

        prefixed = f"[{component}] {message}" if component else message
        super().__init__(prefixed)

    def __str__(self):
        text = super().__str__()
        if not self.details:
            return text
        rendered = ", ".join(f"{key}={value}" for key, value in self.details.items())
        return f"{text} (Details: {rendered})"


class DataValidationError(ClusteringError):
    """
    Input batch cannot be clustered as given.

    Raised for non 2-D or non-numeric observations, NaN or infinite values,
    and quality scores that are missing, misaligned or outside [0, 1].
    """

    def __init__(self, message: str, data_type: str = None, expected_shape: tuple = None,
                 actual_shape: tuple = None, component: str = "DataValidation", **kwargs):
        details = kwargs.pop('details', None) or {}
        for key, value in (('data_type', data_type),
                           ('expected_shape', expected_shape),
                           ('actual_shape', actual_shape)):
            if value:
                details[key] = value
        super().__init__(message, component=component, details=details, **kwargs)


class DimensionMismatchError(DataValidationError):
    """Two vectors that must be compared have different lengths."""

    def __init__(self, message: str, expected_dim: int = None, actual_dim: int = None,
                 row: int = None, **kwargs):
        details = kwargs.pop('details', None) or {}
        for key, value in (('expected_dim', expected_dim),
                           ('actual_dim', actual_dim),
                           ('row', row)):
            if value is not None:
                details[key] = value
        super().__init__(message, component="DimensionCheck", details=details, **kwargs)


class InsufficientDataError(DataValidationError):
    """
    Batch is smaller than an operation needs.

    Typically raised by the parameter tuner when there are fewer
    observations than the neighbor rank k of the k-distance estimate.
    """

    def __init__(self, message: str, required: int = None, available: int = None, **kwargs):
        details = kwargs.pop('details', None) or {}
        if required is not None:
            details['required'] = required
        if available is not None:
            details['available'] = available
        super().__init__(message, component="InsufficientData", details=details, **kwargs)


class ConfigurationError(ClusteringError, ValueError):
    """Invalid clustering parameter or unknown metric name."""

    def __init__(self, message: str, parameter: str = None, value=None, **kwargs):
        details = kwargs.pop('details', None) or {}
        if parameter:
            details['parameter'] = parameter
        if value is not None:
            details['value'] = value
        super().__init__(message, component="Configuration", details=details, **kwargs)


class ModelTrainingError(ClusteringError):
    """
    A fit failed for a reason other than bad input or bad parameters.

    The underlying exception is chained as ``__cause__``.
    """

    def __init__(self, message: str, model_type: str = None,
                 training_data_size: int = None, **kwargs):
        details = kwargs.pop('details', None) or {}
        if model_type:
            details['model_type'] = model_type
        if training_data_size is not None:
            details['training_data_size'] = training_data_size
        super().__init__(message, component="ModelTraining", details=details, **kwargs)


class MLflowIntegrationError(ClusteringError):
    """Recording parameters or metrics to MLflow failed."""

    def __init__(self, message: str, operation: str = None, experiment_name: str = None,
                 **kwargs):
        details = kwargs.pop('details', None) or {}
        if operation:
            details['operation'] = operation
        if experiment_name:
            details['experiment_name'] = experiment_name
        super().__init__(message, component="MLflowIntegration", details=details, **kwargs)
