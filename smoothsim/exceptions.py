"""
Custom Exception Classes for the smoothsim State-Space Simulation Library

Fatal input problems raise one of these exceptions. Recoverable problems
(wrong-shaped matrices, probability vectors of the wrong length, unknown
randomizers without parameters) are logged as warnings instead and never
reach this module.
"""


class DimensionMismatchError(Exception):
    """
    Raised when two inputs that must line up have different lengths.

    Triggered by:
    - ``orders`` and ``lags`` of different lengths

    Example: "The length of 'lags' (2) differs from the length of 'orders' (1)"
    """

    def __init__(self, error_message, expected=None, actual=None):
        """
        Initialize DimensionMismatchError.

        Args:
            error_message (str): Description of the mismatch
            expected (int, optional): Expected length
            actual (int, optional): Length that was received
        """
        super().__init__(error_message)
        self.error_message = error_message
        self.expected = expected
        self.actual = actual

    def __str__(self):
        msg = f"Dimension Mismatch: {self.error_message}"
        if self.expected is not None:
            msg += f"\n  Expected: {self.expected}"
        if self.actual is not None:
            msg += f"\n  Actual: {self.actual}"
        return msg


class EmptyModelError(Exception):
    """
    Raised when no state component survives order/lag normalisation.

    Example: orders=[0, 0], lags=[1, 12]
    """

    def __init__(self, error_message, orders=None, lags=None):
        super().__init__(error_message)
        self.error_message = error_message
        self.orders = orders
        self.lags = lags

    def __str__(self):
        msg = f"Empty Model: {self.error_message}"
        if self.orders is not None:
            msg += f"\n  Orders: {list(self.orders)}"
        if self.lags is not None:
            msg += f"\n  Lags: {list(self.lags)}"
        return msg


class InvalidOrderError(Exception):
    """
    Raised for orders or lags that cannot describe a model.

    Triggered by:
    - Negative orders or lags
    - Complex values
    """

    def __init__(self, error_message, parameter_name=None, invalid_value=None):
        super().__init__(error_message)
        self.error_message = error_message
        self.parameter_name = parameter_name
        self.invalid_value = invalid_value

    def __str__(self):
        msg = f"Invalid Order: {self.error_message}"
        if self.parameter_name:
            msg += f"\n  Parameter: {self.parameter_name}"
        if self.invalid_value is not None:
            msg += f"\n  Invalid value: {self.invalid_value}"
        return msg


class InvalidDegreesOfFreedomError(Exception):
    """
    Raised when the default Student-t degrees of freedom are not positive.

    The default is obs - (components_number + maxlag), so short series with
    long seasonal lags trigger it.
    """

    def __init__(self, error_message, degrees_of_freedom=None):
        super().__init__(error_message)
        self.error_message = error_message
        self.degrees_of_freedom = degrees_of_freedom

    def __str__(self):
        msg = f"Invalid Degrees Of Freedom: {self.error_message}"
        if self.degrees_of_freedom is not None:
            msg += f"\n  Degrees of freedom: {self.degrees_of_freedom}"
        return msg


class StabilityError(Exception):
    """
    Raised when no stable (F, g, w) triple can be produced.

    Triggered by:
    - A supplied transition matrix with spectral radius above one
    - The capped search and the shrinking fallback both failing

    Recovery: pass a stable transition matrix or raise ``max_attempts``
    """

    def __init__(self, error_message, attempts=None):
        super().__init__(error_message)
        self.error_message = error_message
        self.attempts = attempts

    def __str__(self):
        msg = f"Stability Error: {self.error_message}"
        if self.attempts is not None:
            msg += f"\n  Attempts: {self.attempts}"
        return msg


class ConfigurationError(Exception):
    """
    Raised when invalid configuration parameters are provided.

    Triggered by:
    - Parameter values out of allowed range
    - Unknown randomizer names passed together with parameters
    - Unknown prediction interval types
    - Missing required configuration

    Example: "iprob values must lie in [0, 1], got 1.5"
    """

    def __init__(self, error_message, parameter_name=None, invalid_value=None, allowed_range=None):
        """
        Initialize ConfigurationError.

        Args:
            error_message (str): Description of configuration error
            parameter_name (str, optional): Name of invalid parameter
            invalid_value (any, optional): Value that failed validation
            allowed_range (str/tuple, optional): Valid range or allowed values
        """
        super().__init__(error_message)
        self.error_message = error_message
        self.parameter_name = parameter_name
        self.invalid_value = invalid_value
        self.allowed_range = allowed_range

    def __str__(self):
        msg = f"Configuration Error: {self.error_message}"
        if self.parameter_name:
            msg += f"\n  Parameter: {self.parameter_name}"
        if self.invalid_value is not None:
            msg += f"\n  Invalid value: {self.invalid_value}"
        if self.allowed_range:
            msg += f"\n  Allowed range: {self.allowed_range}"
        return msg


class ModelFitError(Exception):
    """
    Raised when estimation of a state-space model fails.

    Triggered by:
    - Fewer in-sample observations than parameters to estimate
    - Optimiser returning a non-finite cost

    Example: "GES(1[12]) needs at least 27 observations, got 20"
    """

    def __init__(self, error_message, model_type=None, parameters=None):
        super().__init__(error_message)
        self.error_message = error_message
        self.model_type = model_type
        self.parameters = parameters

    def __str__(self):
        msg = f"Model Fit Error ({self.model_type}): {self.error_message}"
        if self.parameters:
            msg += f"\n  Parameters: {self.parameters}"
        return msg
