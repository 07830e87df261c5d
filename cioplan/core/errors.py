"""Exception hierarchy for trajectory evaluation and optimization."""


class CioplanError(Exception):
    """Base exception for cioplan."""
    pass


class PreconditionViolation(CioplanError, ValueError):
    """Raised when parameter shapes or call order break an operation contract."""
    pass


class NumericalDegenerate(CioplanError):
    """Raised at initialization for zero total mass, zero discretization, etc."""
    pass


class ExternalPortFailure(CioplanError):
    """Raised when a kinematics, collision or ground port fails."""

    def __init__(self, port: str, message: str):
        self.port = port
        super().__init__(f"{port}: {message}")


class ConfigurationError(CioplanError):
    """Raised for malformed planning parameters."""
    pass


def require_shape(name: str, array, expected: tuple) -> None:
    """
    Check that ``array`` has exactly ``expected`` shape.

    Raises:
        PreconditionViolation: If the shape differs
    """
    shape = getattr(array, "shape", None)
    if shape != expected:
        raise PreconditionViolation(
            f"{name} has shape {shape}, expected {expected}"
        )
