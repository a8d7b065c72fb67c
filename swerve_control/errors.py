"""Exception types raised by the swerve control system."""


class SwerveControlError(Exception):
    """Base class for all swerve control errors."""


class TrajectoryGenerationError(SwerveControlError):
    """A trajectory could not be built from the given poses and constraints."""


class UnknownTrajectoryError(SwerveControlError, KeyError):
    """A named trajectory was requested that the library does not hold."""


class RoutineRegistryError(SwerveControlError):
    """A routine name was registered twice or selected without being registered."""


class ActuatorFault(SwerveControlError):
    """Communication with an actuator was lost.

    This is the one failure that is allowed to leave a control tick: the
    robot loop cancels every action and re-raises it so an external safety
    system can disable outputs.
    """
