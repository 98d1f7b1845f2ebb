"""
Custom exceptions for FinSim.

Purpose
-------
Provides a unified exception hierarchy for consistent error handling
across all FinSim modules. All exceptions inherit from FinSimError,
enabling catch-all handling when needed.

Exception Hierarchy
-------------------
FinSimError (base)
├── ConfigurationError - Invalid market parameters or catalogs
├── ValidationError - Plan inputs or message payloads fail validation
├── UnknownAdapterKind - Unrecognized product tag
├── SimulationError - A run failed (worker error, overlapping runs)
│   └── SimulationCancelled - Run stopped explicitly
├── WorkerUnavailable - Background process could not be created
└── DispatcherClosed - Dispatcher used after teardown

Usage
-----
>>> from finsim.exceptions import SimulationCancelled
>>>
>>> try:
...     result = engine.run_sync(inputs, adapter)
... except SimulationCancelled:
...     print("Run stopped by user")
"""


class FinSimError(Exception):
    """
    Base exception for all FinSim errors.

    Examples
    --------
    >>> try:
    ...     engine.run_sync(inputs, adapter)
    ... except FinSimError as e:
    ...     logger.error(f"Projection failed: {e}")
    """
    pass


class ConfigurationError(FinSimError):
    """
    Invalid market configuration.

    Raised when model configuration is invalid, such as:
    - correlation_to_inflation outside [-1, 1]
    - crash_probability or crash_magnitude outside [0, 1]
    - negative volatilities
    - an empty economic regime catalog

    Examples
    --------
    >>> raise ConfigurationError(
    ...     "correlation_to_inflation must be in [-1, 1], got 1.4"
    ... )
    """
    pass


class ValidationError(FinSimError):
    """
    Plan inputs or payloads fail validation.

    Raised when a plan file cannot be parsed into a known product's
    inputs, or when its schema version is not supported.

    Examples
    --------
    >>> raise ValidationError("Unsupported schema_version '9.0'")
    """
    pass


class UnknownAdapterKind(FinSimError):
    """
    Unrecognized product tag.

    Fatal: raised when a worker or a plan file names a product that has no
    adapter. Never retried.
    """
    pass


class SimulationError(FinSimError):
    """
    A simulation run failed.

    Raised when the background worker reports an error, or when a second
    run is started while one is still in flight on the same engine or
    dispatcher.
    """
    pass


class SimulationCancelled(SimulationError):
    """
    Run stopped by an explicit stop signal.

    Surfaces instead of a partial result: a cancelled run never returns an
    AggregateResult.

    Examples
    --------
    >>> raise SimulationCancelled("Simulation cancelled after 412/10000 trials")
    """
    pass


class WorkerUnavailable(FinSimError):
    """
    Background worker process could not be created.

    The engine recovers from this locally by falling back to in-process
    execution; callers normally never see it.
    """
    pass


class DispatcherClosed(FinSimError):
    """
    A dispatcher was used after teardown.

    Dispatchers are single-use once closed; create a new one instead.
    """
    pass
