"""
Parameter Generator for smoothsim

Produces the structural matrices of a state-space model for every simulated
path. Supplied matrices are broadcast to all paths; missing ones are drawn
from U[-1, 1] until the model is stable, i.e. both the transition matrix F
and the discount matrix D = F - g w' have all eigenvalues inside the unit
circle.

Array layout used throughout the package (k components, nsim paths):
    transition  (k, k, nsim)
    measurement (nsim, k)
    persistence (k, nsim)
    initial     (maxlag, k, nsim)
"""

from typing import Any, Dict, Optional, Tuple

import numpy as np

from smoothsim.exceptions import StabilityError
from smoothsim.logger_config import get_logger


logger = get_logger(__name__)


def check_supplied(value, shape: Tuple[int, ...], name: str) -> Optional[np.ndarray]:
    """
    Validate a user-supplied matrix or vector against its expected shape.

    Flat input of the right size is reshaped column-major, so a transition
    matrix may be given as the vector c(F11, F21, F12, F22). Input that
    already has the exact shape is used as-is.

    Args:
        value: Supplied values or None
        shape (tuple): Expected shape
        name (str): Name used in the warning, e.g. "measurement vector"

    Returns:
        np.ndarray or None: Array of the requested shape, or None when nothing
        was supplied or the size was wrong (the caller then generates values)
    """
    if value is None:
        return None

    array = np.asarray(value, dtype=float)
    expected_size = int(np.prod(shape))

    if array.size != expected_size:
        logger.warning(
            f"Wrong size of {name}. Should be {expected_size} instead of {array.size}. "
            f"Values of {name} will be generated"
        )
        return None

    if array.shape == tuple(shape):
        return array.copy()
    return array.reshape(shape, order='F')


def spectral_radius(matrix: np.ndarray) -> float:
    """Largest eigenvalue modulus of a square matrix."""
    return float(np.max(np.abs(np.linalg.eigvals(np.atleast_2d(matrix)))))


def is_stable(transition: np.ndarray, persistence: np.ndarray, measurement: np.ndarray) -> bool:
    """
    Joint stability test for one (F, g, w) triple.

    Accepts iff every eigenvalue of D = F - g w' and every eigenvalue of F
    has modulus <= 1.

    Examples:
        >>> is_stable(np.array([[1.0]]), np.array([0.3]), np.array([1.0]))
        True
        >>> is_stable(np.array([[1.0]]), np.array([2.5]), np.array([1.0]))
        False
    """
    transition = np.atleast_2d(transition)
    discount = transition - np.outer(persistence, measurement)
    return bool(
        np.all(np.abs(np.linalg.eigvals(discount)) <= 1)
        and np.all(np.abs(np.linalg.eigvals(transition)) <= 1)
    )


def _draw_stable_path(transition, persistence, measurement, generate, rng,
                      max_attempts, shrink_factor, max_shrinks):
    generate_f, generate_g, generate_w = generate
    k = transition.shape[0]

    attempts = 0
    while True:
        attempts += 1
        if generate_f:
            transition = rng.uniform(-1, 1, size=(k, k))
        if generate_g:
            persistence = rng.uniform(-1, 1, size=k)
        if generate_w:
            measurement = rng.uniform(-1, 1, size=k)

        if is_stable(transition, persistence, measurement):
            return transition, persistence, measurement
        if max_attempts is not None and attempts >= max_attempts:
            break

    logger.warning(
        f"No stable model after {attempts} draws, shrinking generated parameters toward zero"
    )
    for _ in range(max_shrinks):
        if generate_f:
            transition = transition * shrink_factor
        if generate_g:
            persistence = persistence * shrink_factor
        if generate_w:
            measurement = measurement * shrink_factor
        if is_stable(transition, persistence, measurement):
            return transition, persistence, measurement

    error_msg = (
        f"Could not generate a stable model with {k} components "
        f"after {attempts} draws and {max_shrinks} shrinking steps"
    )
    logger.error(error_msg)
    raise StabilityError(error_msg, attempts=attempts)


def generate_parameters(
    components_number: int,
    nsim: int,
    transition: Optional[np.ndarray] = None,
    measurement: Optional[np.ndarray] = None,
    persistence: Optional[np.ndarray] = None,
    rng: Optional[np.random.Generator] = None,
    max_attempts: Optional[int] = 10000,
    shrink_factor: float = 0.9,
    max_shrinks: int = 200,
) -> Dict[str, Any]:
    """
    Build per-path transition, measurement and persistence arrays.

    Args:
        components_number (int): Number of state components k
        nsim (int): Number of simulated paths
        transition (np.ndarray, optional): Checked (k, k) matrix or None
        measurement (np.ndarray, optional): Checked (k,) vector or None
        persistence (np.ndarray, optional): Checked (k,) vector or None
        rng (np.random.Generator, optional): Random generator
        max_attempts (int, optional): Draws per path before shrinking.
            None keeps drawing until a stable model is found.
        shrink_factor (float): Multiplier applied to generated values when
            the draw cap is hit
        max_shrinks (int): Shrinking steps before giving up

    Returns:
        Dict[str, Any]:
            - transition (np.ndarray): (k, k, nsim)
            - measurement (np.ndarray): (nsim, k)
            - persistence (np.ndarray): (k, nsim)
            - generated (dict): which of the three were generated

    Raises:
        StabilityError: If a supplied transition matrix is unstable while
            other pieces must be generated, or the capped search fails
    """
    rng = rng if rng is not None else np.random.default_rng()
    k = components_number

    arr_f = np.zeros((k, k, nsim))
    mat_w = np.zeros((nsim, k))
    mat_g = np.zeros((k, nsim))

    generate = (transition is None, persistence is None, measurement is None)

    if transition is not None:
        arr_f[:, :, :] = transition[:, :, np.newaxis]
    if measurement is not None:
        mat_w[:, :] = measurement[np.newaxis, :]
    if persistence is not None:
        mat_g[:, :] = persistence[:, np.newaxis]

    generated = {
        'transition': generate[0],
        'persistence': generate[1],
        'measurement': generate[2],
    }

    if not any(generate):
        return {'transition': arr_f, 'measurement': mat_w, 'persistence': mat_g, 'generated': generated}

    if transition is not None and spectral_radius(transition) > 1:
        error_msg = (
            f"Supplied transition matrix has spectral radius {spectral_radius(transition):.4f} > 1, "
            "no stable model can be generated around it"
        )
        logger.error(error_msg)
        raise StabilityError(error_msg, attempts=0)

    logger.debug(
        f"Generating parameters for {nsim} path(s): "
        f"{[name for name, flag in generated.items() if flag]}"
    )

    for i in range(nsim):
        f_i, g_i, w_i = _draw_stable_path(
            arr_f[:, :, i].copy(), mat_g[:, i].copy(), mat_w[i, :].copy(),
            generate, rng, max_attempts, shrink_factor, max_shrinks
        )
        arr_f[:, :, i] = f_i
        mat_g[:, i] = g_i
        mat_w[i, :] = w_i

    return {'transition': arr_f, 'measurement': mat_w, 'persistence': mat_g, 'generated': generated}


def generate_initial(
    components_number: int,
    maxlag: int,
    nsim: int,
    initial: Optional[np.ndarray] = None,
    rng: Optional[np.random.Generator] = None,
    low: float = 0.0,
    high: float = 1000.0,
) -> np.ndarray:
    """
    Initial state block of shape (maxlag, k, nsim).

    A checked (maxlag, k) block is broadcast to every path; otherwise values
    are drawn from U[low, high] independently for every cell.
    """
    if initial is not None:
        return np.repeat(np.asarray(initial, dtype=float)[:, :, np.newaxis], nsim, axis=2)

    rng = rng if rng is not None else np.random.default_rng()
    return rng.uniform(low, high, size=(maxlag, components_number, nsim))
