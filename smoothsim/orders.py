"""
Lag/Order Normalizer for smoothsim

Turns user-facing (orders, lags) pairs into the state layout used by the
recursion engine. Each state component has its own lag: the component with
lag L reads its value from L periods back.

Functions:
    - validate_orders_lags: Fatal checks on raw orders and lags
    - normalize_orders: Drop zero entries, merge duplicate lags, derive modellags
    - component_names: Column labels for the state trajectory
"""

from typing import Any, Dict, Sequence

import numpy as np

from smoothsim.exceptions import DimensionMismatchError, EmptyModelError, InvalidOrderError
from smoothsim.logger_config import get_logger


logger = get_logger(__name__)


def _as_vector(values, name: str) -> np.ndarray:
    vector = np.atleast_1d(np.asarray(values))
    if np.iscomplexobj(vector):
        error_msg = f"Complex values are not allowed in '{name}'"
        logger.error(error_msg)
        raise InvalidOrderError(error_msg, parameter_name=name, invalid_value=values)
    try:
        return vector.astype(float).ravel()
    except (TypeError, ValueError) as e:
        error_msg = f"'{name}' must be numeric, got {values}"
        logger.error(error_msg)
        raise InvalidOrderError(error_msg, parameter_name=name, invalid_value=values) from e


def validate_orders_lags(orders: Sequence[int], lags: Sequence[int]):
    """
    Check raw orders and lags before normalisation.

    Args:
        orders: Number of states per lag, non-negative integers
        lags: Lag of each group of states, non-negative integers

    Returns:
        Tuple[np.ndarray, np.ndarray]: orders and lags as integer arrays

    Raises:
        InvalidOrderError: For complex or negative values
        DimensionMismatchError: If the lengths differ
    """
    orders_vec = _as_vector(orders, 'orders')
    lags_vec = _as_vector(lags, 'lags')

    if np.any(orders_vec < 0):
        error_msg = f"Orders must be non-negative, got {orders_vec.tolist()}"
        logger.error(error_msg)
        raise InvalidOrderError(error_msg, parameter_name='orders', invalid_value=orders_vec.tolist())

    if np.any(lags_vec < 0):
        error_msg = f"Lags must be non-negative, got {lags_vec.tolist()}"
        logger.error(error_msg)
        raise InvalidOrderError(error_msg, parameter_name='lags', invalid_value=lags_vec.tolist())

    if len(orders_vec) != len(lags_vec):
        error_msg = (
            f"The length of 'lags' ({len(lags_vec)}) differs from "
            f"the length of 'orders' ({len(orders_vec)})"
        )
        logger.error(error_msg)
        raise DimensionMismatchError(error_msg, expected=len(orders_vec), actual=len(lags_vec))

    return orders_vec.round().astype(int), lags_vec.round().astype(int)


def normalize_orders(orders: Sequence[int], lags: Sequence[int]) -> Dict[str, Any]:
    """
    Canonicalise (orders, lags) and derive the per-component lag vector.

    Steps, in order: drop pairs with lag 0, drop pairs with order 0, then keep
    one entry per unique lag (first-seen position) with the largest order seen
    for that lag.

    Args:
        orders (Sequence[int]): Orders, one per declared lag
        lags (Sequence[int]): Lags, same length as orders

    Returns:
        Dict[str, Any]:
            - orders (list): Normalised orders, all > 0
            - lags (list): Normalised, unique lags
            - modellags (np.ndarray): Each lag repeated by its order
            - maxlag (int): Largest element of modellags
            - components_number (int): sum(orders)

    Raises:
        EmptyModelError: If no (order, lag) pair survives

    Examples:
        >>> normalized = normalize_orders([1, 2], [3, 3])
        >>> normalized['orders'], normalized['lags']
        ([2], [3])
        >>> normalize_orders([1, 1], [1, 4])['modellags'].tolist()
        [1, 4]
    """
    orders_vec, lags_vec = validate_orders_lags(orders, lags)

    keep = lags_vec != 0
    orders_vec, lags_vec = orders_vec[keep], lags_vec[keep]

    keep = orders_vec != 0
    orders_vec, lags_vec = orders_vec[keep], lags_vec[keep]

    if len(lags_vec) == 0:
        error_msg = "No state components left after dropping zero orders and lags"
        logger.error(error_msg)
        raise EmptyModelError(error_msg, orders=orders, lags=lags)

    unique_lags = []
    merged_orders = []
    for order, lag in zip(orders_vec.tolist(), lags_vec.tolist()):
        if lag in unique_lags:
            position = unique_lags.index(lag)
            merged_orders[position] = max(merged_orders[position], order)
        else:
            unique_lags.append(lag)
            merged_orders.append(order)

    if len(unique_lags) != len(lags_vec):
        logger.debug(f"Merged duplicate lags: {lags_vec.tolist()} -> {unique_lags}")

    modellags = np.repeat(np.array(unique_lags, dtype=int), merged_orders)

    return {
        'orders': merged_orders,
        'lags': unique_lags,
        'modellags': modellags,
        'maxlag': int(modellags.max()),
        'components_number': int(sum(merged_orders)),
    }


def component_names(modellags) -> list:
    """Labels "Component1, lag1", "Component2, lag12", ... for each state."""
    return [f"Component{i + 1}, lag{lag}" for i, lag in enumerate(np.asarray(modellags).tolist())]
