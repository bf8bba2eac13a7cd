"""Scalar float functions applied elementwise by the matrix backends."""

import math


def mul(x: float, y: float) -> float:
    """Multiplies two numbers and returns their product.

    Args:
    ----
        x (float): The first number.
        y (float): The second number.

    Returns:
    -------
        float: The product of x and y.

    """
    return x * y


def id(x: float) -> float:
    """Returns the input unchanged."""
    return x


def add(x: float, y: float) -> float:
    """Adds two numbers and returns their sum.

    Args:
    ----
        x (float): The first number.
        y (float): The second number.

    Returns:
    -------
        float: The sum of x and y.

    """
    return x + y


def neg(x: float) -> float:
    """Returns the negation of the input number."""
    return -1.0 * x


def sigmoid(x: float) -> float:
    """Computes the logistic sigmoid of the input number.

    Both branches only ever exponentiate a non-positive value, so large
    magnitudes saturate to 0 or 1 instead of overflowing.

    Args:
    ----
        x (float): The input number.

    Returns:
    -------
        float: 1 / (1 + exp(-x)).

    """
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-1.0 * x))
    else:
        a = math.exp(x)
        return a / (1.0 + a)


def tanh(x: float) -> float:
    """Computes the hyperbolic tangent of the input number."""
    return math.tanh(x)


def log(x: float) -> float:
    """Computes the natural logarithm of the input number.

    Args:
    ----
        x (float): The input number, must be positive.

    Returns:
    -------
        float: The natural logarithm of x.

    """
    return math.log(x)


def exp(x: float) -> float:
    """Computes the exponential of the input number."""
    return math.exp(x)
