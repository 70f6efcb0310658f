import numpy as np

from .errors import FitError


def polyfit(xvals, yvals, order):
    """
    Least-squares fit of a degree ``order`` polynomial.

    Returns coefficients in increasing power order: ``c[0] + c[1]*x + ...``.
    Raises FitError on mismatched lengths or fewer than ``order + 1`` samples.
    """
    xvals = np.asarray(xvals, dtype=float).ravel()
    yvals = np.asarray(yvals, dtype=float).ravel()
    if xvals.size != yvals.size:
        raise FitError(f"x and y sample counts differ ({xvals.size} != {yvals.size})")
    if int(order) != order or order < 1:
        raise FitError(f"polynomial order must be an integer >= 1, got {order}")
    if xvals.size < order + 1:
        raise FitError(f"{xvals.size} samples are not enough for a degree {order} fit")
    if not (np.all(np.isfinite(xvals)) and np.all(np.isfinite(yvals))):
        raise FitError("waypoints contain non-finite values")

    # Vandermonde matrix, column i holds x**i
    A = np.vander(xvals, int(order) + 1, increasing=True)
    coeffs, _, rank, _ = np.linalg.lstsq(A, yvals, rcond=None)
    if rank < order + 1:
        raise FitError(f"waypoints are degenerate for a degree {order} fit (rank {rank})")
    return coeffs


def polyeval(coeffs, x):
    result = 0.0
    for i, c in enumerate(coeffs):
        result += c * x ** i
    return result


def polyderiv(coeffs):
    """Derivative coefficients: term i becomes ``i * c[i]`` one degree lower."""
    coeffs = np.asarray(coeffs, dtype=float)
    if coeffs.size <= 1:
        return np.zeros(1)
    return coeffs[1:] * np.arange(1, coeffs.size)


def reference_heading(coeffs, x):
    """Tangent angle of the reference curve at ``x``."""
    return np.arctan(polyeval(polyderiv(coeffs), x))


def transform_map_coord(xvals, yvals, vehicle_x, vehicle_y, vehicle_theta):
    """
    Re-express global waypoints in the vehicle frame (x forward, y left).

    The rotation is written against ``theta - pi/2`` so that the stored heading
    lines up with the axis the reference polynomial is fitted along.
    """
    dx = np.asarray(xvals, dtype=float) - vehicle_x
    dy = np.asarray(yvals, dtype=float) - vehicle_y
    cos_theta = np.cos(vehicle_theta - np.pi / 2)
    sin_theta = np.sin(vehicle_theta - np.pi / 2)
    new_x = -dx * sin_theta + dy * cos_theta
    new_y = -dx * cos_theta - dy * sin_theta
    return new_x, new_y


def inverse_transform_map_coord(xvals, yvals, vehicle_x, vehicle_y, vehicle_theta):
    """Map vehicle-frame points back to the global frame."""
    xvals = np.asarray(xvals, dtype=float)
    yvals = np.asarray(yvals, dtype=float)
    cos_theta = np.cos(vehicle_theta - np.pi / 2)
    sin_theta = np.sin(vehicle_theta - np.pi / 2)
    gx = -xvals * sin_theta - yvals * cos_theta + vehicle_x
    gy = xvals * cos_theta - yvals * sin_theta + vehicle_y
    return gx, gy
