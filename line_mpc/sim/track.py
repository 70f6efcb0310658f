import numpy as np

from .control_loop import Pose


def straight_line(length=60.0, n_points=12, offset=0.0, heading=0.0, start=(0.0, 0.0)):
    """Points along a straight line through ``start`` shifted ``offset`` to its left."""
    s = np.linspace(0.0, length, n_points)
    x = start[0] + s * np.cos(heading) - offset * np.sin(heading)
    y = start[1] + s * np.sin(heading) + offset * np.cos(heading)
    points = np.stack((x, y), axis=1)
    return points, x, y


def arc(radius=50.0, angle=np.pi / 4, n_points=12, start=(0.0, 0.0)):
    """Left-turning circular arc starting at ``start`` heading along +x."""
    theta = np.linspace(0.0, angle, n_points)
    x = start[0] + radius * np.sin(theta)
    y = start[1] + radius * (1.0 - np.cos(theta))
    points = np.stack((x, y), axis=1)
    return points, x, y


def demo_waypoints():
    next_x = np.array([-32.16173, -43.49173, -61.09, -78.29172, -93.05002, -107.7717])
    next_y = np.array([113.361, 105.941, 92.88499, 78.73102, 65.34102, 50.57938])
    return np.stack((next_x, next_y), axis=1), next_x, next_y


def demo_pose():
    return Pose(x=-40.62, y=108.73, psi=3.733651, v=10.0)
