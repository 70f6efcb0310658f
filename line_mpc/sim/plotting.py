import numpy as np
from matplotlib import pyplot as plt


def plot_prediction(tick, ax=None):
    """Reference waypoints and the predicted horizon of one tick, vehicle frame."""
    if ax is None:
        _, ax = plt.subplots(figsize=(8, 6))
    if tick.waypoints is not None and tick.waypoints[0] is not None:
        ax.plot(tick.waypoints[0], tick.waypoints[1], 'g--', label='Reference')
    if len(tick.mpc_x):
        ax.plot(tick.mpc_x, tick.mpc_y, 'ro', label='MPC prediction')
    ax.set_xlabel('x (m)')
    ax.set_ylabel('y (m)')
    ax.set_title(f'Tick {tick.index} ({tick.status})')
    ax.axis('equal')
    ax.grid(True, alpha=0.3)
    ax.legend()
    return ax


def plot_history(history, path=None):
    fig = plt.figure(figsize=(10, 12))

    panels = (
        ('CTE', history.cte),
        ('epsi', history.epsi),
        ('cost', np.asarray(history.costs)),
        ('Delta (Radians)', np.asarray(history.deltas)),
        ('Velocity', history.v),
    )
    for i, (title, values) in enumerate(panels):
        ax = plt.subplot(len(panels), 1, i + 1)
        ax.set_title(title)
        ax.plot(values)
        ax.grid(True, alpha=0.3)

    plt.tight_layout()
    if path is not None:
        fig.savefig(path)
    return fig


def plot_path(waypoints, history, ax=None):
    """Global-frame reference and the driven path."""
    if ax is None:
        _, ax = plt.subplots(figsize=(8, 6))
    waypoints = np.asarray(waypoints)
    ax.plot(waypoints[:, 0], waypoints[:, 1], 'g--', linewidth=2, label='Reference Path')
    ax.plot([p.x for p in history.poses], [p.y for p in history.poses], 'b-', label='Vehicle')
    ax.set_xlabel('X (m)')
    ax.set_ylabel('Y (m)')
    ax.axis('equal')
    ax.grid(True, alpha=0.3)
    ax.legend()
    return ax
