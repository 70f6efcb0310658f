"""
Drive the demo waypoint set for 60 ticks and save diagnostic plots.
"""

import argparse
import logging

import matplotlib
matplotlib.use('Agg')
from matplotlib import pyplot as plt

from line_mpc.mpc import MPCConfig
from line_mpc.mpc.errors import SolveFailure
from line_mpc.sim.control_loop import ControlLoop
from line_mpc.sim.plotting import plot_history, plot_path, plot_prediction
from line_mpc.sim.track import demo_pose, demo_waypoints

logger = logging.getLogger('main_mpc')


def run(ticks=60, plot_every=10, backend='ipopt', prefix='mpc'):
    waypoints, _, _ = demo_waypoints()
    loop = ControlLoop(waypoints, demo_pose(), MPCConfig(backend=backend))

    for i in range(ticks):
        try:
            tick = loop.tick()
        except SolveFailure as e:
            logger.error("Stopping at tick %d: %s", i, e)
            break
        logger.info("Iteration %d: status=%s delta=%.4f a=%.4f cost=%.3f",
                    i, tick.status, tick.command[0], tick.command[1], tick.cost)

        if i == ticks - 1 or i % plot_every == 0:
            fig, ax = plt.subplots(figsize=(8, 6))
            plot_prediction(tick, ax)
            fig.savefig(f'{prefix}_tick_{i:03d}.png')
            plt.close(fig)

    fig = plot_history(loop.history, f'{prefix}_history.png')
    plt.close(fig)
    fig, ax = plt.subplots(figsize=(8, 6))
    plot_path(waypoints, loop.history, ax)
    fig.savefig(f'{prefix}_path.png')
    plt.close(fig)
    return loop.history


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument('--ticks', type=int, default=60)
    parser.add_argument('--backend', choices=('ipopt', 'slsqp'), default='ipopt')
    parser.add_argument('--verbose', action='store_true')
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s %(name)s %(levelname)s %(message)s')
    run(ticks=args.ticks, backend=args.backend)
