# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

import sys, getopt, logging
from pathlib import Path
from dronesim.config import Config
from dronesim.simulationManager import SimulationManager
from dronesim.plugin_registry import load_plugins_from_config
from dronesim.logging_utils import configure_logging, get_logger

logger = get_logger("main")

# Plugin modules named in configs are resolved from the working directory.
if str(Path.cwd()) not in sys.path:
    sys.path.append(str(Path.cwd()))


def print_usage(errcode=None):
    """Print usage."""
    print("Usage: dronesim -c <config_file_path> [-t <ticks>] [-o <snapshot.png>]")
    sys.exit(errcode)


def _goals_settled(manager):
    """True once at least one agent had a goal and every goal is reached."""
    return any(agent.goal is not None for agent in manager.agents.values()) and manager.all_goals_reached()


def main(argv):
    """Parse arguments and run a headless simulation."""
    configfile = ""
    ticks = None
    output = None
    try:
        opts, args = getopt.getopt(argv, "hc:t:o:", ["help", "config=", "ticks=", "output="])
    except getopt.GetoptError:
        logging.fatal("Error in parsing command line arguments")
        print_usage(1)
    for opt, arg in opts:
        if opt in ("-h", "--help"):
            print_usage()
        elif opt in ("-c", "--config"):
            configfile = arg
        elif opt in ("-t", "--ticks"):
            try:
                ticks = int(arg)
            except ValueError:
                logging.fatal("Tick count must be an integer")
                print_usage(1)
        elif opt in ("-o", "--output"):
            output = arg
    if not configfile:
        logging.fatal("No configuration file provided")
        print_usage(1)
    config_path_resolved = Path(configfile).expanduser().resolve()
    try:
        my_config = Config(config_path=configfile)
        my_config.validate()
        configure_logging(my_config.logging, config_path=config_path_resolved, project_root=Path.cwd())
        # Load any external plugins declared in the config (optional).
        load_plugins_from_config(my_config)
        manager = SimulationManager.from_config(my_config)
    except Exception as e:
        logging.fatal(f"Failed to create simulation: {e}")
        sys.exit(1)
    if ticks is None:
        ticks = int(my_config.time_limit * my_config.ticks_per_second)
    if ticks <= 0:
        logging.fatal("Nothing to run: set 'time_limit' in the config or pass -t")
        sys.exit(1)
    executed = manager.run(ticks, until=_goals_settled)
    reached = sum(1 for agent in manager.agents.values() if agent.goal_reached)
    logger.info(
        "Ran %d ticks: %d/%d agents at goal, %d collisions logged",
        executed, reached, len(manager.agents), len(manager.collision_log),
    )
    output = output or my_config.snapshot.get("path")
    if output:
        from dronesim.snapshot import render_snapshot

        render_snapshot(manager.get_state(), output)
    print(f"{executed} ticks, {reached}/{len(manager.agents)} agents at goal")
    manager.destroy()
    return 0


def run():
    """Console script entry point."""
    sys.exit(main(sys.argv[1:]))


if __name__ == "__main__":
    run()
