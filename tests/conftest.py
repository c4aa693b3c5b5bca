# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

import pytest

from dronesim.messagebus import SpatialMessageBus
from dronesim.physics import PhysicsWorld
from dronesim.sensor_system import SensorSystem
from dronesim.simulationManager import SimulationManager


@pytest.fixture
def world():
    return PhysicsWorld(1000, 1000, create_boundaries=False)


@pytest.fixture
def sensors(world):
    return SensorSystem(world)


@pytest.fixture
def bus():
    # Fixed clock keeps message timestamps deterministic.
    return SpatialMessageBus(comm_range=300, history_size=5, clock=lambda: 0.0)


@pytest.fixture
def manager():
    sim = SimulationManager(physics=PhysicsWorld(2000, 2000, create_boundaries=False), random_seed=1)
    yield sim
    sim.destroy()
