import os

# Physical constants (SI)
G = 6.674e-11  # m^3 kg^-1 s^-2
EARTH_MASS = 5.972e24  # kg
EARTH_RADIUS = 6.371e6  # m
MOON_MASS = 7.342e22  # kg
MOON_RADIUS = 1.7374e6  # m
LUNAR_DISTANCE = 3.844e8  # m

# Octree
MAX_DEPTH = 40  # past this depth a node stays a leaf, whatever it holds

# Barnes-Hut opening angle, smaller is more accurate and slower
DEFAULT_SD_MAX_RATIO = float(os.getenv("NBODY_SD_MAX_RATIO", "0.8"))

# Verify positions/velocities stay finite after every step
DEBUG = os.getenv("NBODY_DEBUG", "false").lower() == "true"

LOG_LEVEL = os.getenv("NBODY_LOG_LEVEL", "INFO").upper()

# Uniform cloud preset
CLOUD_COUNT = 4000
CLOUD_MASS = 1e20  # kg
CLOUD_RADIUS = 1e4  # m, cosmetic
CLOUD_SPREAD = 2e6  # m, side of the spawn cube
CLOUD_VELOCITY_SPREAD = 1000.5  # m/s, side of the velocity cube
