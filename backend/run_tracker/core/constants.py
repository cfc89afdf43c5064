"""Shared application constants.

Centralizes unit conversion factors and limits used across the import and
enrichment code so we can document and adjust them in one place.
"""

# Distance of one statute mile in meters
MILE_M = 1609.34

# One international foot in meters
FOOT_M = 0.3048

# FIT stores angles as signed 32-bit "semicircles"
SEMICIRCLE_DEG = 180.0 / 2**31

# Source units -> meters. Distances and altitudes are stored in meters.
DISTANCE_TO_M = {
    "m": 1.0,
    "cm": 0.01,
    "km": 1000.0,
    "mi": MILE_M,
    "ft": FOOT_M,
}

# Source units -> meters/second
SPEED_TO_MPS = {
    "m/s": 1.0,
    "mm/s": 0.001,
    "km/h": 1000.0 / 3600.0,
    "mph": MILE_M / 3600.0,
}

# Source units -> seconds
TIME_TO_S = {
    "s": 1.0,
    "ms": 0.001,
    "min": 60.0,
}

# Files picked up when scanning a directory
FIT_SUFFIX = ".fit"

# Read size used when hashing files from disk
FINGERPRINT_CHUNK_BYTES = 1024 * 1024

# Mapquest reports this height when it has no data for a point
MAPQUEST_NO_HEIGHT = -32768

# Mapbox rejects static image URLs longer than this
MAPBOX_URL_LIMIT = 8192

# Sub-directories of settings.data_dir
DEVICES_DIRNAME = "devices"
ROUTES_DIRNAME = "routes"
