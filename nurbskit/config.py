''' Numerical settings shared by the whole package.

These are plain module-level constants; they are never modified at run
time.  Routines that depend on one of them expose it as a keyword
argument defaulting to the value found here, so that a caller can
tighten or relax a single call without touching global state.

'''

# Two floats closer than EPSILON are considered equal (knot differences,
# blending ratios, zero denominators).
EPSILON = 1e-10

# Geometric coincidence, e.g. end points of two curves to be joined.
MIN_TOLERANCE = 1e-6

# Default maximum deviation of approximating operations (degree
# reduction).
MAX_TOLERANCE = 1e-3

# Arc length: each Bezier segment is integrated with (p + 17)
# Gauss-Legendre points.
GAUSS_LEGENDRE_EXTRA = 17

# Inverse arc length.
LENGTH_MAX_ITER = 100

# Point projection: samples per nonzero knot span used to seed Newton's
# method, iteration cap, and the two zero tolerances (Euclidean
# distance and zero cosine).
PROJECTION_SAMPLES = 50
PROJECTION_MAX_ITER = 50
PROJECTION_EPS1 = 1e-12
PROJECTION_EPS2 = 1e-12

# Extrema and chord lengths: samples per Bezier segment (resp. per
# search interval) bracketing the roots refined with Brent's method.
EXTREMA_SAMPLES = 20

# Control points whose weight lies within UNIT_WEIGHT_TOL of 1 are given
# a weight of exactly 1.
UNIT_WEIGHT_TOL = 1e-8
