import numpy as np

from . import config


# Many functions in this module rely on the fact the given knot vectors
# are "clean", i.e. any given knot is at least +/- a certain tolerance
# from any other knot, except for repeated knots.  This is achieved by
# making sure all knot vectors are rounded to NDEC decimal places, which
# matches config.EPSILON.
NDEC = 10


# CLEANING KNOTS


def clean_knot(u):
    ''' Clean the single knot u (or an array of knots), i.e. simply
    round it to NDEC decimal places.  This should be called every time a
    knot is to be inserted into a knot vector. '''
    return np.round(u, decimals=NDEC)

def clean_knot_vec(U):
    ''' Clean the entire knot vector U, i.e. ensure there are no close
    knots (IN-PLACE). '''
    Ui, ind = np.unique(U.round(decimals=NDEC), return_inverse=True)
    U[:] = Ui[ind.reshape(U.shape)]


# CHECKING KNOTS


def check_knot(U, u):
    ''' Check if u is within the bounds of U, assuming U is clean.  A
    value within rounding distance of an end knot is snapped to it,
    otherwise the returned knot is not rounded. '''
    ur = np.round(u, decimals=NDEC)
    if U[0] == ur:
        return U[0]
    if U[-1] == ur:
        return U[-1]
    if not U[0] < u < U[-1]:
        raise KnotOutsideKnotVectorRange(U, u)
    return u

def check_knot_v(U, u):
    ''' Idem check_knot, vectorized in u. '''
    u = np.array(u, dtype=float)
    ur = np.round(u, decimals=NDEC)
    u[U[0] == ur] = U[0]; u[U[-1] == ur] = U[-1]
    if (u < U[0]).any() or (u > U[-1]).any():
        raise KnotOutsideKnotVectorRange(U, u)
    return u

def check_knot_vec(n, p, U, periodic=False):
    ''' Perform some consistency checks on the knot vector U, assuming U
    is clean.  The clamped-end test is waived for periodic knot
    vectors. '''
    m = U.size - 1
    if m != n + p + 1:
        raise NonMatchingKnotVectorLength(m, n, p)

    if (np.diff(U) < 0.0).any():
        raise NonStrictlyIncreasingKnotVector(U)

    if not periodic and not is_clamped(p, U):
        raise UnclampedKnotVector(p, U)

    mult = find_int_mult_knot_vec(p, U)
    if any(s > p for s in mult.values()):
        raise InteriorKnotMultiplicityGreaterThanOrder(p, mult)

def is_clamped(p, U):
    ''' Are the first and last (p + 1) knots of U equal? '''
    return ((U[:p+1] == U[0]).all() and (U[-p-1:] == U[-1]).all()
            and U[p+1] != U[0] and U[-p-2] != U[-1])


# BUILDING KNOT VECTORS


def uni_knot_vec(n, p):
    ''' Construct a uniform and normalized (clamped) knot vector, i.e.
    all interior knots are equally spaced and lie in [0, 1]. '''
    U = np.zeros(n + p + 2)
    for j in range(1, n - p + 1):
        U[j+p] = float(j) / (n - p + 1)
    U[-p-1:] = 1.0
    clean_knot_vec(U)
    return U

def uni_periodic_knot_vec(n, p):
    ''' Construct a uniform, unclamped knot vector whose domain, [U[p],
    U[n+1]], is [0, 1]. '''
    m = n + p + 1
    U = (np.arange(m + 1, dtype=float) - p) / (n - p + 1)
    clean_knot_vec(U)
    return U

def knot_domain(p, U):
    ''' Return the bounds of the valid parametric domain of U, which
    differ from its end knots only for unclamped knot vectors. '''
    return U[p], U[-p-1]


# MANIPULATING KNOT VECTORS


def normalize_knot_vec(U):
    ''' Normalize all knots (or parameter values) to [0, 1] (IN-PLACE).
    '''
    u0, um = U[0], U[-1]
    U[:] = (np.asarray(U, dtype=float) - u0) / (um - u0)
    clean_knot_vec(U)

def remap_knot_vec(U, u0, um):
    ''' Remap all knots (or parameter values) to [u0, um] (IN-PLACE).
    '''
    normalize_knot_vec(U)
    U[:] = u0 + np.asarray(U, dtype=float) * (um - u0)
    clean_knot_vec(U)

def reverse_knot_vec(U):
    ''' Return the reflection of U within its own bounds, i.e. the knot
    vector of the same curve traversed backwards. '''
    U = np.asarray(U, dtype=float)
    Ur = U[0] + U[-1] - U[::-1]
    clean_knot_vec(Ur)
    return Ur


# MULTIPLICITIES


def find_mult_knot_vec(U):
    ''' Find the multiplicities of each knot in U, including the end
    knots. '''
    mult = {}.fromkeys(np.unique(U), 0)
    for u in U:
        mult[u] += 1
    return mult

def find_int_mult_knot_vec(p, U):
    ''' Idem to find_mult_knot_vec, but count the multiplicities of the
    interior knots only. '''
    U = U[p+1:-p-1]
    return find_mult_knot_vec(U)

def find_mult_knot(U, u, eps=config.EPSILON):
    ''' Find the multiplicity of the value u in U. '''
    return int(np.sum(np.abs(np.asarray(U) - u) < eps))


# MISSING KNOTS


def missing_knot_vec(V, U):
    ''' Return all knots that are in V but not in U, assuming U and V
    are cleaned.  A knot present in both is returned as many times as
    its multiplicity in V exceeds the one in U. '''
    multV = find_mult_knot_vec(V)
    multU = find_mult_knot_vec(U)
    X = []
    for v, mv in sorted(multV.items()):
        mu = multU.get(v, 0)
        X += max(mv - mu, 0) * [v]
    return np.array(X, dtype=float)


# EXCEPTIONS


class KnotVectorException(ValueError):
    pass

class NonMatchingKnotVectorLength(KnotVectorException):
    pass

class NonStrictlyIncreasingKnotVector(KnotVectorException):
    pass

class UnclampedKnotVector(KnotVectorException):
    pass

class InteriorKnotMultiplicityGreaterThanOrder(KnotVectorException):
    pass

class KnotOutsideKnotVectorRange(KnotVectorException):
    pass
