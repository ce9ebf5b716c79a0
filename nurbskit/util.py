import numpy as np


def norm(V):
    ''' Find the norm of the vector V (faster than np.linalg.norm).  '''
    return np.sqrt(np.dot(V, V))

def normalize(V):
    ''' Normalize the vector V. '''
    n = norm(V)
    if n == 0.0:
        raise ZeroLengthVector(V)
    return V / n

def distance(P1, P2):
    ''' Calculate the distance between two points. '''
    return norm(np.asarray(P2, dtype=float) - P1)

def distance_v(P1, P2):
    ''' Idem distance, vectorized in P1, where P1 is (3 x num). '''
    P12 = np.asarray(P2, dtype=float).reshape((3, 1)) - P1
    return np.sqrt(np.sum(P12**2, axis=0))

def to_xyz(P):
    ''' Promote a 2D (or 3D) point to its xyz coordinates. '''
    P = np.asarray(P, dtype=float)
    if P.shape == (2,):
        return np.append(P, 0.0)
    return P

def clamp(u, a, b):
    ''' Clamp the scalar u to [a, b]. '''
    if u < a:
        return a
    if u > b:
        return b
    return u

def construct_flat_grid(Us, nums=None):
    ''' Construct a flattened, nonuniform (or optionally uniform) one or
    two-dimensional parametric grid.  If nums is given, Us only supply
    the bounds of each direction. '''
    Us = [np.asarray(U, dtype=float) for U in Us]
    if nums is not None:
        Us = [np.linspace(U[0], U[-1], num)
              for U, num in zip(Us, nums)]
    if len(Us) == 1:
        return Us
    U, V = Us
    numu, numv = len(U), len(V)
    us = U[:,np.newaxis].repeat(numv, axis=1)
    vs = V[np.newaxis,:].repeat(numu, axis=0)
    return [u.flatten() for u in (us, vs)]


# EXCEPTIONS


class UtilException(Exception):
    pass

class ZeroLengthVector(UtilException):
    pass
