import numpy as np

from . import config
from . import interval
from . import knot
from . import point


class ControlObject(object):

    ''' A ControlObject represents the (ordered) set of control Points
    of a NURBSObject.

    '''

    def __init__(self, cpts, Pw):

        ''' Initialize the ControlObject with either (not both) a list
        of Point objects or an object matrix.

        An object matrix, denoted by Pw, is a matrix that contains the
        4D homogenous coordinates of all control points constituting the
        ControlObject.  Hence, for curves, Pw[i,:] contains Pi = (wi*xi,
        wi*yi, wi*zi, wi), and likewise for surfaces, Pw[i,j,:].  Its
        dimension is ((n + 1) x 4) for a ControlPolygon (Curve) and ((n
        + 1) x (m + 1) x 4) for a ControlNet (Surface).

        The object matrix is private to the ControlObject and read-only;
        Points handed out by cpts are fresh copies.

        Weights lying within config.UNIT_WEIGHT_TOL (1e-8) of 1 are
        snapped to exactly 1, dividing the whole homogeneous point by
        its weight, so that the xyz coordinates of such a point are kept
        while its weight is rounded.  A ControlObject built from
        nearly-unit weights is thus nonrational (see
        NURBSObject.isrational).  No other input is altered.

        '''

        if cpts is not None:
            Pw = point.points_to_obj_mat(cpts)
        elif Pw is not None:
            Pw = np.array(Pw, dtype=float)
        else:
            raise ImproperControlObject('either cpts or Pw is required')
        if Pw.shape[-1] != 4:
            raise ImproperControlObject(Pw.shape)
        w = Pw[...,-1]
        if not (w > 0.0).all():
            raise point.NonPositiveWeight(w[w <= 0.0])
        unit = np.abs(w - 1.0) <= config.UNIT_WEIGHT_TOL
        Pw[unit] /= w[unit][...,np.newaxis]

        Pw.flags.writeable = False
        self._n = tuple(np.array(Pw.shape[:-1]) - 1)
        self._Pw = Pw

    @property
    def Pw(self):
        ''' Get the (read-only) object matrix. '''
        return self._Pw

    @property
    def cpts(self):
        ''' Get the control Points. '''
        return point.obj_mat_to_points(self._Pw)

    @property
    def n(self):
        ''' There are (n + 1) control Points. '''
        return self._n

    @property
    def bounds(self):
        ''' Return the xyz min/max bounds. '''
        m = self._Pw.reshape((-1, 4))
        m = obj_mat_to_3D(m)
        return list(zip(np.min(m, axis=0), np.max(m, axis=0)))

    def copy(self):
        ''' Self copy. '''
        return self.__class__(Pw=self._Pw)


class NURBSObject(object):

    ''' A NURBSObject is meant to be subclassed into either a NURBS
    Curve or Surface.  It is fully defined by a ControlObject, degree(s)
    and accompanying knot vector(s).  If no knot vector(s) is specified,
    a uniform knot vector(s) is used.

    A NURBSObject is immutable: every modification returns a new
    object.

    '''

    def _set_knot_vecs(self, Us, periodic=False):
        ''' Clean, check and freeze the knot vector(s). '''
        new_U = [np.array(U, dtype=float) for U in Us]
        for n, p, U in zip(self.cobj.n, self.p, new_U):
            knot.clean_knot_vec(U)
            knot.check_knot_vec(n, p, U, periodic)
            U.flags.writeable = False
        self._U = tuple(new_U)

    @property
    def cobj(self):
        ''' Get the ControlObject. '''
        return self._cobj

    @property
    def p(self):
        ''' Get the degree(s). '''
        return self._p

    @property
    def U(self):
        ''' Get the (read-only) knot vector(s). '''
        return self._U

    @property
    def domain(self):
        ''' Get the valid parametric range(s), as Interval(s). '''
        return tuple(interval.Interval(*knot.knot_domain(p, U))
                     for p, U in zip(self.p, self.U))

    @property
    def bounds(self):
        ''' Get the min/max bounds of the ControlObject. '''
        return self.cobj.bounds

    @property
    def isrational(self):
        ''' Is the NURBSObject rational? '''
        return bool((self.cobj.Pw[...,-1] != 1.0).any())

    def isequivalent(self, n, TOL=1e-8):
        ''' Is self equivalent to another NURBSObject? '''
        P = [obj_mat_to_3D(Pw) for Pw in (self.cobj.Pw, n.cobj.Pw)]
        if P[0].shape != P[1].shape or self.p != n.p:
            return False
        m = ()
        for v in [P] + list(zip(self.U, n.U)):
            if v[0].shape != v[1].shape:
                return False
            m += np.allclose(*v, atol=TOL),
        return all(m)

    def var(self):
        ''' Return copies of internal variables. '''
        v = ()
        for n, p, U in zip(self.cobj.n, self.p, self.U):
            v += n, p, U.copy()
        v += self.cobj.Pw.copy(),
        return v

    def copy(self):
        ''' Self copy. '''
        return self.__class__(self.cobj, self.p, self.U)


def obj_mat_to_3D(Pw):
    ''' Convert a 4D (homogeneous) object matrix to a 3D object matrix,
    i.e. a (... x 4) to a (... x 3) matrix. '''
    Pw = np.asarray(Pw, dtype=float)
    if Pw.shape[-1] == 3:
        return Pw
    w = Pw[...,-1]
    return Pw[...,:-1] / w[...,np.newaxis]

def obj_mat_to_4D(P, w=None):
    ''' Idem obj_mat_to_3D, vice versa.  If w is None, all weights are
    set to unity, otherwise it is assumed that w has one less dimension
    than P.  2D coordinates are padded with z = 0. '''
    P = np.asarray(P, dtype=float); s = P.shape
    if s[-1] == 4:
        return P.copy()
    Pw = np.ones(list(s[:-1]) + [4])
    Pw[...,:s[-1]] = P
    if s[-1] == 2:
        Pw[...,2] = 0.0
    if w is not None:
        w = np.asarray(w, dtype=float)
        if not (w > 0.0).all():
            raise point.NonPositiveWeight(w)
        Pw *= w[...,np.newaxis]
    return Pw


# EXCEPTIONS


class NURBSException(Exception):
    pass

class ImproperControlObject(NURBSException, ValueError):
    pass

class TooFewControlPoints(NURBSException, ValueError):
    pass

class InvalidDegree(NURBSException, ValueError):
    pass

class NewtonLikelyDiverged(NURBSException):
    pass
