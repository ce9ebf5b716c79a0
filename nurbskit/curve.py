''' A pth-degree NURBS curve is defined by

            sum_(i=0)^(n) (Nip(u) * wi * Pi)
    C(u) =  --------------------------------
              sum_(i=0)^(n) (Nip(u) * wi)

where the {Pi} are the control points, the {wi} > 0 the weights and the
{Nip(u)} the pth-degree B-spline basis functions defined on the knot
vector U = {u_0,...,u_m}, (m = n + p + 1).  Unless the Curve is
periodic, U is clamped, i.e. its first and last (p + 1) knots are equal,
and the Curve is defined on [u_0, u_m].

All algorithms below work on the weighted control points Pwi = (wi*xi,
wi*yi, wi*zi, wi), i.e. on the polynomial curve Cw(u) = sum_(i=0)^(n)
(Nip(u) * Pwi) in four-dimensional space; C(u) is recovered by
perspective division.  The modification algorithms only ever combine
whole rows of Pw, so Pw may just as well be a ((n + 1) x (m + 1) x 4)
control net: the curve algorithm is then applied to all m + 1 columns
at once, which is how nurbskit.surface uses them.

'''

import logging

import numpy as np
from scipy.special import comb

from . import analyze
from . import basis
from . import config
from . import interval
from . import knot
from . import nurbs
from . import util


__all__ = ['Curve', 'ControlPolygon',
           'join_curves']


log = logging.getLogger(__name__)


class ControlPolygon(nurbs.ControlObject):

    def __init__(self, cpts=None, Pw=None):

        ''' See nurbskit.nurbs.ControlObject.

        Parameters
        ----------
        cpts = the (control) Points, in order
        Pw = the ((n + 1) x 4) object matrix

        Examples
        --------
        >>> cpol = ControlPolygon([Point(0, 0), Point(1, 2), Point(3, 1)])
        >>> cpol = ControlPolygon(Pw=[(0, 0, 0, 1), (2, 4, 0, 2),
        ...                           (3, 1, 0, 1)])

        '''

        super(ControlPolygon, self).__init__(cpts, Pw)


class Curve(nurbs.NURBSObject):

    def __init__(self, cpol, p, U=None, periodic=False):

        ''' See nurbskit.nurbs.NURBSObject.

        Parameters
        ----------
        cpol = the ControlPolygon
        p = a 1-tuple holding the degree
        U = a 1-tuple holding the knot vector; if None, a uniform one
            (clamped, unless periodic) is built
        periodic = if True, U does not have to be clamped

        Examples
        --------
        A unit quarter circle:

        >>> cpol = ControlPolygon([Point(1, 0), Point(1, 1),
        ...                        Point(0, 1, w=2)])
        >>> c = Curve(cpol, (2,))

        '''

        n, = cpol.n
        p, = p
        if p < 1:
            raise nurbs.InvalidDegree(p)
        if n < p:
            raise nurbs.TooFewControlPoints((n, p),)
        self._cobj = cpol
        self._p = p,
        self._periodic = bool(periodic)
        if U is None:
            make = (knot.uni_periodic_knot_vec if periodic
                    else knot.uni_knot_vec)
            U = make(n, p),
        self._set_knot_vecs(U, periodic)

    def __repr__(self):
        return 'Curve(p={}, n={}, rational={})'.format(
                self.p[0], self.cobj.n[0], self.isrational)

    def copy(self):
        ''' Self copy. '''
        return self.__class__(self.cobj, self.p, self.U, self._periodic)

    @property
    def isperiodic(self):
        ''' Is the knot vector unclamped? '''
        return not knot.is_clamped(self.p[0], self.U[0])

    @property
    def isclosed(self):
        ''' Do the end points of the Curve coincide? '''
        a, b = self.domain[0]
        return util.distance(self.eval_point(a),
                             self.eval_point(b)) < config.MIN_TOLERANCE

    def _clamp_param(self, u):
        a, b = self.domain[0]
        return util.clamp(u, a, b)

    def _new(self, p, U, Pw, periodic=False):
        return Curve(ControlPolygon(Pw=Pw), (p,), (U,), periodic)

# EVALUATION OF POINTS AND DERIVATIVES

    def eval_point(self, u):

        ''' Evaluate C(u).  Values of u outside of the domain are
        clamped to it.

        '''

        n, p, U, Pw = self.var()
        return rat_curve_point(n, p, U, Pw, self._clamp_param(u))

    def eval_points(self, us):

        ''' Idem eval_point, for an array of parameter values.  Point i
        is returned in column i of the (3 x len(us)) result.

        '''

        n, p, U, Pw = self.var()
        a, b = self.domain[0]
        us = np.clip(np.asarray(us, dtype=float), a, b)
        return rat_curve_point_v(n, p, U, Pw, us, us.size)

    def eval_derivatives(self, u, d):

        ''' Evaluate C(u) together with its first d derivatives.

        Parameters
        ----------
        u = the parameter value (clamped to the domain)
        d = the highest derivative wanted

        Returns
        -------
        CK = the ((d + 1) x 3) array of derivatives; CK[0] is the point
             itself and CK[k] the kth derivative

        '''

        n, p, U, Pw = self.var()
        return rat_curve_derivs_at(n, p, U, Pw, self._clamp_param(u), d)

    def eval_tangent(self, u):

        ''' Evaluate the tangent vector C'(u).  It is not unitized; use
        util.normalize for the direction only.

        '''

        return self.eval_derivatives(u, 1)[1]

    def eval_curvature(self, u):
        ''' Evaluate the curvature, |C' x C''| / |C'|**3, at u. '''
        C, CU, CUU = self.eval_derivatives(u, 2)
        return util.norm(np.cross(CU, CUU)) / util.norm(CU)**3

    def extrema(self):

        ''' Find the parameter values at which any of the x, y or z
        coordinates of the Curve is locally extreme, i.e. where a
        component of C'(u) vanishes.  Ends of the domain are included if
        the derivative vanishes there.

        Returns
        -------
        us = the sorted parameter values

        '''

        n, p, U, Pw = self.clamp().var()
        return analyze.rat_curve_extrema(n, p, U, Pw)

# ARC LENGTH AND POINT PROJECTION

    def length(self):
        ''' Return the total arc length of the Curve. '''
        n, p, U, Pw = self.clamp().var()
        return analyze.rat_curve_arc_length(n, p, U, Pw)

    def length_at(self, u):
        ''' Return the arc length of the Curve from its start to u. '''
        n, p, U, Pw = self.clamp().var()
        return analyze.rat_curve_arc_length(n, p, U, Pw,
                                            self._clamp_param(u))

    def param_at_length(self, l, tol=config.MIN_TOLERANCE):

        ''' Find the u at which the arc length measured from the start
        of the Curve reaches l.  Lengths within tol of either end snap
        to that end; anything further out raises
        analyze.LengthOutOfRange.

        '''

        n, p, U, Pw = self.clamp().var()
        return analyze.rat_curve_param_at_length(n, p, U, Pw, l, tol)

    def eval_point_at_length(self, l):
        ''' Evaluate the point located at arc length l. '''
        return self.eval_point(self.param_at_length(l))

    def eval_point_at_normalized_length(self, s):
        ''' Evaluate the point located at arc length s * L, L being the
        total length of the Curve (0 <= s <= 1). '''
        return self.eval_point_at_length(s * self.length())

    def param_at_chord_length(self, u, c):

        ''' Find the first parameter value past u whose point lies at a
        straight line distance c from C(u).

        Raises
        ------
        analyze.LengthOutOfRange = if no such point exists

        '''

        n, p, U, Pw = self.clamp().var()
        return analyze.rat_curve_param_at_chord_length(
                n, p, U, Pw, self._clamp_param(u), c)

    def project(self, xyz, ui=None):

        ''' Find the parameter value of the point of the Curve closest to
        xyz.

        Parameters
        ----------
        xyz = the point to project (2D or 3D)
        ui = a starting guess; by default, the best of a set of samples

        Returns
        -------
        u = the parameter value of the closest point

        '''

        n, p, U, Pw = self.var()
        return analyze.rat_curve_closest_param(n, p, U, Pw, util.to_xyz(xyz),
                                               ui, closed=self.isclosed)

    def closest_point(self, xyz):
        ''' Return the point on the Curve closest to xyz. '''
        return self.eval_point(self.project(xyz))

# KNOT INSERTION

    def insert(self, u, e):

        ''' Insert the knot u e times.  Raises ImproperInput if that
        would push its multiplicity beyond p.

        '''

        n, p, U, Pw = self.var()
        if e > 0:
            u = knot.clean_knot(u)
            k, s = basis.find_span_mult(n, p, U, u)
            if s + e > p:
                raise ImproperInput(u, s, e, p)
            U, Pw = curve_knot_ins(n, p, U, Pw, u, k, s, e)
        return self._new(p, U, Pw, self._periodic)

    def split(self, u):

        ''' Split the Curve at one or several parameter values.  All of
        them are inserted at once, up to multiplicity p, after which the
        pieces are read off the refined control polygon.

        Parameters
        ----------
        u = a parameter value, or a sequence of them (in any order);
            values lying on, or beyond, either end of the domain are
            ignored

        Returns
        -------
        Cs = the pieces, from left to right; a single Curve (equivalent
             to self.clamp()) if there was nothing to split at

        '''

        n, p, U, Pw = self.clamp().var()
        return [self._new(p, Uj, Qj) for Uj, Qj in split_curve(n, p, U, Pw, u)]

    def subcurve(self, ival):

        ''' Extract the part of the Curve lying within an Interval.

        Parameters
        ----------
        ival = the Interval, (t0, t1); if decreasing, the extracted
               Curve is reversed

        Returns
        -------
        Curve = the extracted Curve, keeping the parameterization of self

        '''

        if not isinstance(ival, interval.Interval):
            ival = interval.Interval(*ival)
        if ival.isdecreasing:
            return self.subcurve(ival.swap()).reverse()
        a, b = self.domain[0]
        t0, t1 = util.clamp(ival.t0, a, b), util.clamp(ival.t1, a, b)
        if t1 - t0 < config.EPSILON:
            raise ImproperInput(ival)
        Cs = self.split([t0, t1])
        return Cs[1] if t0 > a else Cs[0]

# KNOT REFINEMENT

    def refine(self, X):

        ''' Insert all knots of X (in any order, repeated as many times
        as they should be inserted).  An empty X returns an unchanged
        copy.

        '''

        n, p, U, Pw = self.var()
        X = knot.clean_knot(np.sort(np.asarray(X, dtype=float)))
        if X.size != 0:
            U, Pw = refine_knot_vect_curve(n, p, U, Pw, X)
        return self._new(p, U, Pw, self._periodic)

    def decompose(self, normalize=False):

        ''' Decompose the Curve into its Bezier segments, each keeping
        its own piece of the domain unless normalize is True, in which
        case each is remapped to [0, 1].

        '''

        n, p, U, Pw = self.clamp().var()
        nb, Ub, Qw = decompose_curve(n, p, U, Pw)
        if normalize:
            for Uj in Ub:
                knot.normalize_knot_vec(Uj)
        return [self._new(p, Uj, Qj) for Uj, Qj in zip(Ub, Qw)]

    def clamp(self):

        ''' Return an equivalent Curve defined on a clamped knot vector
        (the Curve itself, if its knot vector is already clamped).

        '''

        if not self.isperiodic:
            return self
        n, p, U, Pw = self.var()
        U, Pw = clamp_curve(n, p, U, Pw)
        return self._new(p, U, Pw)

    def close(self):

        ''' Close the Curve by wrapping its first p control points
        around, which yields a periodic Curve on [0, 1] whose end points
        meet smoothly.

        '''

        n, p, U, Pw = self.clamp().var()
        Qw = np.vstack((Pw, Pw[:p]))
        U = knot.uni_periodic_knot_vec(n + p, p)
        return self._new(p, U, Qw, periodic=True)

# DEGREE ELEVATION AND REDUCTION

    def elevate(self, p):
        ''' Raise the degree to p; a no-op if p does not exceed the
        current degree. '''
        n, q, U, Pw = self.clamp().var()
        if p > q:
            U, Pw = degree_elevate_curve(n, q, U, Pw, p - q)
            q = p
        return self._new(q, U, Pw)

    def reduce(self, d=config.MAX_TOLERANCE):

        ''' Lower the degree by one.

        Raises
        ------
        MaximumToleranceReached = if the resulting Curve would deviate
                                  from self by more than d
        ImproperInput = if the Curve is linear

        '''

        n, p, U, Pw = self.clamp().var()
        if p < 2:
            raise ImproperInput('cannot reduce a curve of degree', p)
        U, Pw = degree_reduce_curve(n, p, U, Pw, d)
        return self._new(p - 1, U, Pw)

# MISCELLANEA

    def reverse(self):
        ''' Reverse the direction of the Curve, keeping its domain. '''
        n, p, U, Pw = self.var()
        U, Pw = reverse_curve_direction(n, p, U, Pw)
        return self._new(p, U, Pw, self._periodic)


# HEAVY LIFTING FUNCTIONS

# From here on out most functions are the direct equivalent of the
# pseudo-algorithms found in 'The NURBS Book (2nd Ed.)', hence their
# not-so pythonic nature.  All working arrays are local to each call.


def curve_derivs_alg1(n, p, U, P, u, d):

    ''' Compute curve derivatives up to and including the dth.  (d > p)
    is allowed, although the derivatives are 0 in this case (for
    nonrational curves); these derivatives are necessary for rational
    curves.  P may hold points of any dimension (e.g. 4D weighted control
    points).  Output is the array CK, where CK[k] is the kth derivative
    (0 <= k <= d).

    Source: The NURBS Book (2nd Ed.), Pg. 93.

    '''

    CK = np.zeros((d + 1,) + P.shape[1:])
    du = min(d, p)
    span = basis.find_span(n, p, U, u)
    nders = basis.ders_basis_funs(span, u, p, du, U)
    CK[:du+1] = np.tensordot(nders, P[span-p:span+1], axes=1)
    return CK


def rat_curve_point(n, p, U, Pw, u):

    ''' Compute a point on a rational B-spline curve at a fixed u
    parameter value.

    Source: The NURBS Book (2nd Ed.), Pg. 124.

    '''

    span = basis.find_span(n, p, U, u)
    Cw = np.dot(basis.basis_funs(span, u, p, U), Pw[span-p:span+1])
    return Cw[:3] / Cw[-1]


def rat_curve_point_v(n, p, U, Pw, u, num):
    ''' Idem rat_curve_point, vectorized in u. '''
    u = np.asarray(u, dtype=float)
    span = basis.find_span_v(n, p, U, u, num)
    N = basis.basis_funs_v(span, u, p, U, num)
    rows = span - p + np.arange(p + 1)[:,np.newaxis]
    Cw = np.einsum('jn,jnk->kn', N, Pw[rows])
    return Cw[:3] / Cw[-1]


def rat_curve_derivs(Aders, wders, d):

    ''' Given that Cw(u) has already been differentiated and its
    coordinates separated off into Aders and wders, this algorithm
    computes the point, C(u), and the derivatives, C^k(u), (1 <= k <=
    d).  The curve point is returned in CK[0,:] and the kth derivative
    is returned in CK[k,:].

    Source: The NURBS Book (2nd Ed.), Pg. 127.

    '''

    CK = np.zeros((d + 1, 3))
    for k in range(d + 1):
        i = np.arange(1, k + 1)
        CK[k] = (Aders[k] - np.dot(comb(k, i) * wders[i], CK[k-i])) / wders[0]
    return CK


def rat_curve_derivs_at(n, p, U, Pw, u, d):
    ''' Compute C(u) and its first d derivatives, rational or not. '''
    Cwders = curve_derivs_alg1(n, p, U, Pw, u, d)
    return rat_curve_derivs(Cwders[:,:-1], Cwders[:,-1], d)


# FUNDAMENTAL GEOMETRIC ALGORITHMS


def curve_knot_ins(n, p, UP, Pw, u, k, s, r):

    ''' Insert u, lying in [u_k, u_(k+1)) with multiplicity s, r times
    into UP, (s + r <= p).  Each insertion only replaces the (p - s)
    control points P_(k-p+1),...,P_(k-s) by blends of their neighbours,
    Q_i = alpha_i * P_i + (1 - alpha_i) * P_(i-1), after which u sits in
    span k + 1 with multiplicity s + 1.

    Source: The NURBS Book (2nd Ed.), Pg. 141 and 151.

    '''

    UQ, Qw = np.asarray(UP, dtype=float), Pw
    shape = (-1,) + (1,) * (Pw.ndim - 1)
    for j in range(r):
        i = np.arange(k - p + 1, k - s + 1)
        alpha = ((u - UQ[i]) / (UQ[i+p] - UQ[i])).reshape(shape)
        Qw = np.concatenate((Qw[:k-p+1],
                             alpha * Qw[i] + (1.0 - alpha) * Qw[i-1],
                             Qw[k-s:]))
        UQ = np.insert(UQ, k + 1, u)
        k, s = k + 1, s + 1
    return UQ, Qw


def refine_knot_vect_curve(n, p, U, Pw, X, eps=config.EPSILON):

    ''' Insert all knots of the nondecreasing X = {x0,...,xr}, (u0 < xi <
    um), into U and compute the corresponding control points {Qwi}, i =
    0,...,n+r+1.  Knots to be inserted several times are repeated in X.
    The knots are processed from the last to the first; a blending
    ratio whose numerator falls below eps is a plain copy.

    Source: The NURBS Book (2nd Ed.), Pg. 164.

    '''

    X = np.asarray(X, dtype=float)
    r = X.size - 1
    if r < 0:
        return U.copy(), Pw.copy()
    a = basis.find_span(n, p, U, X[0])
    b = basis.find_span(n, p, U, X[-1]) + 1
    UQ = np.zeros(U.size + r + 1)
    Qw = np.zeros((n + r + 2,) + Pw.shape[1:])
    UQ[:a+1], UQ[b+p+r+1:] = U[:a+1], U[b+p:]
    Qw[:a-p+1], Qw[b+r:] = Pw[:a-p+1], Pw[b-1:]
    i, k = b + p - 1, b + p + r
    for x in X[::-1]:
        while x <= U[i] and i > a:
            Qw[k-p-1] = Pw[i-p-1]
            UQ[k] = U[i]
            k, i = k - 1, i - 1
        Qw[k-p-1] = Qw[k-p]
        for l in range(1, p + 1):
            j = k - p + l
            alpha = UQ[k+l] - x
            if abs(alpha) < eps:
                Qw[j-1] = Qw[j]
                continue
            alpha /= UQ[k+l] - U[i-p+l]
            Qw[j-1] = alpha * Qw[j-1] + (1.0 - alpha) * Qw[j]
        UQ[k] = x
        k -= 1
    return UQ, Qw


def split_curve(n, p, U, Pw, us):

    ''' Split a clamped curve at the parameter values us.  Values are
    sorted and those not strictly inside the domain dropped; each one
    left is refined to multiplicity p, so that it sits at U[k:k+p] with
    C(u) = Pw[k-1], the last control point of the piece to its left and
    the first of the piece to its right.  Returns a list of (U, Pw)
    pairs, from left to right.

    '''

    us = np.atleast_1d(np.asarray(us, dtype=float))
    us = np.unique(knot.clean_knot(us))
    us = us[(us > U[0]) & (us < U[-1])]
    X = np.repeat(us, [p - knot.find_mult_knot(U, u) for u in us])
    if X.size != 0:
        U, Pw = refine_knot_vect_curve(n, p, U, Pw, X)
    pieces = []
    head, k0, i0 = [], 0, 0
    for u in us:
        k = np.searchsorted(U, u)
        pieces.append((np.hstack((head, U[k0:k+p], u)), Pw[i0:k]))
        head, k0, i0 = [u], k, k - 1
    pieces.append((np.hstack((head, U[k0:])), Pw[i0:]))
    return pieces


def decompose_curve(n, p, U, Pw):

    ''' Decompose a NURBS curve into nb Bezier segments by raising the
    multiplicity of every knot to (p + 1) and slicing the result.
    Ub[j] is the knot vector of the jth segment and Qw[j][k] its kth
    control point.

    Source: The NURBS Book (2nd Ed.), Pg. 164.

    '''

    mult = knot.find_mult_knot_vec(U)
    V = np.repeat(sorted(mult), p + 1)
    X = knot.missing_knot_vec(V, U)
    UQ, Qw = refine_knot_vect_curve(n, p, U, Pw, X)
    nb = len(mult) - 1
    Ub, Qb = [], []
    for j in range(nb):
        l = j * (p + 1)
        Ub.append(UQ[l:l+2*(p+1)].copy())
        Qb.append(Qw[l:l+p+1].copy())
    return nb, Ub, Qb


def clamp_curve(n, p, U, Pw):

    ''' Convert a curve defined on an unclamped knot vector into an
    equivalent curve on a clamped one, by raising the multiplicity of
    both ends of the domain, [U[p], U[n+1]], to (p + 1) and discarding
    whatever lies outside of it.

    '''

    a, b = knot.knot_domain(p, U)
    sa, sb = knot.find_mult_knot(U, a), knot.find_mult_knot(U, b)
    X = (p + 1 - sa) * [a] + (p + 1 - sb) * [b]
    UQ, Qw = refine_knot_vect_curve(n, p, U, Pw, X)
    i0 = np.searchsorted(UQ, a, side='left')
    j0 = np.searchsorted(UQ, b, side='left')
    return UQ[i0:j0+p+1], Qw[i0:j0]


# Degree elevation and reduction.
#
#   Both process a clamped curve one Bezier segment at a time (see
#   bezier_segments): the segment is extracted by knot insertion, its
#   degree is changed, and the knots that were inserted are removed
#   again before its control points are appended to the output.  On
#   elevation every distinct knot of U sees its multiplicity raised by
#   t; on reduction every interior one sees it lowered by one.


def bezier_segments(n, p, U, Pw, eps=config.EPSILON):

    ''' Walk a clamped curve from left to right, one Bezier segment at a
    time.  A segment is isolated by inserting its right end knot until
    it has multiplicity p; the control points this pushes past the
    segment are those the next one starts with, so no control point is
    computed twice.  Yields (a, b, r, bpts), where [U[a], U[b]] is the
    segment, r = p - mult(U[b]) is the number of insertions made (r < 0
    for the last segment) and bpts are its (p + 1) control points.

    Source: The NURBS Book (2nd Ed.), Pg. 206 and 223.

    '''

    m = n + p + 1
    shape = (-1,) + (1,) * (Pw.ndim - 1)
    a, b = p, p + 1
    bpts = Pw[:p+1].copy()
    while b < m:
        i = b
        while b < m and abs(U[b+1] - U[b]) < eps:
            b += 1
        r = p - (b - i + 1)
        nextbpts = []
        if r > 0:
            alfs = (U[b] - U[a]) / (U[a+p-r+1:a+p+1] - U[a])
            for s in range(p - r + 1, p + 1):
                alf = alfs[:p-s+1].reshape(shape)
                bpts[s:] = alf * bpts[s:] + (1.0 - alf) * bpts[s-1:-1]
                nextbpts.insert(0, bpts[p].copy())
        yield a, b, r, bpts
        if b < m:
            head = np.reshape(nextbpts, (-1,) + Pw.shape[1:])
            bpts = np.concatenate((head, Pw[b-p+r:b+1]))
            a, b = b, b + 1


def bezier_elevation_matrix(p, t):

    ''' Return the ((p + t + 1) x (p + 1)) matrix E mapping the control
    points of a pth-degree Bezier segment onto those of the same segment
    elevated t times, E[i,j] = C(p,j) * C(t,i-j) / C(p+t,i).

    Source: The NURBS Book (2nd Ed.), Pg. 205.

    '''

    i = np.arange(p + t + 1)[:,np.newaxis]
    j = np.arange(p + 1)
    return comb(p, j) * comb(t, i - j) / comb(p + t, i)


def degree_elevate_curve(n, p, U, Pw, t):

    ''' Raise the degree from p to (p + t), (t >= 1), by computing nh,
    Uh and Qw.  The knot ua = U[a] separating two consecutive Bezier
    segments is removed (oldr - 1) times, oldr being the number of
    times it was inserted; the left Bezier points lbz,...,rbz of each
    elevated segment are those left over by the removal.

    Source: The NURBS Book (2nd Ed.), Pg. 206.

    '''

    ph = p + t
    E = bezier_elevation_matrix(p, t)
    m = n + p + 1
    nh = mult_degree_elevate(n, p, U, t)
    Qw = np.zeros((nh + 1,) + Pw.shape[1:])
    Uh = np.zeros(nh + ph + 2)
    Qw[0], Uh[:ph+1] = Pw[0], U[0]
    kind, cind, oldr = ph + 1, 1, -1
    for a, b, r, bpts in bezier_segments(n, p, U, Pw):
        ua, ub = U[a], U[b]
        lbz = (oldr + 2) // 2 if oldr > 0 else 1
        rbz = ph - (r + 1) // 2 if r > 0 else ph
        ebpts = np.tensordot(E, bpts, axes=1)
        if oldr > 1:
            first, last = kind - 2, kind
            bet = (ub - Uh[kind-1]) / (ub - ua)
            for tr in range(1, oldr):
                i, j, kj = first, last, last - kind + 1
                while j - i > tr:
                    if i < cind:
                        alf = (ub - Uh[i]) / (ua - Uh[i])
                        Qw[i] = alf * Qw[i] + (1.0 - alf) * Qw[i-1]
                    if j >= lbz:
                        gam = bet
                        if j - tr <= kind - ph + oldr:
                            gam = (ub - Uh[j-tr]) / (ub - ua)
                        ebpts[kj] = gam * ebpts[kj] + (1.0 - gam) * ebpts[kj+1]
                    i, j, kj = i + 1, j - 1, kj - 1
                first, last = first - 1, last + 1
        if a != p:
            Uh[kind:kind+ph-oldr] = ua
            kind += ph - oldr
        Qw[cind:cind+rbz-lbz+1] = ebpts[lbz:rbz+1]
        cind += rbz - lbz + 1
        if b == m:
            Uh[kind:kind+ph+1] = ub
        oldr = r
    return Uh, Qw


def bez_degree_reduce(bpts):

    ''' Degree reduce the Bezier segment bpts (p + 1 points) to p
    points, half of them computed from the left end and half from the
    right end.  For odd p the two estimates of the middle point are
    averaged.  Returns the reduced points and a bound of the error.

    Source: The NURBS Book (2nd Ed.), Pg. 220-221.

    '''

    p = bpts.shape[0] - 1
    r = (p - 1) // 2
    odd = p % 2 == 1
    rbpts = np.zeros((p,) + bpts.shape[1:])
    rbpts[0], rbpts[-1] = bpts[0], bpts[-1]
    for i in range(1, r if odd else r + 1):
        alf = i / p
        rbpts[i] = (bpts[i] - alf * rbpts[i-1]) / (1.0 - alf)
    for i in range(p - 2, r, -1):
        alf = (i + 1) / p
        rbpts[i] = (bpts[i+1] - (1.0 - alf) * rbpts[i+1]) / alf
    if not odd:
        err = util.distance(bpts[r+1], (rbpts[r] + rbpts[r+1]) / 2.0)
        return rbpts, err
    alfl, alfr = r / p, (r + 1) / p
    PL = (bpts[r] - alfl * rbpts[r-1]) / (1.0 - alfl)
    PR = (bpts[r+1] - (1.0 - alfr) * rbpts[r+1]) / alfr
    rbpts[r] = (PL + PR) / 2.0
    return rbpts, util.distance(PL, PR)


def degree_reduce_curve(n, p, U, Pw, d=config.MAX_TOLERANCE):

    ''' Degree reduce a NURBS curve by one, subject to a maximum
    deviation d.  The error bound of every knot span is accumulated in
    e, both from the reduction of its Bezier segment and from the
    removal of the knots inserted to isolate it; MaximumToleranceReached
    is raised as soon as one exceeds d (scaled for rational curves).

    Source: The NURBS Book (2nd Ed.), Pg. 223.

    '''

    TOL = calc_tol_removal(Pw, d)
    ph = p - 1
    m = n + p + 1
    nh = mult_degree_reduce(n, p, U)
    e = np.zeros(m + 1)
    Qw = np.zeros((nh + 1, 4))
    Uh = np.zeros(nh + p + 1)
    Qw[0], Uh[:ph+1] = Pw[0], U[0]
    kind, cind, oldr = ph + 1, 1, -1
    for a, b, r, bpts in bezier_segments(n, p, U, Pw):
        lbz = (oldr + 2) // 2 if oldr > 0 else 1
        rbpts, err = bez_degree_reduce(bpts)
        e[a] += err
        log.debug('degree reduction, span %d: error bound %g (TOL %g)',
                  a, e[a], TOL)
        if e[a] > TOL:
            raise MaximumToleranceReached(a, e[a], TOL)
        if oldr > 0:
            first = last = kind
            for k in range(oldr):
                i, j, kj = first, last, last - kind
                while j - i > k:
                    alf = (U[a] - Uh[i-1]) / (U[b] - Uh[i-1])
                    bet = (U[a] - Uh[j-k-1]) / (U[b] - Uh[j-k-1])
                    Qw[i-1] = (Qw[i-1] - (1.0 - alf) * Qw[i-2]) / alf
                    rbpts[kj] = (rbpts[kj] - bet * rbpts[kj+1]) / (1.0 - bet)
                    i, j, kj = i + 1, j - 1, kj - 1
                if j - i < k:
                    Br = util.distance(Qw[i-2], rbpts[kj+1])
                else:
                    delta = (U[a] - Uh[i-1]) / (U[b] - Uh[i-1])
                    A = delta * rbpts[kj+1] + (1.0 - delta) * Qw[i-2]
                    Br = util.distance(Qw[i-1], A)
                # Spans affected by the removal, K - q,...,a
                K, q = a + oldr - k, (2 * p - k + 1) // 2
                for ii in range(K - q, a + 1):
                    e[ii] += Br
                    if e[ii] > TOL:
                        raise MaximumToleranceReached(ii, e[ii], TOL)
                first, last = first - 1, last + 1
            cind = i - 1
        if a != p:
            Uh[kind:kind+ph-oldr] = U[a]
            kind += ph - oldr
        Qw[cind:cind+ph-lbz+1] = rbpts[lbz:]
        cind += ph - lbz + 1
        if b == m:
            Uh[kind:kind+ph+1] = U[b]
        oldr = r
    return Uh, Qw


# ADVANCED GEOMETRIC ALGORITHMS


def reverse_curve_direction(n, p, U, Pw):

    ''' Reverse the direction of a curve while maintaining its
    parameterization, i.e. the bounds of its domain.

    Source: The NURBS Book (2nd Ed.), Pg. 263.

    '''

    return knot.reverse_knot_vec(U), Pw[::-1].copy()


def join_curves(Cs, tol=config.MIN_TOLERANCE):

    ''' Link two or more Curves, end to start, to form one composite
    Curve.

    Parameters
    ----------
    Cs = the Curves to join, in order
    tol = the maximum distance allowed between the end point of a Curve
          and the start point of the next one

    Returns
    -------
    Curve = the composite Curve, defined on [0, 1]

    Raises
    ------
    CurvesNotConnected = if the Curves k and (k + 1) do not touch

    '''

    if len(Cs) < 2:
        raise ImproperInput('at least two curves are required', len(Cs))
    Cs = [c.clamp() for c in Cs]
    for k in range(len(Cs) - 1):
        cl, cr = Cs[k], Cs[k+1]
        gap = util.distance(cl.eval_point(cl.U[0][-1]),
                            cr.eval_point(cr.U[0][0]))
        if gap > tol:
            raise CurvesNotConnected(k, k + 1, gap)
    p = max([c.p[0] for c in Cs])
    if any(c.p[0] != p for c in Cs):
        log.debug('join: elevating curves to common degree %d', p)
    Cs = [c.elevate(p) for c in Cs]
    n, dummy, U, Pw = Cs[0].var()
    Us, Qws = [U[:n+1]], [Pw[:-1]]
    end, wl = U[-1], Pw[-1,-1]
    for c in Cs[1:]:
        n, dummy, U, Pw = c.var()
        U += end - U[0]
        Pw *= wl / Pw[0,-1]
        Us.append(U[1:n+1])
        Qws.append(Pw[:-1])
        end, wl = U[-1], Pw[-1,-1]
    Us.append(U[n+1:])
    Qws.append(Pw[-1:])
    UQ, Qw = np.hstack(Us), np.vstack(Qws)
    knot.normalize_knot_vec(UQ)
    return Curve(ControlPolygon(Pw=Qw), (p,), (UQ,))


# UTILITIES


def calc_tol_removal(Pw, d):

    ''' Scale the Euclidean tolerance d to homogeneous space, where the
    knot removal and degree reduction error bounds are measured.  Left
    unchanged for nonrational curves.

    Source: The NURBS Book (2nd Ed.), Pg. 185.

    '''

    w = Pw[...,-1]
    if (w == 1.0).all():
        return d
    P = nurbs.obj_mat_to_3D(Pw)
    return d * w.min() / (1.0 + np.sqrt(np.sum(P**2, axis=-1)).max())


def mult_degree_elevate(n, p, U, t):
    ''' Return nh, n once the degree has been raised by t. '''
    return n + (len(knot.find_int_mult_knot_vec(p, U)) + 1) * t


def mult_degree_reduce(n, p, U):
    ''' Return nh, n once the degree has been lowered by one. '''
    return n - len(knot.find_int_mult_knot_vec(p, U)) - 1


# EXCEPTIONS


class CurveException(nurbs.NURBSException):
    pass

class ImproperInput(CurveException, ValueError):
    pass

class MaximumToleranceReached(CurveException):
    pass

class CurvesNotConnected(CurveException):

    def __init__(self, k, l, gap):
        self.pair, self.gap = (k, l), gap
        msg = ('curve {} does not end where curve {} starts '
               '(gap = {:g})'.format(k, l, gap))
        super(CurvesNotConnected, self).__init__(msg)
