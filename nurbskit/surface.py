''' A NURBS surface of degree p in the u direction and degree q in the v
direction is the tensor product

             sum_(i=0)^(n) sum_(j=0)^(m) (Nip(u) * Njq(v) * wij * Pij)
    S(u,v) = ---------------------------------------------------------
                sum_(i=0)^(n) sum_(j=0)^(m) (Nip(u) * Njq(v) * wij)

defined on the clamped knot vectors U (r = n + p + 1) and V (s = m + q +
1).

Along either direction di, a surface is nothing but a curve whose
"control points" are the rows of its control net: fixing v, Sw(u,v) =
sum_(i=0)^(n) (Nip(u) * Qwi(v)).  Knot insertion, refinement, splitting,
decomposition, degree elevation and reversal in direction di are
therefore delegated to the curve algorithms of nurbskit.curve, which
accept a whole control net in place of a control polygon.  A Surface
hands its net to them "bundled" along di, i.e. with di as its first
axis (see Surface._bundle and Surface._unbundle).

'''

import logging

import numpy as np
from scipy.special import comb

from . import basis
from . import config
from . import curve
from . import knot
from . import nurbs
from . import util


__all__ = ['Surface', 'ControlNet',
           'make_bilinear_surface',
           'make_surface_from_points']


log = logging.getLogger(__name__)


class ControlNet(nurbs.ControlObject):

    def __init__(self, cpts=None, Pw=None):

        ''' See nurbskit.nurbs.ControlObject.

        Parameters
        ----------
        cpts = the (control) Points, as a list of (n + 1) lists of (m +
               1) Points each; cpts[i][j] is Pij
        Pw = the ((n + 1) x (m + 1) x 4) object matrix

        '''

        super(ControlNet, self).__init__(cpts, Pw)


class Surface(nurbs.NURBSObject):

    def __init__(self, cnet, p, U=None):

        ''' See nurbskit.nurbs.NURBSObject.

        Parameters
        ----------
        cnet = the ControlNet
        p = the 2-tuple of degrees, (p, q)
        U = the 2-tuple of knot vectors, (U, V); if None, uniform clamped
            ones are built

        Examples
        --------
        A unit square in the xy plane, u running along x and v along y:

        >>> cnet = ControlNet([[Point(0, 0), Point(0, 1)],
        ...                    [Point(1, 0), Point(1, 1)]])
        >>> s = Surface(cnet, (1, 1))

        '''

        n, m = cnet.n
        p, q = p
        if p < 1 or q < 1:
            raise nurbs.InvalidDegree(p, q)
        if n < p or m < q:
            raise nurbs.TooFewControlPoints((n, p), (m, q))
        self._cobj = cnet
        self._p = p, q
        if U is None:
            U = (knot.uni_knot_vec(n, p),
                 knot.uni_knot_vec(m, q))
        self._set_knot_vecs(U)

    def __repr__(self):
        return 'Surface(p={}, n={}, rational={})'.format(
                self.p, self.cobj.n, self.isrational)

    def _clamp_params(self, u, v):
        du, dv = self.domain
        return (util.clamp(u, du.t0, du.t1),
                util.clamp(v, dv.t0, dv.t1))

    def _bundle(self, di):

        ''' Return (n, p, U, Pw) of direction di, Pw being the control
        net with di as its first axis.

        '''

        n, p, U, m, q, V, Pw = self.var()
        if di == 0:
            return n, p, U, Pw
        return m, q, V, np.transpose(Pw, (1, 0, 2))

    def _unbundle(self, di, p, U, Pw):
        ''' Inverse of _bundle: build the Surface whose direction di has
        degree p, knot vector U and (bundled) control net Pw. '''
        ps, Us = list(self.p), list(self.U)
        ps[di], Us[di] = p, U
        if di == 1:
            Pw = np.transpose(Pw, (1, 0, 2))
        return Surface(ControlNet(Pw=Pw), tuple(ps), tuple(Us))

# EVALUATION OF POINTS AND DERIVATIVES

    def eval_point(self, u, v):
        ''' Evaluate S(u,v); u, v are clamped to the domain. '''
        n, p, U, m, q, V, Pw = self.var()
        u, v = self._clamp_params(u, v)
        return rat_surface_point(n, p, U, m, q, V, Pw, u, v)

    def eval_points(self, us, vs):

        ''' Idem eval_point, for arrays of parameter values (of equal
        lengths).  Point i is returned in column i of the (3 x len(us))
        result.

        '''

        n, p, U, m, q, V, Pw = self.var()
        us = np.clip(np.asarray(us, dtype=float), U[0], U[-1])
        vs = np.clip(np.asarray(vs, dtype=float), V[0], V[-1])
        return rat_surface_point_v(n, p, U, m, q, V, Pw, us, vs, us.size)

    def eval_derivatives(self, u, v, d):

        ''' Evaluate S(u,v) together with its partial derivatives up to
        order d.

        Returns
        -------
        SKL = the ((d + 1) x (d + 1) x 3) array of derivatives; SKL[k,l]
              is S differentiated k times in u and l times in v, (k + l
              <= d), the remaining entries being 0

        '''

        n, p, U, m, q, V, Pw = self.var()
        u, v = self._clamp_params(u, v)
        return rat_surface_derivs_at(n, p, U, m, q, V, Pw, u, v, d)

    def eval_normal(self, u, v):
        ''' Evaluate the unit normal vector, Su x Sv, at (u,v). '''
        SKL = self.eval_derivatives(u, v, 1)
        return util.normalize(np.cross(SKL[1,0], SKL[0,1]))

    def eval_curvature(self, u, v):

        ''' Evaluate the mean curvature at (u,v), from the first (E, F,
        G) and second (e, f, g) fundamental forms,

            H = (e * G - 2 * f * F + g * E) / (2 * (E * G - F**2))

        '''

        SKL = self.eval_derivatives(u, v, 2)
        SU, SV = SKL[1,0], SKL[0,1]
        N = util.normalize(np.cross(SU, SV))
        E, F, G = np.dot(SU, SU), np.dot(SU, SV), np.dot(SV, SV)
        e, f, g = [np.dot(SKL[k,l], N) for k, l in ((2, 0), (1, 1), (0, 2))]
        return (e * G - 2 * f * F + g * E) / (2 * (E * G - F**2))

# KNOT INSERTION AND SPLITTING

    def insert(self, u, e, di):

        ''' Insert the knot u e times in direction di (0 or 1).  Raises
        ImproperInput if that would push its multiplicity beyond the
        degree.

        '''

        n, p, U, Pw = self._bundle(di)
        if e > 0:
            u = knot.clean_knot(u)
            k, s = basis.find_span_mult(n, p, U, u)
            if s + e > p:
                raise ImproperInput(u, s, e, di)
            U, Pw = curve.curve_knot_ins(n, p, U, Pw, u, k, s, e)
        return self._unbundle(di, p, U, Pw)

    def split(self, u, di):

        ''' Split the Surface along the isoparametric line(s) u of
        direction di.

        Parameters
        ----------
        u = a parameter value, or a sequence of them; values lying on
            the boundary are ignored
        di = the direction in which u lies (0 or 1)

        Returns
        -------
        Ss = the pieces, in increasing u; a single Surface if there was
             nothing to split at

        '''

        n, p, U, Pw = self._bundle(di)
        return [self._unbundle(di, p, Uj, Qj)
                for Uj, Qj in curve.split_curve(n, p, U, Pw, u)]

    def extract(self, u, di):

        ''' Extract the isoparametric Curve lying at u in direction di;
        e.g. for di = 0, C(v) = S(u,v).  u is clamped to the domain.

        '''

        n, p, U, Pw = self._bundle(di)
        u = util.clamp(knot.clean_knot(u), U[0], U[-1])
        if u == U[-1]:
            Qw = Pw[-1]
        else:
            Qw = curve.split_curve(n, p, U, Pw, u)[-1][1][0]
        return curve.Curve(curve.ControlPolygon(Pw=Qw), (self.p[1-di],),
                           (self.U[1-di],))

    def refine(self, X, di):
        ''' Insert all knots of X (in any order, repeated as many times
        as they should be inserted) in direction di. '''
        n, p, U, Pw = self._bundle(di)
        X = knot.clean_knot(np.sort(np.asarray(X, dtype=float)))
        if X.size != 0:
            U, Pw = curve.refine_knot_vect_curve(n, p, U, Pw, X)
        return self._unbundle(di, p, U, Pw)

    def decompose(self):

        ''' Decompose the Surface into Bezier patches, ordered first by
        u then by v.

        Source: The NURBS Book (2nd Ed.), Pg. 177.

        '''

        return [Sb for Su in self._strips(0) for Sb in Su._strips(1)]

    def _strips(self, di):
        ''' The Surfaces that are Bezier in direction di. '''
        n, p, U, Pw = self._bundle(di)
        nb, Ub, Qw = curve.decompose_curve(n, p, U, Pw)
        return [self._unbundle(di, p, Uj, Qj) for Uj, Qj in zip(Ub, Qw)]

# DEGREE ELEVATION

    def elevate(self, p, di):
        ''' Raise the degree of direction di to p; a no-op if p does not
        exceed it. '''
        n, q, U, Pw = self._bundle(di)
        if p > q:
            U, Pw = curve.degree_elevate_curve(n, q, U, Pw, p - q)
            q = p
        return self._unbundle(di, q, U, Pw)

# MISCELLANEA

    def project(self, xyz, uvi=None):

        ''' Find the parameter values of the point of the Surface
        closest to xyz.

        Parameters
        ----------
        xyz = the point to project
        uvi = a starting guess (u, v); by default, the best point of a
              sampling grid

        Returns
        -------
        u, v = the parameter values of the closest point

        '''

        n, p, U, m, q, V, Pw = self.var()
        return surface_point_projection(n, p, U, m, q, V, Pw,
                                        util.to_xyz(xyz), uvi)

    def closest_point(self, xyz):
        ''' Return the point on the Surface closest to xyz. '''
        return self.eval_point(*self.project(xyz))

    def reverse(self, di):
        ''' Reverse direction di, keeping the domain. '''
        n, p, U, Pw = self._bundle(di)
        U, Pw = curve.reverse_curve_direction(n, p, U, Pw)
        return self._unbundle(di, p, U, Pw)

    def swap(self):
        ''' Swap the u and v directions. '''
        n, p, U, m, q, V, Pw = self.var()
        Pw = np.transpose(Pw, (1, 0, 2))
        return Surface(ControlNet(Pw=Pw), (q,p), (V,U))


# HEAVY LIFTING FUNCTIONS


def surface_derivs_alg1(n, p, U, m, q, V, P, u, v, d):

    ''' Compute all partial derivatives of a B-spline surface up to
    order d, SKL[k,l] being the derivative with respect to u k times and
    v l times, (0 <= k + l <= d).  Orders beyond p (q) are zero, but
    needed by rational surfaces.  P may hold points of any dimension.

    Source: The NURBS Book (2nd Ed.), Pg. 111.

    '''

    SKL = np.zeros((d + 1, d + 1) + P.shape[2:])
    du, dv = min(d, p), min(d, q)
    uspan = basis.find_span(n, p, U, u)
    vspan = basis.find_span(m, q, V, v)
    Nu = basis.ders_basis_funs(uspan, u, p, du, U)
    Nv = basis.ders_basis_funs(vspan, v, q, dv, V)
    block = P[uspan-p:uspan+1,vspan-q:vspan+1]
    SKL[:du+1,:dv+1] = np.einsum('ki,lj,ij...->kl...', Nu, Nv, block)
    k, l = np.indices((d + 1, d + 1))
    SKL[k + l > d] = 0.0
    return SKL


def rat_surface_point(n, p, U, m, q, V, Pw, u, v):

    ''' Compute a point on a rational B-spline surface at fixed u and v
    parameter values.

    Source: The NURBS Book (2nd Ed.), Pg. 134.

    '''

    uspan = basis.find_span(n, p, U, u)
    vspan = basis.find_span(m, q, V, v)
    Nu = basis.basis_funs(uspan, u, p, U)
    Nv = basis.basis_funs(vspan, v, q, V)
    Sw = np.einsum('i,j,ijk->k', Nu, Nv,
                   Pw[uspan-p:uspan+1,vspan-q:vspan+1])
    return Sw[:3] / Sw[-1]


def rat_surface_point_v(n, p, U, m, q, V, Pw, u, v, num):
    ''' Idem rat_surface_point, vectorized in u, v. '''
    u, v = [np.asarray(w, dtype=float) for w in (u, v)]
    uspan = basis.find_span_v(n, p, U, u, num)
    vspan = basis.find_span_v(m, q, V, v, num)
    Nu = basis.basis_funs_v(uspan, u, p, U, num)
    Nv = basis.basis_funs_v(vspan, v, q, V, num)
    rows = uspan - p + np.arange(p + 1)[:,np.newaxis]
    cols = vspan - q + np.arange(q + 1)[:,np.newaxis]
    block = Pw[rows[:,np.newaxis],cols[np.newaxis,:]]
    Sw = np.einsum('in,jn,ijnk->kn', Nu, Nv, block)
    return Sw[:3] / Sw[-1]


def rat_surface_derivs(Aders, wders, d):

    ''' Given the derivatives A^(k,l) and w^(k,l), (0 <= k + l <= d), of
    the homogeneous coordinates at a fixed (u,v), compute S(u,v) and its
    derivatives S^(k,l) (returned in SKL[k,l]) from

        S^(k,l) = (A^(k,l) - sum C(k,i) * C(l,j) * w^(i,j) *
                   S^(k-i,l-j)) / w

    the sum running over all 0 <= i <= k, 0 <= j <= l except i = j = 0.

    Source: The NURBS Book (2nd Ed.), Pg. 137.

    '''

    SKL = np.zeros((d + 1, d + 1, 3))
    for k in range(d + 1):
        for l in range(d - k + 1):
            i, j = [ij.ravel()[1:] for ij in np.indices((k + 1, l + 1))]
            c = comb(k, i) * comb(l, j) * wders[i,j]
            SKL[k,l] = (Aders[k,l] - np.dot(c, SKL[k-i,l-j])) / wders[0,0]
    return SKL


def rat_surface_derivs_at(n, p, U, m, q, V, Pw, u, v, d):
    ''' Compute S(u,v) and its partial derivatives up to order d,
    rational or not. '''
    Swders = surface_derivs_alg1(n, p, U, m, q, V, Pw, u, v, d)
    return rat_surface_derivs(Swders[...,:-1], Swders[...,-1], d)


def surface_point_projection(n, p, U, m, q, V, Pw, Pi, uvi=None,
                             num=config.PROJECTION_SAMPLES,
                             eps1=config.PROJECTION_EPS1,
                             eps2=config.PROJECTION_EPS2,
                             max_iter=config.PROJECTION_MAX_ITER):

    ''' Find the parameter values (u, v) of the point of a surface
    closest to Pi, by Newton iteration on the system f = Su . R = 0, g =
    Sv . R = 0, where R = S(u,v) - Pi.  Convergence is declared once
    either R is shorter than eps1, both cosines |Su . R| / |Su| / |R|
    and |Sv . R| / |Sv| / |R| fall below eps2, or a step moves the point
    by less than eps1.  If not provided, the initial iterate is the
    closest point of a uniform (num x num) grid.  Iterates are clamped
    to the domain.

    Source: The NURBS Book (2nd Ed.), Pg. 232.

    '''

    if uvi is None:
        us, vs = util.construct_flat_grid((U, V), 2 * (num,))
        S = rat_surface_point_v(n, p, U, m, q, V, Pw, us, vs, num**2)
        i = np.argmin(util.distance_v(S, Pi))
        uvi = us[i], vs[i]
    uv = np.array(uvi, dtype=float)
    lo, hi = np.array([U[0], V[0]]), np.array([U[-1], V[-1]])
    for ni in range(max_iter):
        SKL = rat_surface_derivs_at(n, p, U, m, q, V, Pw, uv[0], uv[1], 2)
        R = SKL[0,0] - Pi
        RN = util.norm(R)
        D = np.array([SKL[1,0], SKL[0,1]])
        DN = np.sqrt(np.sum(D**2, axis=1))
        if RN <= eps1 or (DN == 0.0).any():
            return tuple(uv)
        K = np.dot(D, R)
        if (np.abs(K) / DN / RN <= eps2).all():
            return tuple(uv)
        J = np.dot(D, D.T)
        J += [[np.dot(SKL[2,0], R), np.dot(SKL[1,1], R)],
              [np.dot(SKL[1,1], R), np.dot(SKL[0,2], R)]]
        try:
            step = np.linalg.solve(J, - K)
        except np.linalg.LinAlgError:
            raise nurbs.NewtonLikelyDiverged(*uv)
        uvii = np.clip(uv + step, lo, hi)
        if util.norm(np.dot(uvii - uv, D)) <= eps1:
            log.debug('surface projection: converged in %d iterations', ni)
            return tuple(uvii)
        uv = uvii
    raise nurbs.NewtonLikelyDiverged(*uv)


# TOOLBOX


def make_bilinear_surface(P00, P01, P10, P11):

    ''' Construct the bilinear Surface spanned by four corner Points;
    Pij is the corner at (u,v) = (i,j).  U = V = [0, 0, 1, 1].

    Source: The NURBS Book (2nd Ed.), Pg. 333.

    '''

    cnet = ControlNet([[P00, P01], [P10, P11]])
    return Surface(cnet, (1,1))


def make_surface_from_points(P, p, q, w=None):

    ''' Construct a Surface of degrees (p, q) on uniform clamped knot
    vectors from an ((n + 1) x (m + 1) x 3) grid of control point
    coordinates and, optionally, an ((n + 1) x (m + 1)) grid of
    weights.

    '''

    Pw = nurbs.obj_mat_to_4D(P, w)
    return Surface(ControlNet(Pw=Pw), (p,q))


# EXCEPTIONS


class SurfaceException(nurbs.NURBSException):
    pass

class ImproperInput(SurfaceException, ValueError):
    pass
