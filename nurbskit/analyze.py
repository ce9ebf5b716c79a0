''' Global queries on NURBS curves: arc length, inverse arc length,
point projection, extrema, chord lengths and divisions.

Arc lengths are computed Bezier segment by Bezier segment with a fixed
Gauss-Legendre rule, so that the integrand, |C'(u)|, is smooth over each
integration interval.  All functions take the usual (n, p, U, Pw)
quadruple, except the division functions which take any curve-like
object exposing var() (e.g. a nurbskit.curve.Curve).

'''

import logging

import numpy as np
from scipy.optimize import brentq
from scipy.special import roots_legendre

from . import config
from . import curve
from . import knot
from . import nurbs
from . import util


log = logging.getLogger(__name__)


# ARC LENGTH


def rat_bezier_arc_length(p, U, Pw, u=None,
                          extra=config.GAUSS_LEGENDRE_EXTRA):

    ''' Compute the arc length of a rational Bezier segment from U[0] to
    u (default: the whole segment) with (p + extra) Gauss-Legendre
    points.

    '''

    a = U[0]
    b = U[-1] if u is None else u
    if b <= a:
        return 0.0
    x, wts = roots_legendre(p + extra)
    z = (b - a) / 2.0 * x + (b + a) / 2.0
    s = 0.0
    for zi, wi in zip(z, wts):
        CK = curve.rat_curve_derivs_at(p, p, U, Pw, zi, 1)
        s += wi * util.norm(CK[1])
    return (b - a) / 2.0 * s


def rat_curve_arc_length(n, p, U, Pw, u=None,
                         extra=config.GAUSS_LEGENDRE_EXTRA):

    ''' Compute the arc length of a (clamped) NURBS curve from U[0] to u
    (default: the whole curve).  The curve is first decomposed into
    Bezier segments, whose lengths are summed up.

    '''

    if u is None:
        u = U[-1]
    nb, Ub, Qw = curve.decompose_curve(n, p, U, Pw)
    l = 0.0
    for b in range(nb):
        if Ub[b][0] >= u:
            break
        l += rat_bezier_arc_length(p, Ub[b], Qw[b], min(u, Ub[b][-1]), extra)
    return l


def rat_bezier_param_at_length(p, U, Pw, l, tol=config.MIN_TOLERANCE,
                               max_iter=config.LENGTH_MAX_ITER,
                               extra=config.GAUSS_LEGENDRE_EXTRA):

    ''' Find the parameter u of a rational Bezier segment such that the
    arc length from U[0] to u equals l, (0 <= l <= length).  Newton's
    method is used, safeguarded by bisection: the root is kept bracketed
    and any Newton iterate leaving the bracket is replaced by its
    midpoint.  The arc length is monotonically nondecreasing in u, so
    the bracket always holds the root.

    '''

    lo, hi = U[0], U[-1]
    L = rat_bezier_arc_length(p, U, Pw, None, extra)
    if l <= 0.0:
        return lo
    if l >= L:
        return hi
    ui = lo + (hi - lo) * l / L
    for ni in range(max_iter):
        f = rat_bezier_arc_length(p, U, Pw, ui, extra) - l
        if abs(f) <= tol:
            log.debug('param at length: converged in %d iterations', ni)
            return ui
        if f > 0.0:
            hi = ui
        else:
            lo = ui
        if hi - lo <= config.EPSILON:
            return ui
        speed = util.norm(curve.rat_curve_derivs_at(p, p, U, Pw, ui, 1)[1])
        uii = ui - f / speed if speed > 0.0 else lo
        if not lo < uii < hi:
            uii = (lo + hi) / 2.0
        ui = uii
    raise nurbs.NewtonLikelyDiverged(ui)


def rat_curve_param_at_length(n, p, U, Pw, l, tol=config.MIN_TOLERANCE,
                              max_iter=config.LENGTH_MAX_ITER,
                              extra=config.GAUSS_LEGENDRE_EXTRA):

    ''' Find the parameter u of a (clamped) NURBS curve such that the
    arc length from U[0] to u equals l.  Lengths within tol of either
    end are snapped to it; anything further away raises
    LengthOutOfRange.

    '''

    nb, Ub, Qw = curve.decompose_curve(n, p, U, Pw)
    ls = [rat_bezier_arc_length(p, Ub[b], Qw[b], None, extra)
          for b in range(nb)]
    L = sum(ls)
    if l < - tol or l > L + tol:
        raise LengthOutOfRange(l, L)
    if l <= 0.0:
        return U[0]
    if l >= L:
        return U[-1]
    acc = 0.0
    for b in range(nb):
        if l <= acc + ls[b] or b == nb - 1:
            return rat_bezier_param_at_length(p, Ub[b], Qw[b], l - acc,
                                              tol, max_iter, extra)
        acc += ls[b]


# POINT PROJECTION


def rat_curve_closest_param(n, p, U, Pw, Pi, ui=None, closed=False,
                            num=config.PROJECTION_SAMPLES,
                            eps1=config.PROJECTION_EPS1,
                            eps2=config.PROJECTION_EPS2,
                            max_iter=config.PROJECTION_MAX_ITER):

    ''' Find the parameter value ui for which C(ui) is closest to Pi.
    This is achieved by minimizing, using Newton iteration, the function
    f(u) = |C'(u) * (C(u) - Pi)|.  Two zero tolerances are used to
    indicate convergence: (1) eps1, a measure of Euclidean distance and
    (2) eps2, a zero cosine measure.  If not provided, the initial
    iterate ui is the best of num samples per nonzero knot span.
    Iterates leaving the domain are clamped, or wrapped around if the
    curve is closed.

    Newton's method only heads for a minimum where the second derivative
    of |C(u) - Pi|**2 is positive.  Wherever it is not, or wherever the
    Newton iterate lies further from Pi than the current one, a descent
    step is taken instead: the best of num samples between ui and the
    end of the domain lying downhill (see descend_curve_distance).
    NewtonLikelyDiverged is only raised once max_iter is exhausted.

    Source: The NURBS Book (2nd Ed.), Pg. 230.

    '''

    a, b = knot.knot_domain(p, U)
    if ui is None:
        Ud = np.unique(U[p:n+2])
        us = np.unique(np.hstack([np.linspace(u0, u1, num)
                                  for u0, u1 in zip(Ud[:-1], Ud[1:])]))
        C = curve.rat_curve_point_v(n, p, U, Pw, us, us.size)
        i = np.argmin(util.distance_v(C, Pi))
        ui = us[i]
    for ni in range(max_iter):
        C, CP, CPP = curve.rat_curve_derivs_at(n, p, U, Pw, ui, 2)
        R = C - Pi; RN = util.norm(R)
        CPN = util.norm(CP)
        if RN <= eps1 or CPN == 0.0:
            return ui
        CPR = np.dot(CP, R)
        zero_cosine = abs(CPR) / CPN / RN
        if zero_cosine <= eps2:
            return ui
        den = np.dot(CPP, R) + CPN**2
        uii = None
        if den > 0.0:
            uii = ui - CPR / den
            if closed:
                if uii < a:
                    uii = b - (a - uii)
                elif uii > b:
                    uii = a + (uii - b)
            else:
                uii = util.clamp(uii, a, b)
            if util.norm((uii - ui) * CP) <= eps1:
                log.debug('closest param: converged in %d iterations', ni)
                return uii
            Ci = curve.rat_curve_point(n, p, U, Pw, uii)
            if util.distance(Ci, Pi) > RN:
                uii = None
        if uii is None:
            log.debug('closest param: descent step at u = %g', ui)
            uend = a if CPR > 0.0 else b
            uii = descend_curve_distance(n, p, U, Pw, Pi, ui, uend, RN, num)
        if util.norm((uii - ui) * CP) <= eps1:
            log.debug('closest param: converged in %d iterations', ni)
            return uii
        ui = uii
    raise nurbs.NewtonLikelyDiverged(ui)


def descend_curve_distance(n, p, U, Pw, Pi, ui, uend, d0, num):

    ''' Look for a parameter value between ui and uend at which the
    curve comes closer to Pi than d0 = |C(ui) - Pi|.  num samples are
    taken between both; if none of them does better, the search is
    narrowed down to the first sample interval next to ui, and so on.
    Returns the best sample, or ui itself once the interval has shrunk
    below EPSILON.

    '''

    while abs(uend - ui) > config.EPSILON:
        us = np.linspace(ui, uend, num)[1:]
        D = util.distance_v(curve.rat_curve_point_v(n, p, U, Pw, us, us.size),
                            Pi)
        i = np.argmin(D)
        if D[i] < d0:
            return us[i]
        uend = us[0]
    return ui


# EXTREMA


def rat_curve_extrema(n, p, U, Pw, num=config.EXTREMA_SAMPLES):

    ''' Find the parameter values at which one of the coordinates of a
    (clamped) NURBS curve is locally extreme, i.e. the roots of the
    components of C'(u).  Each Bezier segment is sampled num times;
    samples at which a component vanishes are kept as is, and sign
    changes between consecutive samples are refined with Brent's
    method.  Coordinates that are constant over a segment are skipped.
    Roots closer than MIN_TOLERANCE are merged.

    '''

    nb, Ub, Qw = curve.decompose_curve(n, p, U, Pw)
    roots = []
    for Uj, Qj in zip(Ub, Qw):
        us = np.linspace(Uj[0], Uj[-1], num)
        D = np.array([curve.rat_curve_derivs_at(p, p, Uj, Qj, u, 1)[1]
                      for u in us])
        for k in range(3):
            f = D[:,k]
            scale = np.abs(f).max()
            if scale <= config.EPSILON:
                continue
            roots.extend(us[np.abs(f) <= config.EPSILON * max(1.0, scale)])
            for i in np.nonzero(f[:-1] * f[1:] < 0.0)[0]:
                roots.append(brentq(_derivative_component, us[i], us[i+1],
                                    args=(p, Uj, Qj, k),
                                    xtol=config.EPSILON))
    if not roots:
        return np.zeros(0)
    roots = np.sort(roots)
    return roots[np.hstack((True, np.diff(roots) > config.MIN_TOLERANCE))]


def _derivative_component(u, p, U, Pw, k):
    return curve.rat_curve_derivs_at(p, p, U, Pw, u, 1)[1,k]


# CHORD LENGTH


def rat_curve_param_at_chord_length(n, p, U, Pw, u0, c,
                                    num=config.EXTREMA_SAMPLES):

    ''' Find the first parameter value u past u0 such that |C(u) -
    C(u0)| = c.  Since no chord is longer than its arc, the search
    starts at the point lying at an arc length c past u0; from there
    num samples are taken up to the end of the curve and the first
    interval over which the chord reaches c is refined with Brent's
    method.

    Raises
    ------
    LengthOutOfRange = if the curve ends before the chord reaches c

    '''

    if c <= 0.0:
        raise AnalyzeException('the chord length must be positive', c)
    P0 = curve.rat_curve_point(n, p, U, Pw, u0)
    l0 = rat_curve_arc_length(n, p, U, Pw, u0)
    ul = rat_curve_param_at_length(n, p, U, Pw, l0 + c)
    us = np.linspace(ul, U[-1], num)
    f = util.distance_v(curve.rat_curve_point_v(n, p, U, Pw, us, us.size),
                        P0) - c
    reached = np.nonzero(f >= 0.0)[0]
    if reached.size == 0:
        raise LengthOutOfRange(c, f.max() + c)
    i = reached[0]
    if i == 0:
        return ul
    return brentq(_chord_excess, us[i-1], us[i], args=(n, p, U, Pw, P0, c),
                  xtol=config.EPSILON)


def _chord_excess(u, n, p, U, Pw, P0, c):
    return util.distance(curve.rat_curve_point(n, p, U, Pw, u), P0) - c


# DIVISIONS


def divide_curve_by_length(C, l, equal=False):

    ''' Divide a Curve into segments of arc length l, starting from its
    start point.  The remainder, if any, is left undivided.

    Parameters
    ----------
    C = the Curve to divide
    l = the arc length of each segment
    equal = if True, l is shortened to the largest length dividing the
            Curve into segments of equal lengths, leaving no remainder

    Returns
    -------
    us = the parameter values of the division points
    ls = the corresponding arc lengths

    '''

    if l <= 0.0:
        raise AnalyzeException('the division length must be positive', l)
    n, p, U, Pw = C.clamp().var()
    L = rat_curve_arc_length(n, p, U, Pw)
    if equal:
        l = L / np.ceil(L / l - config.EPSILON)
    ls = np.arange(0.0, L + config.EPSILON, l)
    us = np.array([rat_curve_param_at_length(n, p, U, Pw, li)
                   for li in ls])
    return us, ls


def divide_curve_by_count(C, num):

    ''' Divide a Curve into num segments of equal arc length.

    Parameters
    ----------
    C = the Curve to divide
    num = the number of segments

    Returns
    -------
    us = the (num + 1) parameter values of the division points

    '''

    if num < 1:
        raise AnalyzeException('the number of segments must be >= 1', num)
    n, p, U, Pw = C.clamp().var()
    L = rat_curve_arc_length(n, p, U, Pw)
    us = [rat_curve_param_at_length(n, p, U, Pw, li)
          for li in np.linspace(0.0, L, num + 1)[1:-1]]
    return np.hstack((U[0], us, U[-1]))


def divide_curve_by_chord_length(C, c):

    ''' Divide a Curve into segments whose end points lie a straight
    line distance c apart, starting from its start point.  The last
    segment, shorter than c, is left undivided.

    Parameters
    ----------
    C = the Curve to divide
    c = the chord length of each segment

    Returns
    -------
    us = the parameter values of the division points, us[0] being the
         start of the Curve

    '''

    if c <= 0.0:
        raise AnalyzeException('the chord length must be positive', c)
    n, p, U, Pw = C.clamp().var()
    us = [U[0]]
    while True:
        try:
            us.append(rat_curve_param_at_chord_length(n, p, U, Pw, us[-1], c))
        except LengthOutOfRange:
            break
    log.debug('divided curve into %d chords of length %g', len(us) - 1, c)
    return np.array(us)


# EXCEPTIONS


class AnalyzeException(nurbs.NURBSException):
    pass

class LengthOutOfRange(AnalyzeException, ValueError):
    pass
