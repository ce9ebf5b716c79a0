import numpy as np
import pytest
from numpy.testing import assert_allclose

from nurbskit import curve
from nurbskit import knot
from nurbskit import nurbs
from nurbskit import point
from nurbskit.curve import Curve, ControlPolygon
from nurbskit.interval import Interval
from nurbskit.point import Point


def make_curve(P, p, U=None, w=None):
    Pw = nurbs.obj_mat_to_4D(P, w)
    if U is not None:
        U = (U,)
    return Curve(ControlPolygon(Pw=Pw), (p,), U)


def make_quarter_circle():
    ''' The unit quarter circle from (1,0) to (0,1), C(t) = ((1 - t**2),
    2t) / (1 + t**2). '''
    cpol = ControlPolygon([Point(1, 0), Point(1, 1), Point(0, 1, w=2)])
    return Curve(cpol, (2,))


def make_cubic():
    P = [(0, 0), (1, 2), (2, -1), (3, 1), (4, 0), (5, 2)]
    U = [0, 0, 0, 0, 0.3, 0.6, 1, 1, 1, 1]
    return make_curve(P, 3, U)


US = np.linspace(0.0, 1.0, 23)


# CONSTRUCTION


def test_construction():
    c = make_cubic()
    assert c.p == (3,)
    assert c.cobj.n == (5,)
    assert not c.isrational
    assert make_quarter_circle().isrational
    assert c.domain == (Interval(0.0, 1.0),)
    assert not c.isperiodic


def test_default_knot_vector_is_uniform():
    c = make_curve([(0, 0), (1, 1), (2, 0), (3, 1)], 2)
    assert_allclose(c.U[0], [0, 0, 0, 0.5, 1, 1, 1])


def test_construction_errors():
    P = [(0, 0), (1, 1), (2, 0)]
    with pytest.raises(nurbs.InvalidDegree):
        make_curve(P, 0)
    with pytest.raises(nurbs.TooFewControlPoints):
        make_curve(P, 3)
    with pytest.raises(knot.UnclampedKnotVector):
        make_curve(P, 1, [0, 0.2, 0.5, 1, 1])
    with pytest.raises(knot.NonMatchingKnotVectorLength):
        make_curve(P, 2, [0, 0, 0, 1, 1])
    with pytest.raises(point.NonPositiveWeight):
        make_curve(P, 2, w=[1, -1, 1])


def test_curve_is_immutable():
    c = make_cubic()
    with pytest.raises(ValueError):
        c.U[0][4] = 0.5
    with pytest.raises(ValueError):
        c.cobj.Pw[0,0] = 1.0
    n, p, U, Pw = c.var()
    U[4] = 0.5
    Pw[0,0] = 1.0
    assert c.U[0][4] == 0.3
    assert c.cobj.Pw[0,0] == 0.0


# EVALUATION


def test_eval_point_quarter_circle():
    c = make_quarter_circle()
    assert_allclose(c.eval_point(0.0), [1, 0, 0], atol=1e-12)
    assert_allclose(c.eval_point(1.0), [0, 1, 0], atol=1e-12)
    t = 0.4
    assert_allclose(c.eval_point(t),
                    [(1 - t**2) / (1 + t**2), 2 * t / (1 + t**2), 0])


def test_eval_points_matches_eval_point():
    c = make_cubic()
    C = c.eval_points(US)
    assert C.shape == (3, US.size)
    for i, u in enumerate(US):
        assert_allclose(C[:,i], c.eval_point(u), atol=1e-12)


def test_eval_point_clamps_parameter():
    c = make_cubic()
    assert_allclose(c.eval_point(-1.0), c.eval_point(0.0))
    assert_allclose(c.eval_point(2.0), c.eval_point(1.0))
    assert_allclose(c.eval_points([-1.0, 2.0]),
                    c.eval_points([0.0, 1.0]))


def test_eval_derivatives_quarter_circle():
    c = make_quarter_circle()
    CK = c.eval_derivatives(0.0, 2)
    assert_allclose(CK, [[1, 0, 0], [0, 2, 0], [-4, 0, 0]], atol=1e-12)
    assert_allclose(c.eval_tangent(0.0), [0, 2, 0], atol=1e-12)


@pytest.mark.parametrize('u', [0.0, 0.3, 0.75, 1.0])
def test_eval_curvature_quarter_circle(u):
    assert_allclose(make_quarter_circle().eval_curvature(u), 1.0)


def test_eval_derivatives_of_nonrational_curve():
    ''' Compare against central differences. '''
    c = make_cubic()
    h = 1e-6
    for u in (0.1, 0.45, 0.8):
        CK = c.eval_derivatives(u, 1)
        fd = (c.eval_point(u + h) - c.eval_point(u - h)) / (2 * h)
        assert_allclose(CK[1], fd, atol=1e-6)


# KNOT INSERTION AND REFINEMENT


def test_insert():
    c = make_cubic()
    ci = c.insert(0.5, 2)
    assert ci.cobj.n == (7,)
    assert knot.find_mult_knot(ci.U[0], 0.5) == 2
    assert_allclose(ci.eval_points(US), c.eval_points(US), atol=1e-12)
    assert c.insert(0.5, 0).isequivalent(c)


def test_insert_too_many_times():
    c = make_cubic()
    with pytest.raises(curve.ImproperInput):
        c.insert(0.5, 4)
    with pytest.raises(curve.ImproperInput):
        c.insert(0.3, 3)


def test_refine():
    c = make_quarter_circle()
    cr = c.refine([0.75, 0.25, 0.5, 0.5])
    assert_allclose(cr.U[0], [0, 0, 0, 0.25, 0.5, 0.5, 0.75, 1, 1, 1])
    assert_allclose(cr.eval_points(US), c.eval_points(US), atol=1e-12)


def test_refine_existing_knot():
    c = make_cubic()
    cr = c.refine([0.3, 0.3])
    assert knot.find_mult_knot(cr.U[0], 0.3) == 3
    assert_allclose(cr.eval_points(US), c.eval_points(US), atol=1e-12)


def test_refine_nothing():
    c = make_cubic()
    assert c.refine([]).isequivalent(c)


# DECOMPOSITION


def test_decompose():
    c = make_cubic()
    Cs = c.decompose()
    assert len(Cs) == 3
    bounds = [(0.0, 0.3), (0.3, 0.6), (0.6, 1.0)]
    for cb, (a, b) in zip(Cs, bounds):
        assert cb.cobj.n == (3,)
        assert_allclose(cb.U[0], 4 * [a] + 4 * [b])
        us = np.linspace(a, b, 7)
        assert_allclose(cb.eval_points(us), c.eval_points(us), atol=1e-12)


def test_decompose_normalized():
    c = make_cubic()
    Cs = c.decompose(normalize=True)
    for cb, (a, b) in zip(Cs, [(0.0, 0.3), (0.3, 0.6), (0.6, 1.0)]):
        assert_allclose(cb.U[0], 4 * [0] + 4 * [1])
        assert_allclose(cb.eval_point(0.5), c.eval_point((a + b) / 2),
                        atol=1e-12)


def test_decompose_bezier():
    c = make_quarter_circle()
    Cs = c.decompose()
    assert len(Cs) == 1
    assert Cs[0].isequivalent(c)


# DEGREE ELEVATION AND REDUCTION


@pytest.mark.parametrize('p', [4, 5, 7])
def test_elevate(p):
    c = make_cubic()
    ce = c.elevate(p)
    assert ce.p == (p,)
    t = p - 3
    # Every distinct knot has its multiplicity raised by t
    assert ce.cobj.n == (5 + 3 * t,)
    assert_allclose(ce.eval_points(US), c.eval_points(US), atol=1e-12)


def test_elevate_rational():
    c = make_quarter_circle()
    ce = c.elevate(3)
    assert ce.p == (3,)
    assert_allclose(ce.eval_points(US), c.eval_points(US), atol=1e-12)


def test_elevate_to_lower_degree_does_nothing():
    c = make_cubic()
    assert c.elevate(2).isequivalent(c)
    assert c.elevate(3).isequivalent(c)


@pytest.mark.parametrize('U', [
    [0, 0, 0, 0.5, 1, 1, 1],
    [0, 0, 0, 0.3, 1, 1, 1],
])
def test_elevate_then_reduce(U):
    c = make_curve([(0, 0), (1, 2), (3, 1), (4, 3)], 2, U)
    cr = c.elevate(3).reduce(1e-6)
    assert cr.p == (2,)
    assert_allclose(cr.U[0], c.U[0])
    assert_allclose(cr.cobj.Pw, c.cobj.Pw, atol=1e-10)


def test_reduce_bezier():
    c = make_curve([(0, 0), (1, 2), (2, 4), (3, 6)], 3)
    cr = c.reduce()
    assert cr.p == (2,)
    assert_allclose(cr.eval_points(US), c.eval_points(US), atol=1e-12)


def test_reduce_beyond_tolerance():
    c = make_curve([(0, 0), (1, 2), (2, -2), (3, 0)], 3)
    with pytest.raises(curve.MaximumToleranceReached):
        c.reduce(1e-4)


def test_reduce_linear_curve():
    c = make_curve([(0, 0), (1, 1)], 1)
    with pytest.raises(curve.ImproperInput):
        c.reduce()


# SPLITTING AND SUBCURVES


def test_split():
    c = make_cubic()
    cl, cr = c.split(0.45)
    assert cl.domain[0] == Interval(0.0, 0.45)
    assert cr.domain[0] == Interval(0.45, 1.0)
    assert_allclose(cl.eval_point(0.45), cr.eval_point(0.45), atol=1e-12)
    for u in (0.1, 0.3, 0.45):
        assert_allclose(cl.eval_point(u), c.eval_point(u), atol=1e-12)
    for u in (0.45, 0.6, 0.9):
        assert_allclose(cr.eval_point(u), c.eval_point(u), atol=1e-12)


def test_split_at_existing_knot():
    c = make_cubic()
    cl, cr = c.split(0.3)
    assert_allclose(cl.U[0], [0, 0, 0, 0, 0.3, 0.3, 0.3, 0.3])
    assert cl.cobj.n == (3,)
    assert_allclose(cr.eval_point(0.8), c.eval_point(0.8), atol=1e-12)


@pytest.mark.parametrize('u', [0.0, 1.0])
def test_split_at_end(u):
    c = make_cubic()
    Cs = c.split(u)
    assert len(Cs) == 1
    assert Cs[0].isequivalent(c)


def test_split_at_several_params():
    c = make_cubic()
    Cs = c.split([0.8, 0.3, 0.45, 0.45, 1.0])
    assert [C.domain[0] for C in Cs] == [Interval(0.0, 0.3),
                                         Interval(0.3, 0.45),
                                         Interval(0.45, 0.8),
                                         Interval(0.8, 1.0)]
    for C in Cs:
        assert knot.is_clamped(3, C.U[0])
        us = np.linspace(C.U[0][0], C.U[0][-1], 7)
        assert_allclose(C.eval_points(us), c.eval_points(us), atol=1e-12)


def test_split_at_several_params_matches_successive_splits():
    c = make_quarter_circle()
    c0, c1, c2 = c.split((0.6, 0.25))
    cl, cr = c.split(0.25)
    assert c0.isequivalent(cl)
    cm, cr = cr.split(0.6)
    assert c1.isequivalent(cm)
    assert c2.isequivalent(cr)


def test_subcurve():
    c = make_quarter_circle()
    sc = c.subcurve(Interval(0.2, 0.7))
    assert sc.domain[0] == Interval(0.2, 0.7)
    us = np.linspace(0.2, 0.7, 9)
    assert_allclose(sc.eval_points(us), c.eval_points(us), atol=1e-12)


def test_subcurve_decreasing_interval_reverses():
    c = make_quarter_circle()
    sc = c.subcurve((0.7, 0.2))
    assert_allclose(sc.eval_point(0.2), c.eval_point(0.7), atol=1e-12)
    assert_allclose(sc.eval_point(0.7), c.eval_point(0.2), atol=1e-12)


def test_subcurve_whole_domain():
    c = make_cubic()
    assert c.subcurve((0.0, 1.0)).isequivalent(c)


def test_subcurve_singleton():
    with pytest.raises(curve.ImproperInput):
        make_cubic().subcurve((0.4, 0.4))


# EXTREMA


def test_extrema_quarter_circle():
    assert_allclose(make_quarter_circle().extrema(), [0, 1], atol=1e-10)


def test_extrema_parabola():
    c = make_curve([(0, 0), (1, 2), (2, 0)], 2)
    us = c.extrema()
    assert_allclose(us, [0.5], atol=1e-8)
    assert_allclose(c.eval_point(us[0]), [1, 1, 0], atol=1e-8)


def test_extrema_half_circle():
    cpol = ControlPolygon([Point(0, 1), Point(-1, 1), Point(-1, 0, w=2)])
    c = curve.join_curves([make_quarter_circle(), Curve(cpol, (2,))])
    us = c.extrema()
    assert_allclose(us, [0, 0.5, 1], atol=1e-8)
    assert_allclose(c.eval_point(us[1]), [0, 1, 0], atol=1e-8)


def test_extrema_cubic_are_stationary():
    c = make_cubic()
    us = c.extrema()
    assert us.size > 0
    for u in us:
        assert np.min(np.abs(c.eval_tangent(u)[:2])) < 1e-6


def test_extrema_of_straight_line():
    assert make_curve([(0, 0), (1, 1)], 1).extrema().size == 0


# REVERSAL


def test_reverse():
    c = make_cubic()
    cr = c.reverse()
    assert cr.domain == c.domain
    for u in US:
        assert_allclose(cr.eval_point(u), c.eval_point(1.0 - u), atol=1e-12)
    assert cr.reverse().isequivalent(c)


def test_reverse_rational():
    c = make_quarter_circle()
    cr = c.reverse()
    assert_allclose(cr.eval_point(0.0), [0, 1, 0], atol=1e-12)
    assert_allclose(cr.eval_point(0.3), c.eval_point(0.7), atol=1e-12)


# JOIN


def test_join_curves():
    c0 = make_curve([(0, 0), (1, 0)], 1)
    c1 = make_curve([(1, 0), (2, 1), (3, 0)], 2)
    c = curve.join_curves([c0, c1])
    assert c.p == (2,)
    assert c.domain[0] == Interval(0.0, 1.0)
    assert_allclose(c.eval_point(0.0), [0, 0, 0])
    assert_allclose(c.eval_point(1.0), [3, 0, 0])
    assert_allclose(c.length(), c0.length() + c1.length())


def test_join_quarter_circles():
    c0 = make_quarter_circle()
    cpol = ControlPolygon([Point(0, 1), Point(-1, 1), Point(-1, 0, w=2)])
    c1 = Curve(cpol, (2,))
    c = curve.join_curves([c0, c1])
    assert_allclose(c.U[0], [0, 0, 0, 0.5, 0.5, 1, 1, 1])
    C = c.eval_points(np.linspace(0, 1, 41))
    assert_allclose(np.sqrt(np.sum(C**2, axis=0)), 1.0)
    assert_allclose(c.eval_point(1.0), [-1, 0, 0], atol=1e-12)
    assert_allclose(c.length(), np.pi)


def test_join_curves_not_connected():
    c0 = make_curve([(0, 0), (1, 0)], 1)
    c1 = make_curve([(1, 0), (2, 0)], 1)
    c2 = make_curve([(2, 1), (3, 1)], 1)
    with pytest.raises(curve.CurvesNotConnected) as e:
        curve.join_curves([c0, c1, c2])
    assert e.value.pair == (1, 2)
    assert_allclose(e.value.gap, 1.0)


def test_join_needs_two_curves():
    with pytest.raises(curve.ImproperInput):
        curve.join_curves([make_cubic()])


# PERIODIC CURVES


def make_closed_curve():
    c = make_curve([(0, 0), (1, 0), (1, 1), (0, 1)], 2)
    return c.close()


def test_close():
    c = make_closed_curve()
    assert c.isperiodic
    assert c.isclosed
    assert c.domain[0] == Interval(0.0, 1.0)
    assert_allclose(c.eval_point(0.0), [0.5, 0, 0])
    assert_allclose(c.eval_derivatives(0.0, 1)[1],
                    c.eval_derivatives(1.0, 1)[1])


def test_clamp_periodic_curve():
    c = make_closed_curve()
    cc = c.clamp()
    assert not cc.isperiodic
    assert knot.is_clamped(2, cc.U[0])
    assert cc.domain == c.domain
    assert_allclose(cc.eval_points(US), c.eval_points(US), atol=1e-12)
    assert cc.clamp() is cc


def test_periodic_curve_operations_clamp_first():
    c = make_closed_curve()
    ce = c.elevate(3)
    assert not ce.isperiodic
    assert_allclose(ce.eval_points(US), c.eval_points(US), atol=1e-12)
    cl, cr = c.split(0.5)
    assert_allclose(cl.eval_point(0.2), c.eval_point(0.2), atol=1e-12)
    assert_allclose(cr.eval_point(0.8), c.eval_point(0.8), atol=1e-12)


def test_periodic_curve_closest_point():
    c = make_closed_curve()
    assert_allclose(c.closest_point((0.5, -1.0)), [0.5, 0, 0], atol=1e-10)


def test_open_curve_is_not_closed():
    assert not make_cubic().isclosed
