import numpy as np
import pytest
from numpy.testing import assert_allclose

from nurbskit import analyze
from nurbskit import curve
from nurbskit import nurbs
from nurbskit.curve import Curve, ControlPolygon
from nurbskit.point import Point


def make_straight_cubic():
    ''' A straight cubic Bezier of length 3 with a nonuniform speed,
    x(t) = 1.5t + 4.5t**2 - 3t**3. '''
    Pw = nurbs.obj_mat_to_4D([(0, 0, 0), (0.5, 0, 0), (2.5, 0, 0),
                              (3, 0, 0)])
    return Curve(ControlPolygon(Pw=Pw), (3,))


def make_quarter_circle():
    cpol = ControlPolygon([Point(1, 0), Point(1, 1), Point(0, 1, w=2)])
    return Curve(cpol, (2,))


def make_spline():
    Pw = nurbs.obj_mat_to_4D([(0, 0), (1, 2), (2, -1), (3, 1), (4, 0)],
                             [1, 2, 1, 0.5, 1])
    return Curve(ControlPolygon(Pw=Pw), (2,), ([0, 0, 0, 0.2, 0.7, 1, 1, 1],))


def x_straight(t):
    return 1.5 * t + 4.5 * t**2 - 3 * t**3


# ARC LENGTH


def test_length_straight_cubic():
    assert_allclose(make_straight_cubic().length(), 3.0)


@pytest.mark.parametrize('u', [0.0, 0.1, 0.5, 0.9, 1.0])
def test_length_at_straight_cubic(u):
    assert_allclose(make_straight_cubic().length_at(u), x_straight(u),
                    atol=1e-12)


def test_length_quarter_circle():
    c = make_quarter_circle()
    assert_allclose(c.length(), np.pi / 2)
    assert_allclose(c.length_at(0.5), 2 * np.arctan(0.5))


def test_length_at_is_monotonic():
    c = make_spline()
    ls = [c.length_at(u) for u in np.linspace(0, 1, 31)]
    assert ls[0] == 0.0
    assert (np.diff(ls) > 0.0).all()
    assert_allclose(ls[-1], c.length())


def test_length_is_additive_over_splits():
    c = make_spline()
    cl, cr = c.split(0.45)
    assert_allclose(cl.length() + cr.length(), c.length())


def test_rat_curve_arc_length_up_to_knot():
    n, p, U, Pw = make_spline().var()
    l = analyze.rat_curve_arc_length(n, p, U, Pw, 0.2)
    cl = make_spline().split(0.2)[0]
    assert_allclose(l, cl.length())


# PARAMETER AT LENGTH


@pytest.mark.parametrize('u', [0.05, 0.3, 0.5, 0.77, 0.99])
def test_param_at_length_straight_cubic(u):
    c = make_straight_cubic()
    assert_allclose(c.param_at_length(x_straight(u)), u, atol=1e-5)


def test_param_at_length_quarter_circle():
    c = make_quarter_circle()
    assert_allclose(c.param_at_length(np.pi / 4), np.sqrt(2) - 1,
                    atol=1e-5)
    assert_allclose(c.eval_point_at_length(np.pi / 4),
                    [np.sqrt(2) / 2, np.sqrt(2) / 2, 0], atol=1e-5)


@pytest.mark.parametrize('u', [0.1, 0.2, 0.35, 0.7, 0.9])
def test_param_at_length_inverts_length_at(u):
    c = make_spline()
    assert_allclose(c.param_at_length(c.length_at(u)), u, atol=1e-5)


def test_param_at_length_ends():
    c = make_spline()
    L = c.length()
    assert c.param_at_length(0.0) == 0.0
    assert c.param_at_length(L) == 1.0
    assert c.param_at_length(L + 1e-9) == 1.0
    assert c.param_at_length(-1e-9) == 0.0


@pytest.mark.parametrize('l', [-0.1, 100.0])
def test_param_at_length_out_of_range(l):
    with pytest.raises(analyze.LengthOutOfRange):
        make_spline().param_at_length(l)


def test_eval_point_at_normalized_length():
    c = make_quarter_circle()
    assert_allclose(c.eval_point_at_normalized_length(0.5),
                    [np.sqrt(2) / 2, np.sqrt(2) / 2, 0], atol=1e-5)
    assert_allclose(c.eval_point_at_normalized_length(0.0), [1, 0, 0])
    assert_allclose(c.eval_point_at_normalized_length(1.0), [0, 1, 0],
                    atol=1e-12)


# CHORD LENGTH


def make_half_circle():
    cpol = ControlPolygon([Point(0, 1), Point(-1, 1), Point(-1, 0, w=2)])
    return curve.join_curves([make_quarter_circle(), Curve(cpol, (2,))])


def test_param_at_chord_length_straight_cubic():
    c = make_straight_cubic()
    u = c.param_at_chord_length(0.0, 1.2)
    assert_allclose(x_straight(u), 1.2, atol=1e-5)
    u0 = c.param_at_length(0.5)
    assert_allclose(x_straight(c.param_at_chord_length(u0, 2.0)), 2.5,
                    atol=1e-5)


def test_param_at_chord_length_quarter_circle():
    c = make_quarter_circle()
    u0 = c.param_at_length(0.3)
    u = c.param_at_chord_length(u0, 2 * np.sin(0.2))
    assert_allclose(c.length_at(u), 0.7, atol=1e-5)
    assert_allclose(np.linalg.norm(c.eval_point(u) - c.eval_point(u0)),
                    2 * np.sin(0.2), atol=1e-8)


def test_param_at_chord_length_out_of_range():
    with pytest.raises(analyze.LengthOutOfRange):
        make_straight_cubic().param_at_chord_length(0.5, 2.0)
    # Long enough an arc, but no chord of the half circle exceeds 2
    with pytest.raises(analyze.LengthOutOfRange):
        make_half_circle().param_at_chord_length(0.0, 2.5)


# CLOSEST POINT


def test_closest_point_quarter_circle():
    c = make_quarter_circle()
    u = c.project((2, 2))
    assert_allclose(u, np.sqrt(2) - 1, atol=1e-10)
    assert_allclose(c.closest_point((2, 2, 0)),
                    [np.sqrt(2) / 2, np.sqrt(2) / 2, 0], atol=1e-10)


def test_closest_point_straight_cubic():
    c = make_straight_cubic()
    assert_allclose(c.project((1.5, 2, 0)), 0.5, atol=1e-10)
    assert_allclose(c.closest_point((1.5, 2, 0)), [1.5, 0, 0], atol=1e-10)


def test_closest_point_beyond_end():
    c = make_straight_cubic()
    assert c.project((5, 1, 0)) == 1.0
    assert_allclose(c.closest_point((5, 1, 0)), [3, 0, 0])


@pytest.mark.parametrize('u', [0.0, 0.15, 0.2, 0.5, 0.83, 1.0])
def test_closest_point_of_curve_point(u):
    c = make_spline()
    C = c.eval_point(u)
    assert_allclose(c.closest_point(C), C, atol=1e-10)


def test_closest_point_is_perpendicular():
    c = make_spline()
    P = np.array([2.0, 3.0, 0.0])
    u = c.project(P)
    C, CP = c.eval_derivatives(u, 1)
    assert_allclose(np.dot(CP, C - P) / np.linalg.norm(CP)
                    / np.linalg.norm(C - P), 0.0, atol=1e-8)
    # No sample does better
    D = c.eval_points(np.linspace(0, 1, 501)) - P[:,np.newaxis]
    assert np.linalg.norm(C - P) <= np.min(np.linalg.norm(D, axis=0)) + 1e-12


def test_closest_point_at_concave_end():
    c = make_quarter_circle()
    assert c.project((-0.5, -0.6, 0)) == 0.0
    assert_allclose(c.closest_point((-0.5, -0.6, 0)), [1, 0, 0],
                    atol=1e-12)


def make_wiggly_cubic():
    Pw = nurbs.obj_mat_to_4D([(0, 0), (1, 2), (2, -1), (3, 1), (4, 0)])
    return Curve(ControlPolygon(Pw=Pw), (3,))


def assert_globally_closest(c, P, atol=1e-4):
    P = np.asarray(P, dtype=float)
    d = np.linalg.norm(c.closest_point(P) - P)
    D = c.eval_points(np.linspace(0, 1, 1001)) - P[:,np.newaxis]
    assert d <= np.min(np.linalg.norm(D, axis=0)) + atol


def test_closest_point_below_wiggly_cubic():
    assert_globally_closest(make_wiggly_cubic(), (3.28, -2.46, 0))


def test_closest_point_random_sweep():
    c = make_wiggly_cubic()
    rs = np.random.RandomState(7)
    for xy in rs.uniform(-3, 6, (200, 2)):
        assert_globally_closest(c, np.append(xy, 0.0))


# DIVISIONS


def test_divide_curve_by_count():
    c = make_straight_cubic()
    us = analyze.divide_curve_by_count(c, 3)
    assert us.size == 4
    assert us[0] == 0.0 and us[-1] == 1.0
    assert_allclose(c.eval_points(us)[0], [0, 1, 2, 3], atol=1e-5)


def test_divide_curve_by_count_equal_lengths():
    c = make_spline()
    us = analyze.divide_curve_by_count(c, 5)
    ls = [c.length_at(u) for u in us]
    assert_allclose(np.diff(ls), c.length() / 5, atol=1e-5)


def test_divide_curve_by_length():
    c = make_straight_cubic()
    us, ls = analyze.divide_curve_by_length(c, 1.0)
    assert_allclose(ls, [0, 1, 2, 3])
    assert_allclose(c.eval_points(us)[0], [0, 1, 2, 3], atol=1e-5)
    us, ls = analyze.divide_curve_by_length(c, 1.4)
    assert_allclose(ls, [0, 1.4, 2.8])


def test_divide_errors():
    c = make_straight_cubic()
    with pytest.raises(analyze.AnalyzeException):
        analyze.divide_curve_by_count(c, 0)
    with pytest.raises(analyze.AnalyzeException):
        analyze.divide_curve_by_length(c, 0.0)
    with pytest.raises(analyze.AnalyzeException):
        analyze.divide_curve_by_chord_length(c, -1.0)


def test_divide_curve_by_length_equal_segments():
    c = make_straight_cubic()
    us, ls = analyze.divide_curve_by_length(c, 1.4, equal=True)
    assert_allclose(ls, [0, 1, 2, 3])
    assert_allclose(x_straight(us), [0, 1, 2, 3], atol=1e-5)
    us, ls = analyze.divide_curve_by_length(c, 1.0, equal=True)
    assert_allclose(ls, [0, 1, 2, 3])


def test_divide_curve_by_chord_length():
    c = make_straight_cubic()
    us = analyze.divide_curve_by_chord_length(c, 1.2)
    assert us[0] == 0.0
    assert_allclose(x_straight(us), [0, 1.2, 2.4], atol=1e-5)


def test_divide_curve_by_chord_length_quarter_circle():
    c = make_quarter_circle()
    chord = 2 * np.sin(0.2)
    us = analyze.divide_curve_by_chord_length(c, chord)
    assert_allclose([c.length_at(u) for u in us], [0, 0.4, 0.8, 1.2],
                    atol=1e-5)
    C = c.eval_points(us)
    assert_allclose(np.linalg.norm(np.diff(C, axis=1), axis=0), chord,
                    atol=1e-8)
