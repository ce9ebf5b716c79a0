import numpy as np


__all__ = ['Point']


class Point(object):

    ''' A Point is defined in 4D homogeneous space.  Its purpose is
    twofold: to represent either a control Point, where then the last
    coordinate `w` may or may not be equal to one (but must be greater
    than zero), or more simply a generic 3D Point in Euclidean space, in
    which case it is customary to set `w` to one (default).

    Points are values: their coordinates cannot be modified once
    created.

    '''

    def __init__(self, x=0.0, y=0.0, z=0.0, w=1.0):

        ''' Initialize the Point with zero or more of the four
        coordinates.  Defaults to the global origin.  Note that the x, y
        and z coordinates are automatically multiplied by the weight, so
        the formers need to be defined in 3D Euclidean space, which is
        more intuitive.

        '''

        if not w > 0.0:
            raise NonPositiveWeight(w)
        xyzw = np.array([x * w, y * w, z * w, w], dtype=float)
        xyzw.flags.writeable = False
        self._xyzw = xyzw

    def __repr__(self):
        return 'Point({}, {}, {}, w={})'.format(*self.xyzw)

    def __eq__(self, other):
        if not isinstance(other, Point):
            return NotImplemented
        return np.array_equal(self._xyzw, other._xyzw)

    def __hash__(self):
        return hash(tuple(self._xyzw))

    @property
    def xyzw(self):
        ''' Get the xyzw coordinates.  The x, y and z coordinates are
        automatically divided by w. '''
        x, y, z, w = self._xyzw
        return np.array([x / w, y / w, z / w, w])

    @property
    def xyz(self):
        ''' Get the xyz coordinates only. '''
        return self.xyzw[:3]

    @property
    def w(self):
        ''' Get the weight. '''
        return self._xyzw[-1]

    @property
    def homogeneous(self):
        ''' Get a copy of the weighted coordinates, (w*x, w*y, w*z, w).
        '''
        return self._xyzw.copy()

    def copy(self):
        ''' Self copy. '''
        return self.__class__(*self.xyzw)


def points_to_obj_mat(points):
    ''' Return a new object matrix given a list (Curve) or a list of list
    (Surface) of Points. '''
    s = np.asarray(points, dtype='object').shape
    Pw = np.zeros(list(s) + [4])
    for i, point in np.ndenumerate(np.asarray(points, dtype='object')):
        Pw[i] = point._xyzw
    return Pw

def obj_mat_to_points(Pw):
    ''' Idem points_to_obj_mat, vice versa. '''
    Pw = np.asarray(Pw, dtype=float)
    s = Pw.shape[:-1]
    points = np.empty(s, dtype='object')
    for i in np.ndindex(s):
        x, y, z, w = Pw[i]
        points[i] = Point(x / w, y / w, z / w, w)
    return points


# EXCEPTIONS


class PointException(Exception):
    pass

class NonPositiveWeight(PointException, ValueError):
    pass
