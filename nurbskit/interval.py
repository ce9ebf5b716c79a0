import numpy as np


__all__ = ['Interval']


class Interval(object):

    ''' An Interval is a closed parametric range [t0, t1].  It may be
    decreasing (t1 < t0), which operations such as Curve.subcurve
    interpret as a reversal of direction.

    '''

    def __init__(self, t0, t1):
        self._t0, self._t1 = float(t0), float(t1)

    def __repr__(self):
        return 'Interval({}, {})'.format(self._t0, self._t1)

    def __eq__(self, other):
        if not isinstance(other, Interval):
            return NotImplemented
        return (self._t0, self._t1) == (other._t0, other._t1)

    def __hash__(self):
        return hash((self._t0, self._t1))

    def __iter__(self):
        return iter((self._t0, self._t1))

    @property
    def t0(self):
        return self._t0

    @property
    def t1(self):
        return self._t1

    @property
    def min(self):
        return min(self._t0, self._t1)

    @property
    def max(self):
        return max(self._t0, self._t1)

    @property
    def mid(self):
        return (self._t0 + self._t1) / 2.0

    @property
    def length(self):
        ''' The signed length, (t1 - t0). '''
        return self._t1 - self._t0

    @property
    def isdecreasing(self):
        return self._t1 < self._t0

    @property
    def isincreasing(self):
        return self._t0 < self._t1

    @property
    def issingleton(self):
        return self._t0 == self._t1

    def param_at(self, s):
        ''' Map the normalized value s in [0, 1] to the Interval. '''
        return self._t0 + s * (self._t1 - self._t0)

    def contains(self, t):
        ''' Is t in [min, max]? '''
        return self.min <= t <= self.max

    def swap(self):
        ''' Return the Interval with its bounds exchanged. '''
        return Interval(self._t1, self._t0)

    def divide(self, num):
        ''' Divide the Interval into num equal parts; return the (num +
        1) bounding values. '''
        if num < 1:
            raise ValueError('num must be at least 1, got {}'.format(num))
        return np.linspace(self._t0, self._t1, num + 1)
