from . import config
from . import util
from . import interval
from . import knot
from . import basis
from . import point
from . import nurbs
from . import curve
from . import analyze
from . import surface

from .interval import Interval
from .point import Point
from .curve import Curve, ControlPolygon
from .surface import Surface, ControlNet


tools = (curve.join_curves,

         surface.make_bilinear_surface,
         surface.make_surface_from_points,

         analyze.divide_curve_by_count,
         analyze.divide_curve_by_length,
         analyze.divide_curve_by_chord_length)

class _VirtualModule(object):
    def __init__(self, tools):
        for tool in tools:
            setattr(self, tool.__name__, tool)
tb = _VirtualModule(tools) # toolbox
