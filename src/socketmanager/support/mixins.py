"""
Mixins for the value objects passed around by a socket manager: events, settings and results.
"""


def quote(val):
    return "'%s'" % val if val is not None else "None"


class StringerMixin:
    """ str() gives the class name followed by the attributes in name order. """

    def __str__(self):
        items = ", ".join("'%s': %s" % (key, quote(val)) for key, val in sorted(vars(self).items()))
        return "%s:{%s}" % (type(self).__name__, items)


class CommonEqualityMixin:
    """
    Two objects are equal when the other is an instance of this object's class and their
    attributes are equal. Hashing stays by identity so the objects can still be registered
    in sets and as dict keys while their attributes change.
    """

    def __eq__(self, other):
        return isinstance(other, self.__class__) and vars(self) == vars(other)

    def __ne__(self, other):
        return not self.__eq__(other)

    __hash__ = object.__hash__
