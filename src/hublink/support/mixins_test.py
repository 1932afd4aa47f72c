import unittest

from hamcrest import assert_that, is_, equal_to, is_not

from hublink.support.mixins import CommonEqualityMixin, StringerMixin, quote


class Point(CommonEqualityMixin, StringerMixin):
    def __init__(self, x, y):
        self.x = x
        self.y = y
        self._cache = None


class OtherPoint(Point):
    pass


class MixinsTest(unittest.TestCase):

    def test_quote(self):
        assert_that(quote(None), is_("None"))
        assert_that(quote(3), is_("'3'"))

    def test_equal_values(self):
        assert_that(Point(1, 2), is_(equal_to(Point(1, 2))))
        assert_that(Point(1, 2) != Point(1, 2), is_(False))

    def test_different_values(self):
        assert_that(Point(1, 2), is_not(equal_to(Point(2, 1))))

    def test_different_types_not_equal(self):
        assert_that(Point(1, 2), is_not(equal_to(OtherPoint(1, 2))))

    def test_equal_values_hash_equal(self):
        assert_that(hash(Point(1, 2)), is_(hash(Point(1, 2))))

    def test_str_omits_private(self):
        assert_that(str(Point(1, None)), is_("Point:{'x': '1', 'y': None}"))
