"""
Errors raised by the section-rating engine.
"""


class PointBudgetViolation(AssertionError):
    """
    A recommendation set whose impacts do not add up to the section's
    remaining points reached the store. This is a bug in the caller, since
    every set is supposed to go through seo.allocator first.
    """

    def __init__(self, section_type: str, expected: int, actual: int):
        self.section_type = section_type
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Point budget violated for section '{section_type}': "
            f"impacts sum to {actual}, expected {expected}"
        )
