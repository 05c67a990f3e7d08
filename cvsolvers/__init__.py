"""Lambda Twist P3P, eight-point and five-point solvers, and binary descriptor matching."""

__version__ = "0.1.0"
__all__ = ["lambda_twist", "eight_point", "nister_stewenius", "matching"]