"""
Small building blocks used throughout the package: event sources, retry strategies, a background loop
and mixins for string conversion and equality.
"""
