"""Utilities used throughout :data:`bbindex`: byte sources and binary parsers
(|io|), exceptions, warnings and call coalescing (|services|), and helpers
for command-line scripts (|scriptlib|)
"""
