"""Exceptions, warnings, and call coalescing"""
