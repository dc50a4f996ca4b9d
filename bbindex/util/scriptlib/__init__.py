"""Tools for writing command-line scripts"""
