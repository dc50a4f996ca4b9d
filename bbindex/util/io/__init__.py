"""Byte sources, binary record parsers, and output stream filters"""
