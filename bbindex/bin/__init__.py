"""Command-line scripts for inspecting and querying BBI files.

Each script is installed as an executable by setup.py, and may also be run
as a module via ``python -m bbindex.bin.<script_name>``.
"""
