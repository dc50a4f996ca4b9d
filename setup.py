#!/usr/bin/env python
"""Setup script for bbindex. This is boilerplate, except that command-line
scripts in `bbindex/bin` are detected automatically and registered as
console entry points.
"""
import os
from setuptools import setup, find_packages

bbindex_version = "0.1.0"


#===============================================================================
# Package metadata
#===============================================================================

with open("README.rst") as f:
    long_description = f.read()

install_requires = [
    "numpy>=1.9.4",
    "pandas>=0.17.0",
    "termcolor",
]

tests_require = [
    "pytest>=6.0",
]


def get_scripts():
    """Detect command-line scripts automatically

    Returns
    -------
    list
        list of strings describing command-line scripts
    """
    binscripts = [
        X.replace(".py", "") for X in filter(
            lambda x: x.endswith(".py") and  "__init__" not in x,
            os.listdir(os.path.join("bbindex",  "bin")),
        )
    ]
    return ["%s = bbindex.bin.%s:main" % (X, X) for X in binscripts]


#===============================================================================
# Program body
#===============================================================================

setup(

    name             = "bbindex",
    version          = bbindex_version,
    long_description =  long_description,
    long_description_content_type = "text/x-rst",

    description      = "Asynchronous, index-driven readers for BigWig & BigBed files",
    license          = "BSD 3-Clause",
    keywords         = "bigwig bigbed bbi genomics biology index",
    platforms        = "OS Independent",

    classifiers      = [
         'Development Status :: 3 - Alpha',
         'Programming Language :: Python :: 3',

         'Topic :: Scientific/Engineering :: Bio-Informatics',
         'Topic :: Software Development :: Libraries',

         'Intended Audience :: Science/Research',
         'Intended Audience :: Developers',

         'License :: OSI Approved :: BSD License',
         'Operating System :: POSIX',
         'Natural Language :: English',
    ],

    zip_safe = False,
    packages = find_packages(),
    python_requires = ">=3.7",

    entry_points = {
        "console_scripts" : get_scripts()
    },

    install_requires = install_requires,
    extras_require   = { "test" : tests_require },

) # yapf: disable
