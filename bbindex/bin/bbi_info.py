#!/usr/bin/env python
"""Print a description of a `BigWig`_ or `BigBed`_ file: its header fields,
zoom levels, chromosomes, and total summary statistics.

Output is written to standard output in four parts:

    ========================  ==================================================
    **Part**                  **Contents**
    ------------------------  --------------------------------------------------
    header                    File type, byte order, version, and the offsets
                              of the file's major structures

    zoom levels               Reduction level, data offset, and index offset
                              of each zoom level

    chromosomes               Name, numeric ID, and length of each chromosome

    summary                   Bases covered, minimum, maximum, mean, and
                              standard deviation of all data, if the file
                              holds a total summary block
    ========================  ==================================================

BigBed files additionally report their record count and `autoSql`_ declaration.
"""
import argparse
import inspect
import sys
import warnings
import pandas as pd

from bbindex.readers.bbifile import BBIReader
from bbindex.util.io.filters import NameDateWriter
from bbindex.util.io.openers import get_short_name
from bbindex.util.scriptlib.help_formatters import format_module_docstring

warnings.simplefilter("once")
printer = NameDateWriter(get_short_name(inspect.stack()[-1][1]))

_HEADER_FIELDS = ["file_type",
                  "byte_order",
                  "version",
                  "zoom_level_count",
                  "chrom_tree_offset",
                  "unzoomed_data_offset",
                  "unzoomed_index_offset",
                  "field_count",
                  "defined_field_count",
                  "autosql_offset",
                  "total_summary_offset",
                  "uncompress_buf_size"]


def describe(reader,stream=None):
    """Write a description of an open BBI file to `stream`

    Parameters
    ----------
    reader : |BBIReader|
        Open file

    stream : file-like, optional
        Stream to write to (Default: :obj:`sys.stdout`)
    """
    stream = sys.stdout if stream is None else stream
    header = reader.header
    stream.write("# header\n")
    for field in _HEADER_FIELDS:
        stream.write("%-24s%s\n" % (field,getattr(header,field)))

    stream.write("\n# zoom levels\n")
    zooms = pd.DataFrame([X._asdict() for X in header.zoom_levels],
                         columns=["reduction_level","data_offset","index_offset"])
    stream.write(zooms.to_string(index=False) + "\n")

    stream.write("\n# chromosomes\n")
    chroms = pd.DataFrame([(X.name,X.id,X.length) for X in reader.chrom_index.by_id.values()],
                          columns=["name","id","length"])
    stream.write(chroms.to_string(index=False) + "\n")

    stream.write("\n# summary\n")
    if reader.summary is None:
        stream.write("none\n")
    else:
        for k in ("bases_covered","min_val","max_val","mean","std"):
            stream.write("%-24s%s\n" % (k,getattr(reader.summary,k)))

    if reader.file_type == "bigbed":
        stream.write("\n# records\n%s\n" % reader.count_records())
        autosql = reader.get_autosql()
        if autosql:
            stream.write("\n# autoSql\n%s\n" % autosql.strip())

def main(argv=sys.argv[1:]):
    """Command-line program

    Parameters
    ----------
    argv : list, optional
        A list of command-line arguments, which will be processed
        as if the script were called from the command line if
        :func:`main` is called directly.

        Default: `sys.argv[1:]`. The command-line arguments, if the script is
        invoked from the command line
    """
    parser = argparse.ArgumentParser(description=format_module_docstring(__doc__),
                                     formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("infile",type=str,help="BigWig or BigBed file")
    args = parser.parse_args(argv)

    printer.write("Opening %s ..." % args.infile)
    with BBIReader(args.infile,printer=printer) as reader:
        describe(reader)

    printer.write("Done.")

if __name__ == "__main__":
    main()
