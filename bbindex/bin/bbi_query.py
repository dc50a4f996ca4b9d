#!/usr/bin/env python
"""Fetch records from a `BigWig`_ or `BigBed`_ file that overlap a genomic
region, at a chosen display resolution, and write them as a tab-delimited table.

The resolution, given in bases per pixel, determines which zoom level is read.
At base-pair resolution (the default), the table holds raw records:

    ========================  ==================================================
    **File type**             **Columns**
    ------------------------  --------------------------------------------------
    BigWig                    `chrom`, `start`, `end`, `value`

    BigBed                    `chrom`, `start`, `end`, `rest` (the remaining
                              tab-delimited BED columns, if any)
    ========================  ==================================================

At coarser resolutions, records are zoom level summaries, with columns
`chrom`, `start`, `end`, `valid_count`, `min_val`, `max_val`, `sum_data`,
and `sum_squares`.

With ``--blocks_only``, records are not decoded. Instead, the table lists the
data blocks that the file's index reports as overlapping the region, with
columns `data_offset`, `data_size`, `uncompress_buf_size`, and `is_zoom`.

Coordinates are 0-indexed and half-open. Chromosome names may be given in any
common convention (e.g. `chr1`, `Chr01`, `1`).
"""
import argparse
import inspect
import sys
import warnings
import pandas as pd

from bbindex.readers.bbifile import BBIReader, DEFAULT_CHUNK_SIZE_LIMIT
from bbindex.readers.r_tree import Block
from bbindex.util.io.filters import NameDateWriter
from bbindex.util.io.openers import argsopener, get_short_name
from bbindex.util.scriptlib.help_formatters import format_module_docstring

warnings.simplefilter("once")
printer = NameDateWriter(get_short_name(inspect.stack()[-1][1]))


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
    parser.add_argument("--bases_per_pixel",type=float,default=1.0,metavar="N",
                        help="Display resolution, in bases per pixel. Determines "+
                             "which zoom level is read (Default: 1.0)")
    parser.add_argument("--blocks_only",default=False,action="store_true",
                        help="Report overlapping data blocks instead of decoding records")
    parser.add_argument("--chunk_size_limit",type=int,default=DEFAULT_CHUNK_SIZE_LIMIT,metavar="N",
                        help="Largest read, in bytes, allowed from file (Default: %s)" % DEFAULT_CHUNK_SIZE_LIMIT)
    parser.add_argument("infile",type=str,help="BigWig or BigBed file")
    parser.add_argument("chrom",type=str,help="Chromosome name")
    parser.add_argument("start",type=int,help="Start of region (0-indexed)")
    parser.add_argument("end",type=int,help="End of region (half-open)")
    parser.add_argument("outfile",type=str,help="Output filename")
    args = parser.parse_args(argv)

    if args.end < args.start:
        printer.write("End of region (%s) precedes start (%s). Exiting." % (args.end,args.start))
        sys.exit(1)

    with BBIReader(args.infile,chunk_size_limit=args.chunk_size_limit,printer=printer) as reader:
        if not reader.has_reference(args.chrom):
            printer.write("Chromosome '%s' not found in '%s'. Output will be empty." % (args.chrom,args.infile))

        if args.blocks_only:
            records = reader.query(args.chrom,args.start,args.end,bases_per_pixel=args.bases_per_pixel)
            columns = list(Block._fields)
        else:
            records = reader.fetch(args.chrom,args.start,args.end,bases_per_pixel=args.bases_per_pixel)
            columns = list(records[0]._fields) if records else ["chrom","start","end"]

    printer.write("Found %s %s overlapping %s:%s-%s." % (len(records),
                                                         "blocks" if args.blocks_only else "records",
                                                         args.chrom,
                                                         args.start,
                                                         args.end))

    df = pd.DataFrame([X._asdict() for X in records],columns=columns)
    with argsopener(args.outfile,args,"w") as fout:
        df.to_csv(fout,sep="\t",header=True,index=False,na_rep="nan",float_format="%.8e")
        fout.close()

    printer.write("Done.")

if __name__ == "__main__":
    main()
