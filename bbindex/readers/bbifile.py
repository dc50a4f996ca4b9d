#!/usr/bin/env python
"""|BBIFile| and |BBIReader|, readers for `BigWig`_ and `BigBed`_ files.

BigWig and BigBed files share a container format, called BBI: a fixed header,
a B+ tree mapping chromosome names to numeric IDs, an R tree index over
base-pair resolution data, and optionally a set of zoom levels, each of which
summarizes the data at a coarser resolution and has its own R tree. Because
every structure is indexed, range queries read only the parts of the file
they need.

|BBIFile| implements queries as coroutines, reading bytes from a byte source
(see :mod:`bbindex.util.io.byte_sources`). One-time loads of shared state
(the file header, the chromosome index, and the header and root node of each
R tree) are coalesced, so that concurrent queries never issue duplicate
reads. |BBIReader| wraps a |BBIFile| in a private event loop, for use from
ordinary, synchronous code.


Examples
--------
Open a file and fetch values overlapping a region at base-pair resolution::

    >>> reader = BBIReader("some_file.bw")
    >>> for record in reader.fetch("chrI",10000,20000):
            pass # do something with each record


At a resolution of 500 bases per pixel, records are summaries from the
coarsest zoom level that keeps enough detail::

    >>> summaries = reader.fetch("chrI",0,200000,bases_per_pixel=500)


Find the raw data blocks that overlap a region, without decoding them::

    >>> blocks = reader.query("chrI",10000,20000)


Run many queries concurrently from a coroutine::

    >>> bbi = BBIFile(FileByteSource("some_file.bw"))
    >>> results = await asyncio.gather(*[bbi.query("chrI",X,X+1000) for X in range(0,100000,1000)])


Further reading / See Also
--------------------------
`Kent2010 <http://dx.doi.org/10.1093/bioinformatics/btq351>`_
    Description of BigBed and BigWig formats. Especially see supplemental data.
"""
import asyncio
import struct
from bbindex.readers.bbi_header import DEFAULT_HEADER_SIZE, TOTAL_SUMMARY_SIZE,\
                                       header_length, parse_header, parse_total_summary
from bbindex.readers.bplus_tree import ChromIndex
from bbindex.readers.common import canonicalize_name
from bbindex.readers.r_tree import IndexView
from bbindex.readers.records import decode_block
from bbindex.util.io.binary import round_up
from bbindex.util.io.byte_sources import FileByteSource
from bbindex.util.io.openers import NullWriter
from bbindex.util.services.coalesce import CoalescedLoad
from bbindex.util.services.exceptions import SizeLimitExceeded, FileFormatWarning,\
                                             warn_onceperfamily
from bbindex.util.unique_fifo import UniqueFIFO

DEFAULT_CHUNK_SIZE_LIMIT = 30000000
"""Largest number of bytes fetched by a single read (30 MB)"""

DEFAULT_INDEX_EXTENT = 4000
"""Extent assumed for the base-pair resolution index when neither zoom levels
nor file size bound it"""

SCALE_CACHE_DEPTH = 16
"""Number of recently requested scales whose selected |IndexView| is remembered.
Views themselves are shared per index, so this only bounds the scale lookup"""


#===============================================================================
# INDEX: helper functions
#===============================================================================

def merge_blocks(blocks,limit):
    """Group blocks that are adjacent in the file, so that each group can be
    fetched by a single read of at most `limit` bytes

    Parameters
    ----------
    blocks : list
        List of |Block|, in the order they should be fetched

    limit : int
        Maximum size of a merged read. A single block larger than `limit`
        forms a group of its own

    Returns
    -------
    list
        List of lists of |Block|
    """
    groups = []
    for block in blocks:
        if groups:
            last  = groups[-1]
            start = last[0].data_offset
            end   = last[-1].data_offset + last[-1].data_size
            if block.data_offset == end and end + block.data_size - start <= limit:
                last.append(block)
                continue

        groups.append([block])

    return groups


#===============================================================================
# INDEX: BBIFile
#===============================================================================

class BBIFile(object):
    """Query a `BigWig`_ or `BigBed`_ file through a byte source.

    All queries are coroutines. The file header is read when the file is
    opened (explicitly via :meth:`open`, or implicitly by the first query);
    the chromosome index, R tree headers and R tree root nodes are read the
    first time they are needed, and exactly once, regardless of how many
    queries are in flight.

    Attributes
    ----------
    source : byte source
        Object providing ``async fetch(offset, length)``

    filename : str
        Name of file, for messages

    file_size : int or None
        Size of file, if known

    chunk_size_limit : int
        Largest number of bytes fetched by a single read. Larger reads raise
        |SizeLimitExceeded| without touching `source`

    header : |FileHeader| or None
        File header, once opened

    total_summary : |TotalSummary| or None
        Total summary block, if the file has one

    block_cache : |UniqueFIFO|
        Recently decoded data blocks, keyed by file offset

    fetch_count : int
        Number of reads issued to `source`

    printer : file-like
        Stream for logging (Default: |NullWriter|)
    """

    def __init__(self,
                 source,
                 file_size=None,
                 chunk_size_limit=DEFAULT_CHUNK_SIZE_LIMIT,
                 cache_depth=5,
                 canonicalize=canonicalize_name,
                 printer=None):
        """Create a |BBIFile|

        Parameters
        ----------
        source : byte source
            Object providing ``async fetch(offset, length)`` and, optionally, `size`

        file_size : int or None, optional
            Size of file. If `None`, taken from `source.size`, if present

        chunk_size_limit : int, optional
            Largest number of bytes fetched by a single read (Default: 30000000)

        cache_depth : int, optional
            Number of previously-decoded data blocks to keep in memory.
            Decrease this number to reduce memory usage. Increase it to speed up
            repeated fetches to nearby genomic regions. (Default: 5)

        canonicalize : callable, optional
            Name-normalization function applied to chromosome names in the
            file and in queries (Default: :func:`canonicalize_name`)

        printer : file-like, optional
            Filehandle or sys.stderr-like for logging (Default: |NullWriter|)
        """
        self.source           = source
        self.filename         = getattr(source,"filename",repr(source))
        self.file_size        = file_size if file_size is not None else getattr(source,"size",None)
        self.chunk_size_limit = chunk_size_limit
        self.canonicalize     = canonicalize
        self.printer          = NullWriter() if printer is None else printer
        self._owns_printer    = printer is None
        self.block_cache      = UniqueFIFO(cache_depth)
        self.fetch_count      = 0

        self.header        = None
        self.total_summary = None

        self._header_load     = CoalescedLoad(self._load_header,name="file header")
        self._chrom_load      = CoalescedLoad(self._load_chrom_index,name="chromosome index")
        self._views_by_scale  = UniqueFIFO(SCALE_CACHE_DEPTH)
        self._views_by_extent = {}

    def __repr__(self):
        if self.header is None:
            return "<%s '%s' unopened>" % (self.__class__.__name__,self.filename)

        return "<%s '%s' type=%s zoom_levels=%s>" % (self.__class__.__name__,
                                                     self.filename,
                                                     self.header.file_type,
                                                     self.header.zoom_level_count)

    @classmethod
    def from_filename(cls,filename,**kwargs):
        """Create a |BBIFile| reading from a file on local disk

        Parameters
        ----------
        filename : str
            Path to file

        kwargs : keyword arguments
            Passed to :meth:`__init__`

        Returns
        -------
        |BBIFile|
        """
        return cls(FileByteSource(filename),**kwargs)

    def close(self):
        """Close byte source, and the default |NullWriter| if one was created"""
        if hasattr(self.source,"close"):
            self.source.close()
        if self._owns_printer:
            self.printer.close()

    async def read(self,offset,length):
        """Fetch `length` bytes at `offset` from the byte source, enforcing
        the chunk size limit

        Parameters
        ----------
        offset : int

        length : int

        Returns
        -------
        bytes

        Raises
        ------
        |SizeLimitExceeded|
            If `length` exceeds `self.chunk_size_limit`. No read is issued
        """
        if length > self.chunk_size_limit:
            raise SizeLimitExceeded(offset,length,self.chunk_size_limit)

        self.fetch_count += 1
        return await self.source.fetch(offset,length)

    # opening ------------------------------------------------------------------

    async def open(self):
        """Read and parse the file header, if not already done

        Returns
        -------
        |BBIFile|
            self

        Raises
        ------
        |FormatError|
            If the file is not a BigWig or BigBed file
        """
        await self._header_load.get()
        return self

    async def _load_header(self):
        length = DEFAULT_HEADER_SIZE if self.file_size is None else min(DEFAULT_HEADER_SIZE,self.file_size)
        data = await self.read(0,length)
        if len(data) >= 8:
            needed = header_length(data,filename=self.filename)
            if needed > len(data) and (self.file_size is None or needed <= self.file_size):
                data += await self.read(len(data),needed - len(data))

        header = parse_header(data,filename=self.filename)
        if header.total_summary_offset > 0:
            summary_end = header.total_summary_offset + TOTAL_SUMMARY_SIZE
            if summary_end <= len(data):
                summary_data = data[header.total_summary_offset:summary_end]
            else:
                summary_data = await self.read(header.total_summary_offset,TOTAL_SUMMARY_SIZE)
            self.total_summary = parse_total_summary(summary_data,header.byte_order)
        else:
            warn_onceperfamily("BBI file '%s' has no total summary data." % self.filename,
                               pattern=r"BBI file .* has no total summary data",
                               category=FileFormatWarning)

        self.header = header
        self.printer.write("Opened %s file '%s' (version %s, %s zoom levels)." % (header.file_type,
                                                                                self.filename,
                                                                                header.version,
                                                                                header.zoom_level_count))
        return header

    def _require_header(self):
        if self.header is None:
            raise RuntimeError("BBIFile '%s' has not been opened. Await open() first." % self.filename)
        return self.header

    # chromosome index ---------------------------------------------------------

    async def get_chrom_index(self):
        """Fetch and parse the chromosome B+ tree, once

        Returns
        -------
        |ChromIndex|
        """
        return await self._chrom_load.get()

    async def _load_chrom_index(self):
        header = await self._header_load.get()
        end = round_up(header.unzoomed_data_offset,4)
        if self.file_size is not None:
            end = min(end,self.file_size)

        data = await self.read(header.chrom_tree_offset,end - header.chrom_tree_offset)
        chrom_index = ChromIndex(data,
                                 header.chrom_tree_offset,
                                 byte_order=header.byte_order,
                                 canonicalize=self.canonicalize,
                                 filename=self.filename)
        self.printer.write("Read %s chromosomes from '%s'." % (chrom_index.num_chroms,self.filename))
        return chrom_index

    async def get_chroms(self):
        """Return an ordered dictionary mapping chromosome names, as stored
        in the file, to their lengths"""
        chrom_index = await self.get_chrom_index()
        return chrom_index.chrom_sizes

    async def has_reference(self,reference_name):
        """Return `True` if the file contains a chromosome whose canonical
        name matches that of `reference_name`"""
        chrom_index = await self.get_chrom_index()
        return reference_name in chrom_index

    # zoom level selection -----------------------------------------------------

    def get_view(self,scale=1.0):
        """Return the |IndexView| best suited to a display resolution

        Zoom levels are scanned from coarsest to finest, and the first level whose
        reduction level is at most twice the requested bases per pixel is used.
        If no level qualifies, the base-pair resolution index is used.
        The selected view is remembered for the last :data:`SCALE_CACHE_DEPTH` scales
        requested.

        Parameters
        ----------
        scale : float, optional
            Pixels per base; the reciprocal of bases per pixel (Default: 1.0)

        Returns
        -------
        |IndexView|
        """
        try:
            return self._views_by_scale[scale]
        except KeyError:
            pass

        if scale <= 0:
            raise ValueError("Scale must be positive. Got %s." % scale)

        view = self._select_view(1.0 / scale)
        self._views_by_scale[scale] = view
        return view

    def _select_view(self,bases_per_pixel):
        header = self._require_header()
        zoom_levels = header.zoom_levels

        # without a file size, the last zoom level's index cannot be bounded
        max_level = len(zoom_levels) - 1
        if self.file_size is None:
            max_level -= 1

        for i in range(max_level,-1,-1):
            zoom = zoom_levels[i]
            if zoom.reduction_level <= 2*bases_per_pixel:
                if i < len(zoom_levels) - 1:
                    extent = zoom_levels[i+1].data_offset - zoom.index_offset
                else:
                    extent = self.file_size - 4 - zoom.index_offset

                return self._get_index_view(zoom.index_offset,extent,True)

        return self.get_unzoomed_view()

    def get_unzoomed_view(self):
        """Return the |IndexView| of base-pair resolution data

        Returns
        -------
        |IndexView|
        """
        header = self._require_header()
        if header.zoom_levels:
            extent = header.zoom_levels[0].data_offset - header.unzoomed_index_offset
        elif self.file_size is not None:
            extent = self.file_size - header.unzoomed_index_offset
        else:
            extent = DEFAULT_INDEX_EXTENT

        return self._get_index_view(header.unzoomed_index_offset,extent,False)

    def _get_index_view(self,index_offset,extent,is_zoom):
        key = (index_offset,extent)
        try:
            return self._views_by_extent[key]
        except KeyError:
            view = IndexView(self.read,
                             index_offset,
                             extent,
                             byte_order=self.header.byte_order,
                             is_zoom=is_zoom,
                             uncompress_buf_size=self.header.uncompress_buf_size,
                             filename=self.filename)
            self._views_by_extent[key] = view
            return view

    # queries ------------------------------------------------------------------

    async def query(self,reference_name,start,end,bases_per_pixel=1.0,scale=None):
        """Find data blocks overlapping a genomic region at a given resolution

        Parameters
        ----------
        reference_name : str
            Chromosome name, in any naming convention understood by `self.canonicalize`

        start : int
            Start of region, 0-indexed

        end : int
            End of region, half-open

        bases_per_pixel : float, optional
            Display resolution (Default: 1.0, base-pair resolution)

        scale : float or None, optional
            Pixels per base. If given, overrides `bases_per_pixel`

        Returns
        -------
        list
            List of |Block|, in file order. Empty if the chromosome is not
            in the file, or no data overlaps the region
        """
        await self.open()
        chrom_index = await self.get_chrom_index()
        chrom = chrom_index.lookup(reference_name)
        if chrom is None:
            return []

        if scale is None:
            if bases_per_pixel <= 0:
                raise ValueError("Bases per pixel must be positive. Got %s." % bases_per_pixel)
            scale = 1.0 / bases_per_pixel

        view = self.get_view(scale)
        return await view.find_blocks(chrom.id,start,end)

    async def fetch_features(self,reference_name,start,end,bases_per_pixel=1.0,scale=None):
        """Fetch and decode records overlapping a genomic region at a given resolution

        Parameters are as for :meth:`query`

        Returns
        -------
        list
            List of |WigRecord| (BigWig files at base-pair resolution),
            |BedRecord| (BigBed files at base-pair resolution), or
            |SummaryRecord| (zoom levels), overlapping the region,
            in file order
        """
        blocks = await self.query(reference_name,start,end,bases_per_pixel=bases_per_pixel,scale=scale)
        if not blocks:
            return []

        chrom_index = await self.get_chrom_index()
        chrom_name  = chrom_index.lookup(reference_name).name
        decoded = { X.data_offset : self.block_cache[X.data_offset] \
                    for X in blocks if X.data_offset in self.block_cache }

        missing = [X for X in blocks if X.data_offset not in decoded]
        for group in merge_blocks(missing,self.chunk_size_limit):
            group_start = group[0].data_offset
            group_end   = group[-1].data_offset + group[-1].data_size
            data = await self.read(group_start,group_end - group_start)
            for block in group:
                raw = data[block.data_offset - group_start:block.data_offset - group_start + block.data_size]
                records = self._decode(raw,block,chrom_index)
                decoded[block.data_offset] = records
                self.block_cache[block.data_offset] = records

        ltmp = []
        for block in blocks:
            ltmp.extend(X for X in decoded[block.data_offset] \
                        if X.chrom == chrom_name and X.start < end and X.end > start)

        return ltmp

    def _decode(self,raw,block,chrom_index):
        chrom_names = { K : V.name for K, V in chrom_index.by_id.items() }
        return decode_block(raw,
                            block,
                            self.header.file_type,
                            self.header.byte_order,
                            chrom_names,
                            filename=self.filename)

    # file metadata ------------------------------------------------------------

    async def get_global_stats(self):
        """Return summary statistics over the whole file

        Returns
        -------
        |TotalSummary| or None
            `None` if the file has no total summary block
        """
        await self.open()
        return self.total_summary

    async def get_autosql(self):
        """Fetch the `autoSql`_ declaration of a BigBed file's fields

        Returns
        -------
        str
            autoSql declaration, or empty string if none is present
        """
        header = await self._header_load.get()
        if header.autosql_offset == 0:
            return ""

        end = header.total_summary_offset
        if end <= header.autosql_offset:
            end = header.chrom_tree_offset

        data = await self.read(header.autosql_offset,end - header.autosql_offset)
        return data.split(b"\x00",1)[0].decode("ascii")

    async def count_records(self):
        """Return the data count stored at the start of the data section:
        the number of features in a BigBed file, or of sections in a BigWig file

        Returns
        -------
        int
        """
        header = await self._header_load.get()
        data = await self.read(header.unzoomed_data_offset,8)
        return struct.unpack(header.byte_order+"Q",data)[0]


#===============================================================================
# INDEX: BBIReader
#===============================================================================

class BBIReader(object):
    """Synchronous reader for `BigWig`_ and `BigBed`_ files.

    Runs the coroutines of a |BBIFile| on a private event loop. Do not use
    from inside a running event loop; use |BBIFile| directly there.

    Attributes
    ----------
    bbifile : |BBIFile|
        Underlying asynchronous reader

    header : |FileHeader|
        File header

    chrom_index : |ChromIndex|
        Chromosome index

    chroms : OrderedDict
        Dictionary mapping chromosome names to lengths
    """

    def __init__(self,filename,**kwargs):
        """Open a BBI file

        Parameters
        ----------
        filename : str or byte source
            Path to file, or an object providing ``async fetch(offset, length)``

        kwargs : keyword arguments
            Passed to |BBIFile|

        Raises
        ------
        IOError
            If the file cannot be opened

        |FormatError|
            If the file header or chromosome index is malformed
        """
        source = FileByteSource(filename) if isinstance(filename,str) else filename
        self.bbifile = BBIFile(source,**kwargs)
        self._loop = asyncio.new_event_loop()
        try:
            self._run(self.bbifile.open())
            self.chrom_index = self._run(self.bbifile.get_chrom_index())
        except Exception:
            self.close()
            raise

        self.header = self.bbifile.header

    def _run(self,coro):
        return self._loop.run_until_complete(coro)

    def __str__(self):
        return "<%s type=%s chroms=%s>" % (self.__class__.__name__,self.file_type,self.num_chroms)

    def __repr__(self):
        return str(self)

    def __enter__(self):
        return self

    def __exit__(self,exc_type,exc_value,traceback):
        self.close()

    def close(self):
        """Close file and event loop"""
        self.bbifile.close()
        if not self._loop.is_closed():
            self._loop.close()

    @property
    def file_type(self):
        """`'bigwig'` or `'bigbed'`"""
        return self.header.file_type

    @property
    def zoom_levels(self):
        """Tuple of |ZoomLevel|, in file order"""
        return self.header.zoom_levels

    @property
    def num_chroms(self):
        return self.chrom_index.num_chroms

    @property
    def chroms(self):
        return self.chrom_index.chrom_sizes

    @property
    def summary(self):
        """|TotalSummary|, or `None` if the file has none"""
        return self.bbifile.total_summary

    def has_reference(self,reference_name):
        return reference_name in self.chrom_index

    def query(self,reference_name,start,end,bases_per_pixel=1.0,scale=None):
        """Find data blocks overlapping a region. See :meth:`BBIFile.query`"""
        return self._run(self.bbifile.query(reference_name,start,end,bases_per_pixel=bases_per_pixel,scale=scale))

    def fetch(self,reference_name,start,end,bases_per_pixel=1.0,scale=None):
        """Fetch records overlapping a region. See :meth:`BBIFile.fetch_features`"""
        return self._run(self.bbifile.fetch_features(reference_name,start,end,
                                                     bases_per_pixel=bases_per_pixel,scale=scale))

    def __getitem__(self,roi):
        """Fetch records overlapping a region of interest at base-pair resolution

        Parameters
        ----------
        roi : tuple
            *(chromosome name, start, end)*

        Returns
        -------
        list
        """
        chrom, start, end = roi
        return self.fetch(chrom,start,end)

    def get_autosql(self):
        return self._run(self.bbifile.get_autosql())

    def count_records(self):
        return self._run(self.bbifile.count_records())
