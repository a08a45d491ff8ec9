"""Service implementations for processes, output streams, chunking and merging."""

from .chunking import MgfChunkingService, partition_ranges
from .merging import FileMergingService, delete_files
from .output import FileSink, NullSink, OutputConsumer, make_sink
from .process import ProcessRunner
from .records import RecordIndex, count_records

__all__ = [
    "MgfChunkingService",
    "partition_ranges",
    "FileMergingService",
    "delete_files",
    "FileSink",
    "NullSink",
    "OutputConsumer",
    "make_sink",
    "ProcessRunner",
    "RecordIndex",
    "count_records",
]
