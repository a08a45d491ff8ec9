import pytest

from conftest import write_mgf
from denovo_runner.core.models import PartitionPlan
from denovo_runner.services.chunking import MgfChunkingService, partition_ranges
from denovo_runner.services.records import count_records


def _titles(path):
    return [line.strip()[6:] for line in path.read_text().splitlines() if line.startswith("TITLE=")]


def test_partition_ranges_example():
    assert partition_ranges(3, 1, 10) == [(0, 4), (4, 7), (7, 10)]


@pytest.mark.parametrize("total", [0, 1, 2, 7, 10, 31, 100])
@pytest.mark.parametrize("threads", [1, 2, 3, 4, 8])
def test_ranges_cover_records_with_balanced_sizes(total, threads):
    plan = PartitionPlan.for_records(total, threads)
    ranges = partition_ranges(plan.chunk_size, plan.remainder, total)

    assert len(ranges) == plan.n_chunks
    assert len(ranges) <= threads
    position = 0
    for start, end in ranges:
        assert start == position
        assert end > start
        position = end
    assert position == total

    sizes = [end - start for start, end in ranges]
    if sizes:
        assert max(sizes) - min(sizes) <= 1
        if plan.chunk_size:
            assert sum(1 for s in sizes if s == plan.chunk_size + 1) == plan.remainder


def test_inconsistent_partition_raises():
    with pytest.raises(ValueError):
        partition_ranges(3, 0, 10)
    with pytest.raises(ValueError):
        partition_ranges(-1, 0, 10)


def test_plan_description():
    assert PartitionPlan.for_records(10, 3).describe() == "10 spectra, 3-4 spectra per thread"
    assert PartitionPlan.for_records(9, 3).describe() == "9 spectra, 3 spectra per thread"


def test_chunks_written_in_order_with_preamble(spectra_dir, reporter):
    source = write_mgf(spectra_dir / "sample.mgf", 10)
    chunks = MgfChunkingService().chunk(source, 3, 1, 10, reporter=reporter)

    assert [c.path.name for c in chunks] == ["sample_1.mgf", "sample_2.mgf", "sample_3.mgf"]
    assert all(c.exists() for c in chunks)
    assert [_titles(c.path) for c in chunks] == [
        ["spec0", "spec1", "spec2", "spec3"],
        ["spec4", "spec5", "spec6"],
        ["spec7", "spec8", "spec9"],
    ]
    for chunk in chunks:
        assert chunk.path.read_text().startswith("COM=test file\n")
        assert count_records(chunk.path) == chunk.size
    assert reporter.lines == []


def test_chunk_dir_is_used(spectra_dir, tmp_path):
    source = write_mgf(spectra_dir / "sample.mgf", 4)
    chunk_dir = tmp_path / "chunks"

    chunks = MgfChunkingService(chunk_dir=chunk_dir).chunk(source, 2, 0, 4)

    assert [c.path.parent for c in chunks] == [chunk_dir, chunk_dir]
    assert all(c.exists() for c in chunks)


def test_zero_records_gives_no_chunks(spectra_dir):
    source = write_mgf(spectra_dir / "empty.mgf", 0)
    assert MgfChunkingService().chunk(source, 0, 0, 0) == []


def test_write_failure_is_reported_not_raised(spectra_dir, tmp_path, reporter):
    source = write_mgf(spectra_dir / "sample.mgf", 6)
    blocker = tmp_path / "blocker"
    blocker.write_text("not a folder")

    chunks = MgfChunkingService(chunk_dir=blocker).chunk(source, 2, 0, 6, reporter=reporter)

    assert len(chunks) == 3
    assert not any(c.exists() for c in chunks)
    assert any("Could not split sample.mgf" in line for line in reporter.lines)


def test_chunking_stops_when_run_canceled(spectra_dir, reporter):
    source = write_mgf(spectra_dir / "sample.mgf", 6)
    reporter.set_run_canceled()

    chunks = MgfChunkingService().chunk(source, 2, 0, 6, reporter=reporter)

    assert not any(c.exists() for c in chunks)
