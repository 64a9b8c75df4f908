"""Tests for IncrementalResultWriter."""

from pathlib import Path

import numpy as np
import pytest

from igwas.io.output import HEADER, IncrementalResultWriter, format_result_lines
from igwas.stats.running import FinalizedChunk

pytestmark = pytest.mark.tier0


def make_chunk(variants: list[str], projection: str = "P") -> FinalizedChunk:
    n = len(variants)
    return FinalizedChunk(
        projection_ids=np.array([projection] * n, dtype=object),
        variant_ids=np.array(variants, dtype=object),
        beta=np.full(n, 0.1),
        se=np.full(n, 0.02),
        t_stat=np.full(n, 5.0),
        neg_log10_p=np.full(n, 6.25),
        sample_size=np.arange(100, 100 + n),
    )


def test_format_result_lines():
    lines = format_result_lines(make_chunk(["rs1"]))
    assert lines == [
        "P\trs1\t1.000000e-01\t2.000000e-02\t5.000000e+00\t6.250000e+00\t100"
    ]


def test_format_non_finite():
    chunk = make_chunk(["rs1"])
    chunk.se[:] = np.nan
    chunk.neg_log10_p[:] = np.inf

    fields = format_result_lines(chunk)[0].split("\t")

    assert fields[3] == "nan"
    assert fields[5] == "inf"


class TestIncrementalResultWriter:
    def test_header_written_once(self, tmp_path: Path):
        path = tmp_path / "out" / "r.igwas.txt"
        with IncrementalResultWriter(path) as writer:
            writer.write_chunk(make_chunk(["rs1", "rs2"]))
            writer.write_chunk(make_chunk(["rs3"]))

        lines = path.read_text().splitlines()
        assert lines[0] == HEADER
        assert lines.count(HEADER) == 1
        assert len(lines) == 4
        assert writer.count == 3

    def test_no_chunks_leaves_empty_file(self, tmp_path: Path):
        path = tmp_path / "r.txt"
        with IncrementalResultWriter(path):
            pass
        assert path.read_text() == ""

    def test_truncates_existing_file(self, tmp_path: Path):
        path = tmp_path / "r.txt"
        path.write_text("stale\n")
        with IncrementalResultWriter(path) as writer:
            writer.write_chunk(make_chunk(["rs1"]))
        assert "stale" not in path.read_text()

    def test_rows_flushed_before_failure(self, tmp_path: Path):
        path = tmp_path / "r.txt"
        with pytest.raises(RuntimeError, match="boom"):
            with IncrementalResultWriter(path) as writer:
                writer.write_chunk(make_chunk(["rs1"]))
                raise RuntimeError("boom")
        assert len(path.read_text().splitlines()) == 2

    def test_requires_context_manager(self, tmp_path: Path):
        writer = IncrementalResultWriter(tmp_path / "r.txt")
        with pytest.raises(RuntimeError, match="context manager"):
            writer.write_chunk(make_chunk(["rs1"]))
