"""
Tests for trajectory file readers.
"""

import math
import tempfile
from pathlib import Path

import pytest
import numpy as np

from lidar_georef.errors import NumericParseFailure
from lidar_georef.trajectory import TrajectoryStore
from lidar_georef.trajectory_readers import (
    SBETReader,
    load_trajectory,
    read_pos_file,
    read_trajectory_csv,
)

POS_TEXT = """3
61190.995 60.96798754 -149.11932519 131.25 0.512 -1.732 132.88734
61191.000 60.96798800 -149.11932400 131.30 0.514 -1.730 132.89000

61191.005 60.96798846 -149.11932281 131.35 0.516 -1.728 132.89266
"""


def write_sbet(path, rows):
    """Write SBET records; each row is (time, lat, lon, alt, roll, pitch, heading) in radians."""
    records = np.zeros((len(rows), 17), dtype='<f8')
    for i, (t, lat, lon, alt, roll, pitch, heading) in enumerate(rows):
        records[i, [0, 1, 2, 3, 7, 8, 9]] = [t, lat, lon, alt, roll, pitch, heading]
        records[i, 4:7] = [1.0, 2.0, 3.0]  # velocities, ignored
        records[i, 10] = 0.5                # wander angle, ignored
    records.tofile(path)


class TestReadPosFile:
    """Tests for the POS text reader."""

    @pytest.fixture
    def pos_file(self, tmp_path):
        path = tmp_path / "trajectory.pos"
        path.write_text(POS_TEXT)
        return path

    def test_reads_all_samples(self, pos_file):
        samples = read_pos_file(str(pos_file))
        assert len(samples) == 3
        assert [s.time for s in samples] == pytest.approx([61190.995, 61191.000, 61191.005])

    def test_degrees_to_radians(self, pos_file):
        first = read_pos_file(str(pos_file))[0]

        assert first.latitude == pytest.approx(math.radians(60.96798754))
        assert first.longitude == pytest.approx(math.radians(-149.11932519))
        assert first.height == pytest.approx(131.25)
        assert first.roll == pytest.approx(math.radians(0.512))
        assert first.pitch == pytest.approx(math.radians(-1.732))
        assert first.heading == pytest.approx(math.radians(132.88734))

    def test_count_mismatch_is_not_fatal(self, tmp_path):
        path = tmp_path / "short.pos"
        path.write_text("10\n" + POS_TEXT.split("\n", 1)[1])
        assert len(read_pos_file(str(path))) == 3

    def test_bad_field_reports_line(self, tmp_path):
        path = tmp_path / "bad.pos"
        path.write_text("2\n0.0 1 2 3 4 5 6\n1.0 1 2 abc 4 5 6\n")

        with pytest.raises(NumericParseFailure) as excinfo:
            read_pos_file(str(path))
        assert excinfo.value.line_number == 3
        assert "line 3" in str(excinfo.value)

    def test_short_line(self, tmp_path):
        path = tmp_path / "short_line.pos"
        path.write_text("1\n0.0 1 2 3\n")

        with pytest.raises(NumericParseFailure):
            read_pos_file(str(path))

    def test_bad_header(self, tmp_path):
        path = tmp_path / "bad_header.pos"
        path.write_text("three\n0.0 1 2 3 4 5 6\n")

        with pytest.raises(NumericParseFailure) as excinfo:
            read_pos_file(str(path))
        assert excinfo.value.line_number == 1

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_pos_file(str(tmp_path / "missing.pos"))


class TestReadTrajectoryCsv:
    """Tests for the CSV trajectory reader."""

    def test_read_csv(self):
        with tempfile.NamedTemporaryFile(mode='w', suffix='.csv', delete=False) as f:
            f.write("time,latitude,longitude,height,roll,pitch,heading\n")
            f.write("0.0,45.0,-122.0,1000.0,0.0,0.0,90.0\n")
            f.write("1.0,45.001,-121.999,1010.0,1.0,-1.0,100.0\n")
            temp_path = f.name

        try:
            samples = read_trajectory_csv(temp_path)

            assert len(samples) == 2
            assert samples[1].latitude == pytest.approx(math.radians(45.001))
            assert samples[1].heading == pytest.approx(math.radians(100.0))
            assert samples[1].height == pytest.approx(1010.0)
        finally:
            Path(temp_path).unlink()

    def test_custom_columns(self, tmp_path):
        path = tmp_path / "nav.csv"
        path.write_text("t,lat,lon,h,r,p,y\n5.0,1.0,2.0,3.0,4.0,5.0,6.0\n")

        samples = read_trajectory_csv(
            str(path), time_col='t', lat_col='lat', lon_col='lon', height_col='h',
            roll_col='r', pitch_col='p', heading_col='y',
        )
        assert samples[0].time == 5.0
        assert samples[0].heading == pytest.approx(math.radians(6.0))

    def test_missing_columns(self, tmp_path):
        path = tmp_path / "nav.csv"
        path.write_text("time,latitude,longitude\n0.0,1.0,2.0\n")

        with pytest.raises(ValueError, match="Missing required columns"):
            read_trajectory_csv(str(path))

    def test_bad_number(self, tmp_path):
        path = tmp_path / "nav.csv"
        path.write_text("time,latitude,longitude,height,roll,pitch,heading\n0.0,1,2,3,4,5,x\n")

        with pytest.raises(NumericParseFailure) as excinfo:
            read_trajectory_csv(str(path))
        assert excinfo.value.line_number == 2


class TestSBETReader:
    """Tests for the binary SBET reader."""

    @pytest.fixture
    def sbet_file(self, tmp_path):
        path = tmp_path / "trajectory.out"
        rows = [
            (float(t), 0.1 + t * 1e-6, -0.2, 100.0 + t, 0.01 * t, -0.01 * t, 1.0 + 0.1 * t)
            for t in range(10)
        ]
        write_sbet(path, rows)
        return path

    def test_read_all(self, sbet_file):
        samples = SBETReader(str(sbet_file)).read_samples()

        assert len(samples) == 10
        assert samples[3].time == 3.0
        assert samples[3].latitude == pytest.approx(0.1 + 3e-6)
        assert samples[3].longitude == pytest.approx(-0.2)
        assert samples[3].height == pytest.approx(103.0)
        assert samples[3].roll == pytest.approx(0.03)
        assert samples[3].pitch == pytest.approx(-0.03)
        assert samples[3].heading == pytest.approx(1.3)

    def test_time_filter(self, sbet_file):
        samples = SBETReader(str(sbet_file)).read_samples(start_time=2.0, end_time=5.0)
        assert [s.time for s in samples] == [2.0, 3.0, 4.0, 5.0]

    def test_downsample(self, sbet_file):
        samples = SBETReader(str(sbet_file)).read_samples(downsample=5)
        assert [s.time for s in samples] == [4.0, 9.0]

    def test_invalid_downsample(self, sbet_file):
        with pytest.raises(ValueError):
            SBETReader(str(sbet_file)).read_samples(downsample=0)

    def test_trailing_bytes_ignored(self, sbet_file):
        with open(sbet_file, 'ab') as f:
            f.write(b'\x00' * 10)
        assert len(SBETReader(str(sbet_file)).read_samples()) == 10

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.sbet"
        path.write_bytes(b'')
        assert SBETReader(str(path)).read_samples() == []

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            SBETReader(str(tmp_path / "missing.sbet"))


class TestLoadTrajectory:
    """Tests for format detection."""

    def test_pos(self, tmp_path):
        path = tmp_path / "nav.pos"
        path.write_text(POS_TEXT)

        store = load_trajectory(str(path))
        assert isinstance(store, TrajectoryStore)
        assert len(store) == 3

    def test_sbet(self, tmp_path):
        path = tmp_path / "nav.sbet"
        write_sbet(path, [(0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0), (1.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0)])
        assert load_trajectory(str(path)).time_range == (0.0, 1.0)

    def test_explicit_format(self, tmp_path):
        path = tmp_path / "nav.txt"
        path.write_text(POS_TEXT)
        assert len(load_trajectory(str(path), file_format='pos')) == 3

    def test_unknown_extension(self, tmp_path):
        path = tmp_path / "nav.dat"
        path.write_text(POS_TEXT)
        with pytest.raises(ValueError):
            load_trajectory(str(path))

    def test_pof_rejected(self, tmp_path):
        path = tmp_path / "nav.pof"
        path.write_bytes(b"\x00" * 64)
        with pytest.raises(ValueError, match="POF"):
            load_trajectory(str(path))

    def test_unknown_format(self, tmp_path):
        path = tmp_path / "nav.pos"
        path.write_text(POS_TEXT)
        with pytest.raises(ValueError):
            load_trajectory(str(path), file_format='gpx')


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
