import pytest

from gobbical.cuts import MAX_ZLINES, Cut, read_cut, read_zlines, write_cut, zline_path


def square():
    return Cut(points=[(0.0, 0.0), (4.0, 0.0), (4.0, 4.0), (0.0, 4.0)])


def test_contains_inside_and_outside():
    cut = square()
    assert cut.contains(2.0, 2.0)
    assert not cut.contains(5.0, 2.0)
    assert not cut.contains(2.0, -1.0)


def test_contains_concave_polygon():
    cut = Cut(points=[(0, 0), (6, 0), (6, 6), (3, 2), (0, 6)])
    assert cut.contains(1.0, 1.0)
    assert not cut.contains(3.0, 5.0)


def test_degenerate_cut_contains_nothing():
    assert not Cut(points=[(0, 0), (1, 1)]).contains(0.5, 0.5)


def test_write_read_round_trip(tmp_path):
    path = tmp_path / "banana.dat"
    cut = Cut(points=[(1.5, 2.25), (3.0, -4.5), (0.125, 7.0)])
    write_cut(path, cut)
    assert path.read_text().splitlines()[0] == "3"
    assert read_cut(path).points == cut.points


def test_read_cut_rejects_wrong_count(tmp_path):
    path = tmp_path / "bad.dat"
    path.write_text("3\n1 2\n3 4\n")
    with pytest.raises(ValueError):
        read_cut(path)


def test_zline_path():
    assert zline_path(2) == "zline/pid_quad2.zline"


def test_read_zlines(tmp_path):
    path = tmp_path / "pid.zline"
    path.write_text("2\n1 1\n2\n10 20\n30 40\n2 4\n1\n5.5 6.5\n")
    zlines = read_zlines(path)
    assert [(z.z, z.a) for z in zlines] == [(1, 1), (2, 4)]
    assert zlines[0].points == [(10.0, 20.0), (30.0, 40.0)]
    assert zlines[1].points == [(5.5, 6.5)]
    assert [z.name for z in zlines] == ["finger[0]", "finger[1]"]


def test_read_zlines_truncated(tmp_path):
    path = tmp_path / "pid.zline"
    path.write_text("1\n1 1\n3\n1 2\n")
    with pytest.raises(ValueError):
        read_zlines(path)


def test_read_zlines_too_many(tmp_path):
    path = tmp_path / "pid.zline"
    path.write_text(f"{MAX_ZLINES + 1}\n")
    with pytest.raises(ValueError):
        read_zlines(path)