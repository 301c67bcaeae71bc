from bridge.memory.checkpoint import Checkpoint


def test_missing_file_starts_at_zero(tmp_path):
    assert Checkpoint(tmp_path / "state" / "last.txt").load() == 0


def test_save_and_reload(tmp_path):
    path = tmp_path / "state" / "last.txt"
    Checkpoint(path).save(120)

    assert path.read_text() == "120"
    assert Checkpoint(path).load() == 120


def test_never_moves_backwards(tmp_path):
    path = tmp_path / "last.txt"
    checkpoint = Checkpoint(path)
    checkpoint.save(50)
    checkpoint.save(20)

    assert checkpoint.load() == 50
    assert path.read_text() == "50"


def test_garbage_file_reads_as_zero(tmp_path):
    path = tmp_path / "last.txt"
    path.write_text("not a number")
    assert Checkpoint(path).load() == 0
