"""Tests for the oro-shards command line."""

import os

import pytest

from oro_shards.cli import app, main


@pytest.fixture
def input_file(tmp_path):
    path = tmp_path / "input.bin"
    path.write_bytes(os.urandom(3000))
    return path


class TestParser:
    """Tests for argument parsing."""

    def test_requires_command(self):
        with pytest.raises(SystemExit):
            app().parse_args([])

    def test_split_args(self):
        args = app().parse_args(["split", "in.bin", "frags", "--name", "obj"])
        assert args.command == "split"
        assert args.name == "obj"
        assert args.meta is None


class TestCommands:
    """End-to-end CLI runs on a small file."""

    def test_split_then_restore(self, tmp_path, input_file, capsys):
        fragments = tmp_path / "fragments"
        output = tmp_path / "restored.bin"

        assert main(["-q", "split", str(input_file), str(fragments)]) == 0
        assert (fragments / "meta").exists()
        assert (fragments / "0_7").exists()

        (fragments / "0_0").unlink()
        (fragments / "0_6").unlink()

        assert main(["-q", "restore", str(fragments), str(output)]) == 0
        assert output.read_bytes() == input_file.read_bytes()
        assert "Reconstructed from parity: stripes [0]" in capsys.readouterr().out

    def test_restore_into_directory_uses_recorded_name(self, tmp_path, input_file):
        fragments = tmp_path / "fragments"
        out_dir = tmp_path / "out"
        out_dir.mkdir()

        main(["-q", "split", str(input_file), str(fragments), "--name", "named.bin"])
        assert main(["-q", "restore", str(fragments), str(out_dir)]) == 0
        assert (out_dir / "named.bin").read_bytes() == input_file.read_bytes()

    @pytest.mark.parametrize(
        "name, expected",
        [("../escaped.bin", "escaped.bin"), ("/abs/dir/escaped.bin", "escaped.bin"), ("..", "restored")],
    )
    def test_recorded_name_cannot_leave_directory(self, tmp_path, input_file, name, expected):
        """Directory parts of the recorded name are dropped when restoring into a directory."""
        fragments = tmp_path / "fragments"
        out_dir = tmp_path / "out"
        out_dir.mkdir()

        main(["-q", "split", str(input_file), str(fragments), "--name", name])
        assert main(["-q", "restore", str(fragments), str(out_dir)]) == 0

        assert (out_dir / expected).read_bytes() == input_file.read_bytes()
        assert not (tmp_path / "escaped.bin").exists()
        assert sorted(p.name for p in out_dir.iterdir()) == [expected]

    def test_failed_restore_leaves_no_output(self, tmp_path, input_file, capsys):
        fragments = tmp_path / "fragments"
        output = tmp_path / "restored.bin"
        main(["-q", "split", str(input_file), str(fragments)])
        for j in (0, 1, 2):
            (fragments / f"0_{j}").unlink()

        assert main(["-q", "restore", str(fragments), str(output)]) == 1
        assert not output.exists()
        assert "unrecoverable" in capsys.readouterr().err

    def test_hash_key_must_match(self, tmp_path, input_file):
        fragments = tmp_path / "fragments"
        output = tmp_path / "restored.bin"
        key = "ab" * 32

        assert main(["-q", "split", str(input_file), str(fragments), "--hash-key", key]) == 0
        assert main(["-q", "restore", str(fragments), str(output)]) == 1
        assert main(["-q", "restore", str(fragments), str(output), "--hash-key", key]) == 0
        assert output.read_bytes() == input_file.read_bytes()

    def test_bad_hash_key(self, tmp_path, input_file):
        with pytest.raises(SystemExit):
            main(["-q", "split", str(input_file), str(tmp_path / "f"), "--hash-key", "zz"])

    def test_missing_input(self, tmp_path):
        assert main(["-q", "split", str(tmp_path / "nope"), str(tmp_path / "f")]) == 1
