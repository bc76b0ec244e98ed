"""Tests for the command-line entry point."""

import json

from numberpaint.cli import load_and_resize, main
from numberpaint.config import load_config

from conftest import square_buffer


def write_square_png(path):
    square_buffer().to_image().save(path)
    return path


def test_load_and_resize(tmp_path):
    path = write_square_png(tmp_path / "square.png")
    assert load_and_resize(str(path), 50).size == (50, 50)
    assert load_and_resize(str(path), 0).size == (100, 100)
    assert load_and_resize(str(path), 400).size == (100, 100)
    assert load_and_resize(str(path), 50).mode == "RGBA"


def test_main_writes_outputs(tmp_path, capsys):
    image = write_square_png(tmp_path / "square.png")
    out_dir = tmp_path / "out"
    config_path = tmp_path / "effective.json"

    main([
        str(image),
        str(out_dir),
        "--colors", "2",
        "--size", "0",
        "--number-style", "circle",
        "--save-config", str(config_path),
    ])

    for name in ("quantized.png", "preview.png", "colored.png", "legend.json"):
        assert (out_dir / name).exists()
    legend = json.loads((out_dir / "legend.json").read_text())
    assert legend["source"] == "square.png"
    assert len(legend["regions"]) == 2
    saved = load_config(config_path)
    assert saved.color_count == 2
    assert saved.number_style == "circle"
    assert "Done!" in capsys.readouterr().out


def test_main_reads_config_file(tmp_path):
    image = write_square_png(tmp_path / "square.png")
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"color_count": 2, "render_preview": False}))
    out_dir = tmp_path / "out"

    main([str(image), str(out_dir), "--config", str(config_path), "--size", "0"])

    assert (out_dir / "quantized.png").exists()
    assert not (out_dir / "preview.png").exists()
    assert len(json.loads((out_dir / "legend.json").read_text())["regions"]) == 2
