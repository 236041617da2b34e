# tests/test_cli.py
import json
import logging

from subocr_core.cli import main


def test_convert_from_command_line(vobsub_pair, fake_tesseract, tmp_path):
    out = tmp_path / "result.srt"
    code = main([str(vobsub_pair), "-o", str(out), "--config", str(tmp_path / "settings.json"),
                 "--end-policy", "open", "--dump-images"])
    assert code == 0
    text = out.read_text(encoding="utf-8")
    assert text.startswith("1\n00:00:01,000 --> 00:00:03,000\nHello\n world\n\n")
    assert (tmp_path / "result-0001.pgm").exists()
    # The package logger is handed back to the root logger afterwards
    assert logging.getLogger("subocr_core").propagate


def test_list_tracks(vobsub_pair, tmp_path, capsys):
    code = main([str(vobsub_pair), "--list-tracks", "--config", str(tmp_path / "settings.json")])
    assert code == 0
    assert capsys.readouterr().out == "0: en\n"


def test_bad_track_exit_code(vobsub_pair, fake_tesseract, tmp_path):
    code = main([str(vobsub_pair), "-s", "4", "--config", str(tmp_path / "settings.json")])
    assert code == 2


def test_missing_input_exit_code(tmp_path):
    code = main([str(tmp_path / "missing.idx"), "--config", str(tmp_path / "settings.json")])
    assert code == 1


def test_invalid_settings_file(vobsub_pair, tmp_path, capsys):
    config = tmp_path / "settings.json"
    config.write_text(json.dumps({"last_end_policy": "sometimes"}), encoding="utf-8")
    assert main([str(vobsub_pair), "--config", str(config)]) == 2
    assert "Invalid settings" in capsys.readouterr().err


def test_log_file(vobsub_pair, fake_tesseract, tmp_path):
    log_file = tmp_path / "run.log"
    code = main([str(vobsub_pair), "-v", "--log-file", str(log_file),
                 "--config", str(tmp_path / "settings.json")])
    assert code == 0
    assert "Languages:" in log_file.read_text(encoding="utf-8")
