from click.testing import CliRunner

from cardrelay.scripts import cardrelay, cardrelay_atr


def test_atr_command_decodes():
    result = CliRunner().invoke(cardrelay_atr, ["3B 8F 80 01 80 4F 0C A0 00 00 03 06 03 00 01 00 00 00 00 6A"])
    assert result.exit_code == 0
    assert "MIFARE Classic 1K" in result.output
    assert "NXP (PC/SC standard)" in result.output


def test_atr_command_rejects_non_hex():
    result = CliRunner().invoke(cardrelay_atr, ["3B8Z"])
    assert result.exit_code != 0
    assert "not hex" in result.output


def test_bad_config_is_reported(tmp_path, monkeypatch):
    # keep the console handler off the shared root logger
    monkeypatch.setattr("cardrelay.scripts.configure", lambda verbose, quiet: None)
    path = tmp_path / "cardrelay.yaml"
    path.write_text("detection_mode: psychic\nclient_id: c1\n", encoding="utf-8")
    result = CliRunner().invoke(cardrelay, ["--config", str(path)])
    assert result.exit_code == 1
    assert "detection_mode" in result.output


def test_mode_choice_enforced():
    result = CliRunner().invoke(cardrelay, ["--mode", "psychic"])
    assert result.exit_code == 2
