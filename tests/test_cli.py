import json

import openpyxl
import pytest

from plan2xl import Config, main, read_chunks, write_sample_config


@pytest.fixture
def no_config(tmp_path):
    return str(tmp_path / "missing.ini")


class TestReadChunks:

    def test_chunks_of_lines(self, tmp_path):
        path = tmp_path / "big.json"
        content = "".join(f"line {i}\n" for i in range(1201))
        path.write_text(content, encoding="utf-8")

        chunks = list(read_chunks(path, 500))
        assert len(chunks) == 3
        assert chunks[0].count("\n") == 500
        assert chunks[2].count("\n") == 201
        assert "".join(chunks) == content

    def test_last_line_without_newline(self, tmp_path):
        path = tmp_path / "short.json"
        path.write_text('{\n"days": []}', encoding="utf-8")
        assert list(read_chunks(path, 500)) == ['{\n"days": []}']

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.json"
        path.write_text("", encoding="utf-8")
        assert list(read_chunks(path)) == []

    def test_chunk_size_must_be_positive(self, tmp_path):
        with pytest.raises(ValueError):
            list(read_chunks(tmp_path / "any.json", 0))


class TestConfig:

    def test_defaults(self):
        config = Config()
        assert config.get('SHEET_TITLE') == 'Stundenplan'
        assert config.slot_width == 2.5
        assert config.lines_per_chunk == 500
        assert config.getint('WIDTH', 'GUI') == 1000

    def test_keys_are_case_insensitive(self):
        assert Config().get('sheet_title') == 'Stundenplan'

    def test_sample_config_round_trip(self, tmp_path):
        path = tmp_path / "plan2xl.ini"
        write_sample_config(path)
        text = path.read_text(encoding="utf-8")
        assert "[APP]" in text and "[GUI]" in text

        path.write_text(text.replace("Stundenplan\n", "Lehrer\n"), encoding="utf-8")
        assert Config(path).get('SHEET_TITLE') == 'Lehrer'

    def test_missing_key_default(self):
        assert Config().get('NOPE', default='x') == 'x'


class TestMain:

    def test_convert(self, tmp_path, no_config, timetable_file):
        out = tmp_path / "plan.xlsx"
        assert main(["-i", no_config, "convert", str(timetable_file), "-o", str(out)]) == 0
        ws = openpyxl.load_workbook(out)["Stundenplan"]
        assert ws["A3"].value == "ABC"

    def test_convert_default_output(self, tmp_path, monkeypatch, no_config, timetable_file):
        monkeypatch.chdir(tmp_path)
        assert main(["-i", no_config, "convert", str(timetable_file)]) == 0
        assert (tmp_path / "stundenplan2.xlsx").exists()

    def test_convert_without_days(self, tmp_path, no_config):
        path = tmp_path / "bad.json"
        path.write_text('{"slots": []}', encoding="utf-8")
        assert main(["-i", no_config, "convert", str(path), "-o", str(tmp_path / "x.xlsx")]) == 1
        assert not (tmp_path / "x.xlsx").exists()

    def test_convert_invalid_json(self, tmp_path, no_config):
        path = tmp_path / "bad.json"
        path.write_text('{"days": [', encoding="utf-8")
        assert main(["-i", no_config, "convert", str(path)]) == 1

    def test_convert_empty_file(self, tmp_path, no_config):
        path = tmp_path / "empty.json"
        path.write_text("  \n", encoding="utf-8")
        assert main(["-i", no_config, "convert", str(path)]) == 1

    def test_convert_missing_file(self, tmp_path, no_config):
        assert main(["-i", no_config, "convert", str(tmp_path / "nope.json")]) == 1

    def test_init_config(self, tmp_path):
        path = tmp_path / "plan2xl.ini"
        assert main(["-i", str(path), "init-config"]) == 0
        assert path.exists()
        assert main(["-i", str(path), "init-config"]) == 1
        assert main(["-i", str(path), "init-config", "--force"]) == 0

    def test_version(self, capsys, no_config):
        assert main(["-i", no_config, "--version"]) == 0
        assert "version" in capsys.readouterr().out


class TestMainErrors:

    def test_cell_text_excel_cannot_store(self, tmp_path, no_config, timetable_doc):
        timetable_doc["days"][0]["day"] = "Mo\u0001"
        path = tmp_path / "ctrl.json"
        path.write_text(json.dumps(timetable_doc), encoding="utf-8")
        out = tmp_path / "out.xlsx"
        assert main(["-i", no_config, "convert", str(path), "-o", str(out)]) == 1
        assert not out.exists()

    def test_config_without_section(self, tmp_path, timetable_file):
        ini = tmp_path / "plan2xl.ini"
        ini.write_text("SLOT_WIDTH=3\n", encoding="utf-8")
        assert main(["-i", str(ini), "convert", str(timetable_file), "-o", str(tmp_path / "o.xlsx")]) == 1
        assert not (tmp_path / "o.xlsx").exists()

    def test_config_with_bad_boolean(self, tmp_path, timetable_file):
        ini = tmp_path / "plan2xl.ini"
        ini.write_text("[APP]\nVERBOSE = maybe\n", encoding="utf-8")
        assert main(["-i", str(ini), "convert", str(timetable_file)]) == 1

    def test_broken_config_can_be_replaced(self, tmp_path):
        ini = tmp_path / "plan2xl.ini"
        ini.write_text("SLOT_WIDTH=3\n", encoding="utf-8")
        assert main(["-i", str(ini), "init-config"]) == 1
        assert main(["-i", str(ini), "init-config", "--force"]) == 0
        assert Config(ini).slot_width == 2.5
