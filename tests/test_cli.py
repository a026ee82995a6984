"""
命令行测试
"""

import json

import pytest

from tmqa.cli import main, parse_pair
from tmqa.core.consistency import TARGET_INCONSISTENCY
from tmqa.utils.io import load_units, save_units

from conftest import build_unit


@pytest.fixture
def corpus(tmp_path):
    path = tmp_path / "corpus.jsonl"
    save_units(path, [
        build_unit("Save", "Enregistrer", order=1),
        build_unit("Save", "Sauver", order=2),
        build_unit("5 colours", "6 colours", order=3),
        build_unit("Open", "", order=4),
    ])
    return path


class TestParsePair:
    def test_valid(self):
        assert parse_pair("en-US: fr-FR") == ("en-US", "fr-FR")
        assert parse_pair("") is None

    def test_invalid_pair_exits(self, corpus):
        with pytest.raises(SystemExit):
            main(["consistency", str(corpus), "--pair", "en-US"])


class TestMain:
    """测试各子命令"""

    def test_no_command_prints_help(self):
        assert main([]) == 0

    def test_version(self):
        with pytest.raises(SystemExit) as excinfo:
            main(["--version"])
        assert excinfo.value.code == 0

    def test_missing_corpus(self, tmp_path):
        assert main(["-q", "qa", str(tmp_path / "missing.jsonl")]) == 1

    def test_qa_report_and_output(self, corpus, tmp_path):
        report = tmp_path / "qa.json"
        out = tmp_path / "audited.jsonl"
        code = main(["-q", "qa", str(corpus), "--report", str(report), "--format", "json", "-o", str(out)])
        assert code == 0

        data = json.loads(report.read_text(encoding="utf-8"))
        assert data["summary"]["error"] >= 1
        audited = load_units(out)
        assert any(i.code == TARGET_INCONSISTENCY for i in audited[0].qa_issues)

    def test_qa_fail_on_error(self, corpus):
        assert main(["-q", "qa", str(corpus), "--fail-on-error"]) == 1

    def test_qa_selected_checks(self, corpus):
        assert main(["-q", "qa", str(corpus), "--checks", "tags", "--fail-on-error"]) == 0

    def test_qa_unknown_check(self, corpus):
        assert main(["-q", "qa", str(corpus), "--checks", "tags,bogus"]) == 2

    def test_consistency(self, corpus):
        assert main(["consistency", str(corpus), "--pair", "en-US:fr-FR"]) == 0

    def test_filter_ids_only(self, corpus, tmp_path, capsys):
        out = tmp_path / "subset.jsonl"
        assert main(["filter", str(corpus), "--filter", "inconsistency", "--ids-only", "-o", str(out)]) == 0
        printed = capsys.readouterr().out.split()
        assert "u1" in printed and "u2" in printed
        assert [u.id for u in load_units(out)] == ["u1", "u2"]

    def test_filter_custom_file(self, corpus, tmp_path):
        custom = tmp_path / "custom.json"
        custom.write_text(json.dumps({
            "name": "empty targets",
            "conditions": [{"scope": "status", "operator": "equal", "value": "empty"}],
        }), encoding="utf-8")
        out = tmp_path / "subset.jsonl"
        assert main(["filter", str(corpus), "--custom-filter", str(custom), "-o", str(out)]) == 0
        assert [u.id for u in load_units(out)] == ["u4"]

    def test_batch_in_place(self, corpus):
        code = main(["-q", "batch", str(corpus), "--find", "colours", "--replace", "couleurs",
                     "--user", "alice", "--in-place"])
        assert code == 0
        unit = load_units(corpus)[2]
        assert unit.target.text == "6 couleurs"
        assert unit.source.text == "5 colours"
        assert unit.metadata["changeid"] == "alice"

    def test_batch_config_file(self, corpus, tmp_path):
        config = tmp_path / "batch.json"
        config.write_text(json.dumps({
            "scope": "both",
            "rules": [{"find": r"(\d) colours", "replace": "$1 colors", "isRegex": True}],
        }), encoding="utf-8")
        out = tmp_path / "out.jsonl"
        assert main(["-q", "batch", str(corpus), "--config", str(config), "-o", str(out)]) == 0
        unit = load_units(out)[2]
        assert (unit.source.text, unit.target.text) == ("5 colors", "6 colors")

    def test_batch_without_rule(self, corpus):
        assert main(["-q", "batch", str(corpus)]) == 1

    def test_cleanup(self, corpus, tmp_path):
        config = tmp_path / "cleanup.json"
        config.write_text(json.dumps({"remove_empty": True}), encoding="utf-8")
        out = tmp_path / "clean.jsonl"
        assert main(["-q", "cleanup", str(corpus), "--config", str(config), "-o", str(out)]) == 0
        assert [u.id for u in load_units(out)] == ["u1", "u2", "u3"]

    def test_untranslatables(self, tmp_path):
        path = tmp_path / "corpus.jsonl"
        save_units(path, [build_unit("Install WidgetPro now", "Installez WidgetPro", order=1)])
        assert main(["untranslatables", str(path)]) == 0

    def test_concordance(self, corpus, capsys):
        assert main(["concordance", str(corpus), "save", "--scope", "source"]) == 0
        assert "Enregistrer" in capsys.readouterr().out

    def test_concordance_fuzzy_without_hits(self, corpus):
        assert main(["concordance", str(corpus), "zzzz", "--fuzzy"]) == 0
