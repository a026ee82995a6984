"""
一致性分析测试

覆盖 normalize_for_consistency / analyze_consistency / validate_consistency
"""

import pytest

from tmqa.core.consistency import (
    SOURCE_INCONSISTENCY, TARGET_INCONSISTENCY,
    analyze_consistency, language_pairs, units_in_pair, validate_consistency,
)
from tmqa.core.normalizer import normalize_for_consistency, source_key, target_key
from tmqa.utils.settings import ConsistencyRuleOptions, QASettings

from conftest import build_unit


class TestNormalizer:
    """测试规范化"""

    @pytest.mark.parametrize("text", [
        "Hello [ph_1]World",
        "  Two\u00a0 spaces\u202fhere ",
        "Files: 12 items!",
        "[BPT_1]Bold[EPT_1] text",
        "",
    ])
    def test_idempotent(self, text):
        """规范化是幂等的"""
        options = ConsistencyRuleOptions(ignore_numbers=True, ignore_punctuation=True, ignore_plural_english=True)
        once = normalize_for_consistency(text, options, "en")
        assert normalize_for_consistency(once, options, "en") == once

    def test_tags_and_case_removed(self):
        assert normalize_for_consistency("[ph_1]Hello WORLD") == "hello world"

    def test_uppercase_placeholder_removed_after_lowercasing(self):
        assert normalize_for_consistency("[PH_1]Save") == "save"

    def test_space_variants_collapse(self):
        assert normalize_for_consistency("a\u00a0b\u202fc\u3000d") == "a b c d"

    def test_numbers_fold_to_placeholder(self):
        options = ConsistencyRuleOptions(ignore_numbers=True)
        assert normalize_for_consistency("Page 12 of 300", options) == "page # of #"

    def test_numbers_kept_by_default(self):
        assert normalize_for_consistency("Page 12") == "page 12"

    def test_punctuation_keeps_number_placeholder(self):
        options = ConsistencyRuleOptions(ignore_numbers=True, ignore_punctuation=True)
        assert normalize_for_consistency("Item 5, done.", options) == "item # done"

    def test_plural_english_only(self):
        options = ConsistencyRuleOptions(ignore_plural_english=True)
        assert normalize_for_consistency("Cats boxes", options, "en-US") == "cat box"
        assert normalize_for_consistency("Cats boxes", options, "fr-FR") == "cats boxes"

    def test_plural_keeps_double_s(self):
        options = ConsistencyRuleOptions(ignore_plural_english=True)
        assert normalize_for_consistency("class", options, "en") == "class"

    def test_case_sensitive_option(self):
        options = ConsistencyRuleOptions(ignore_case=False)
        assert normalize_for_consistency("Hello", options) == "Hello"

    def test_plural_folding_follows_target_language(self):
        """原文与译文都按目标语言决定是否去掉英语复数"""
        options = ConsistencyRuleOptions(ignore_plural_english=True)
        en_fr = build_unit("Folders", "Dossiers", source_lang="en-US", target_lang="fr-FR")
        assert source_key(en_fr, options) == "folders"
        assert target_key(en_fr, options) == "dossiers"

        fr_en = build_unit("Fichiers", "Folders", source_lang="fr-FR", target_lang="en-US")
        assert source_key(fr_en, options) == "fichier"
        assert target_key(fr_en, options) == "folder"


class TestAnalyzeConsistency:
    """测试一致性分析"""

    def setup_method(self):
        self.settings = QASettings()
        self.units = [
            build_unit("Save", "Enregistrer", order=1),
            build_unit("save", "Sauvegarder", order=2),
            build_unit("Open", "Ouvrir", order=3),
            build_unit("Open", "", order=4),
            build_unit("Close", "Fermer", order=5, target_lang="de-DE"),
        ]

    def test_target_inconsistency_detected(self):
        report = analyze_consistency(self.units, self.settings, ("en-US", "fr-FR"))
        assert report.inconsistent_targets == {"save", "open"}

    def test_empty_target_is_a_distinct_translation(self):
        units = [build_unit("Open", "Ouvrir", order=1), build_unit("Open", "", order=2)]
        report = analyze_consistency(units, self.settings)
        assert "open" in report.repetitions
        assert "open" in report.inconsistent_targets
        assert all(report.has_inconsistent_target(u, self.settings) for u in units)

    def test_plural_variants_group_in_english_target(self):
        self.settings.target_inconsistency_options.ignore_plural_english = True
        units = [
            build_unit("Fichier", "Folder", order=1, source_lang="fr-FR", target_lang="en-US"),
            build_unit("Fichiers", "Folders", order=2, source_lang="fr-FR", target_lang="en-US"),
        ]
        report = analyze_consistency(units, self.settings)
        assert report.repetitions == {"fichier"}
        assert report.inconsistent_targets == set()

    def test_source_inconsistency_detected(self):
        units = [
            build_unit("Delete", "Supprimer", order=1),
            build_unit("Remove", "Supprimer", order=2),
        ]
        report = analyze_consistency(units, self.settings, ("en-US", "fr-FR"))
        assert report.inconsistent_sources == {"supprimer"}

    def test_other_pairs_excluded(self):
        units = self.units + [build_unit("Close", "Schliessen", order=6, target_lang="de-DE")]
        report = analyze_consistency(units, self.settings, ("en-US", "fr-FR"))
        assert "close" not in report.inconsistent_targets
        report = analyze_consistency(units, self.settings, ("en", "de"))
        assert "close" in report.inconsistent_targets

    def test_default_pair_is_first(self):
        report = analyze_consistency(self.units, self.settings)
        assert report.language_pair == ("en-US", "fr-FR")

    def test_three_repetitions_all_reported(self):
        units = [build_unit("Cancel", t, order=i) for i, t in enumerate(["Annuler", "", "Annuler"])]
        units.append(build_unit("Once", "Une fois", order=9))
        report = analyze_consistency(units, self.settings)
        assert all(report.is_repetition(u, self.settings) for u in units[:3])
        assert not report.is_repetition(units[3], self.settings)

    def test_summary_counts(self):
        summary = analyze_consistency(self.units, self.settings, ("en-US", "fr-FR")).summary()
        assert summary == {'repetitions': 2, 'inconsistent_targets': 2, 'inconsistent_sources': 0}

    def test_language_pairs_in_first_seen_order(self):
        assert language_pairs(self.units) == [("en-US", "fr-FR"), ("en-US", "de-DE")]

    def test_units_in_pair_matches_base_language(self):
        assert len(units_in_pair(self.units, ("en", "fr"))) == 4


class TestValidateConsistency:
    """测试一致性问题的生成与保留"""

    def setup_method(self):
        self.settings = QASettings()
        self.pair = ("en-US", "fr-FR")

    def test_issues_attached(self):
        units = [build_unit("Save", "Enregistrer", order=1), build_unit("Save", "Sauver", order=2)]
        result = validate_consistency(units, self.settings, self.pair)
        for unit in result:
            codes = [i.code for i in unit.qa_issues]
            assert codes == [TARGET_INCONSISTENCY]
            assert unit.qa_issues[0].group_id == "save"
        # 输入不被修改
        assert all(not u.qa_issues for u in units)

    def test_existing_issue_kept_with_ignore_state(self):
        units = [build_unit("Save", "Enregistrer", order=1), build_unit("Save", "Sauver", order=2)]
        first = validate_consistency(units, self.settings, self.pair)
        first[0].qa_issues[0].is_ignored = True
        issue_id = first[0].qa_issues[0].id

        second = validate_consistency(first, self.settings, self.pair)
        assert second[0].qa_issues[0].id == issue_id
        assert second[0].qa_issues[0].is_ignored

    def test_resolved_issue_removed(self):
        units = [build_unit("Save", "Enregistrer", order=1), build_unit("Save", "Sauver", order=2)]
        flagged = validate_consistency(units, self.settings, self.pair)
        flagged[1].target.text = "Enregistrer"
        result = validate_consistency(flagged, self.settings, self.pair)
        assert all(not u.qa_issues for u in result)

    def test_locked_units_untouched(self):
        units = [
            build_unit("Save", "Enregistrer", order=1, is_locked=True),
            build_unit("Save", "Sauver", order=2),
        ]
        result = validate_consistency(units, self.settings, self.pair)
        assert result[0] is units[0]
        assert result[1].qa_issues

    def test_source_inconsistency_when_enabled(self):
        self.settings.source_inconsistency_options.enabled = True
        units = [build_unit("Delete", "Supprimer", order=1), build_unit("Remove", "Supprimer", order=2)]
        result = validate_consistency(units, self.settings, self.pair)
        assert all(i.code == SOURCE_INCONSISTENCY for u in result for i in u.qa_issues)
        assert all(u.qa_issues for u in result)

    def test_disabled_removes_issues(self):
        units = [build_unit("Save", "Enregistrer", order=1), build_unit("Save", "Sauver", order=2)]
        flagged = validate_consistency(units, self.settings, self.pair)
        self.settings.check_inconsistency = False
        result = validate_consistency(flagged, self.settings, self.pair)
        assert all(not u.qa_issues for u in result)
