"""
批量替换与清理测试
"""

import pytest

from tmqa.core.batch import (
    BatchTransformer, apply_batch_rule, convert_replacement, fold_diacritics, process_unit_batch,
)
from tmqa.core.cleanup import close_unbalanced_tags, remove_orphan_tags, run_cleanup
from tmqa.utils.common import ANONYMOUS_USER
from tmqa.utils.logger import BatchInProgressError
from tmqa.utils.models import (
    BatchConfig, BatchRule, CleanupConfig, MetadataUpdates, QAIssue, TmxTag, TranslationSegment,
)

from conftest import build_unit


class TestBatchRules:
    """测试单条规则"""

    def test_literal_replace(self):
        rule = BatchRule(find="colour", replace="color")
        assert apply_batch_rule("The colour red", rule) == ("The color red", True)

    def test_tags_preserved(self):
        rule = BatchRule(find="ph", replace="XX")
        text = "[ph_1]graph[ph_2]"
        assert apply_batch_rule(text, rule) == ("[ph_1]graXX[ph_2]", True)

    def test_whole_word(self):
        rule = BatchRule(find="cat", replace="dog", whole_word=True)
        assert apply_batch_rule("cat category", rule) == ("dog category", True)

    def test_case_sensitive(self):
        rule = BatchRule(find="Cat", replace="Dog", case_sensitive=True)
        assert apply_batch_rule("cat Cat", rule) == ("cat Dog", True)

    def test_regex_back_references(self):
        rule = BatchRule(find=r"(\d+)-(\d+)", replace="$2-$1 [$&] $$", is_regex=True)
        assert apply_batch_rule("1-2", rule)[0] == "2-1 [1-2] $"

    def test_backslash_literal(self):
        assert convert_replacement(r"a\b") == r"a\\b"

    def test_invalid_regex_leaves_text(self):
        rule = BatchRule(find="(", replace="x", is_regex=True)
        assert apply_batch_rule("(a)", rule) == ("(a)", False)

    def test_missing_group_leaves_text(self):
        rule = BatchRule(find="a", replace="$3", is_regex=True)
        assert apply_batch_rule("abc", rule) == ("abc", False)

    def test_diacritic_insensitive(self):
        rule = BatchRule(find="cafe", replace="bar", diacritic_sensitive=False)
        assert apply_batch_rule("Le caf\u00e9 ouvert", rule) == ("Le bar ouvert", True)

    def test_fold_diacritics_positions(self):
        folded, positions = fold_diacritics("\u00e9a")
        assert folded == "ea"
        assert positions == [0, 1, 2]

    def test_fold_keeps_hangul_syllables_whole(self):
        folded, positions = fold_diacritics("\ud55c\uad6d")
        assert folded == "\ud55c\uad6d"
        assert positions == [0, 1, 2]

    def test_diacritic_insensitive_never_splits_characters(self):
        rule = BatchRule(find="\ud558", replace="X", diacritic_sensitive=False)
        assert apply_batch_rule("\ud55c\uad6d", rule) == ("\ud55c\uad6d", False)

        assert apply_batch_rule("\ud55c \ud558", rule) == ("\ud55c X", True)

    def test_empty_find(self):
        assert apply_batch_rule("abc", BatchRule(find="")) == ("abc", False)


class TestProcessUnit:
    """测试单元级批处理"""

    def test_scope_target_only(self):
        unit = build_unit("colour", "colour")
        config = BatchConfig(scope="target", rules=[BatchRule(find="colour", replace="color")])
        updated, changed = process_unit_batch(unit, config)
        assert changed
        assert updated.source.text == "colour"
        assert updated.target.text == "color"
        assert unit.target.text == "colour"

    def test_rules_chain_in_order(self):
        unit = build_unit("x", "a")
        config = BatchConfig(rules=[BatchRule(find="a", replace="b"), BatchRule(find="b", replace="c")])
        assert process_unit_batch(unit, config)[0].target.text == "c"

    def test_locked_unit_skipped(self):
        unit = build_unit("x", "colour", is_locked=True)
        config = BatchConfig(rules=[BatchRule(find="colour", replace="color")])
        assert process_unit_batch(unit, config) == (unit, False)

    def test_issues_cleared_and_metadata(self):
        unit = build_unit("x", "colour")
        unit.qa_issues = [QAIssue(code='X', message='m')]
        config = BatchConfig(
            rules=[BatchRule(find="colour", replace="color")],
            metadata_updates=MetadataUpdates(update_user=True, user_name="alice", update_date=True),
        )
        updated, _ = process_unit_batch(unit, config)
        assert updated.qa_issues == []
        assert updated.metadata["changeid"] == "alice"
        assert updated.last_modified_by == "alice"
        assert "changedate" in updated.metadata
        assert updated.last_modified

    def test_emptied_target_status(self):
        unit = build_unit("x", "remove me")
        config = BatchConfig(rules=[BatchRule(find="remove me", replace="")])
        assert process_unit_batch(unit, config)[0].status == "empty"


class TestBatchTransformer:
    """测试分块执行器"""

    def setup_method(self):
        self.transformer = BatchTransformer(chunk_size=2)
        self.units = [build_unit(f"s{i}", "colour" if i % 2 else "red", order=i) for i in range(5)]
        self.config = BatchConfig(rules=[BatchRule(find="colour", replace="color")])

    def test_progress_monotonic_ending_at_100(self):
        seen = []
        result = self.transformer.run(self.units, self.config, on_progress=seen.append)
        assert seen == sorted(seen)
        assert seen[-1] == 100
        assert len(seen) == 3
        assert result.modified == 2
        assert result.modified_ids == ["u1", "u3"]

    def test_order_kept_and_unchanged_units_shared(self):
        result = self.transformer.run(self.units, self.config)
        assert [u.id for u in result.units] == [u.id for u in self.units]
        assert result.units[0] is self.units[0]

    def test_only_filtered(self):
        self.config.only_filtered = True
        result = self.transformer.run(self.units, self.config, filtered_ids=["u3"])
        assert result.modified_ids == ["u3"]

    def test_empty_work_set_reports_100(self):
        seen = []
        self.config.only_filtered = True
        self.transformer.run(self.units, self.config, on_progress=seen.append, filtered_ids=[])
        assert seen == [100]

    def test_single_job_at_a_time(self):
        job = self.transformer.iter_batch(self.units, self.config)
        next(job)
        assert self.transformer.busy
        with pytest.raises(BatchInProgressError):
            self.transformer.run(self.units, self.config)
        job.close()
        assert not self.transformer.busy


class TestTagRepair:
    """测试标签修复"""

    def test_close_unbalanced(self):
        segment = TranslationSegment(text="[bpt_1]Bold and [ept_2]x")
        assert close_unbalanced_tags(segment)
        assert segment.text == "[bpt_2][bpt_1]Bold and [ept_2]x[ept_1]"

    def test_balanced_untouched(self):
        segment = TranslationSegment(text="[bpt_1]Bold[ept_1]")
        assert not close_unbalanced_tags(segment)

    def test_tag_data_extended(self):
        segment = TranslationSegment(text="[bpt_1]Bold", tags=[TmxTag("[bpt_1]", "bpt")])
        close_unbalanced_tags(segment)
        assert segment.tag_ids() == ["[bpt_1]", "[ept_1]"]

    def test_remove_orphans(self):
        segment = TranslationSegment(text="[ph_1]a[ph_2]", tags=[TmxTag("[ph_1]")])
        assert remove_orphan_tags(segment)
        assert segment.text == "[ph_1]a"

    def test_remove_orphans_needs_tag_data(self):
        segment = TranslationSegment(text="[ph_1]a")
        assert not remove_orphan_tags(segment)


class TestCleanup:
    """测试语料清理"""

    def test_remove_empty(self):
        units = [build_unit("a", "", order=1), build_unit("b", "B", order=2)]
        kept, report = run_cleanup(units, CleanupConfig(remove_empty=True))
        assert [u.id for u in kept] == ["u2"]
        assert report.deleted == 1
        assert report.deleted_ids == ["u1"]

    def test_remove_untranslated(self):
        units = [build_unit("Same", "Same", order=1), build_unit("b", "B", order=2)]
        kept, _ = run_cleanup(units, CleanupConfig(remove_untranslated=True))
        assert [u.id for u in kept] == ["u2"]

    def test_trim_and_control_chars(self):
        units = [build_unit(" a\x07 ", " b ", order=1)]
        kept, report = run_cleanup(units, CleanupConfig())
        assert kept[0].source.text == "a"
        assert kept[0].target.text == "b"
        assert report.modified == 1

    def test_normalize_spacing(self):
        units = [build_unit("a  b", "c \t d", order=1)]
        kept, _ = run_cleanup(units, CleanupConfig(normalize_spacing=True))
        assert kept[0].target.text == "c d"

    def test_strip_all_tags(self):
        unit = build_unit("[ph_1]a", "[ph_1]b", order=1)
        unit.target.tags = [TmxTag("[ph_1]")]
        kept, report = run_cleanup([unit], CleanupConfig(strip_all_tags=True))
        assert kept[0].target.text == "b"
        assert kept[0].target.tags == []
        assert report.tags_fixed == 1

    def test_custom_regex_target_only(self):
        units = [build_unit("1234", "1234", order=1)]
        config = CleanupConfig(custom_regex_enabled=True, custom_regex_find=r"(\d{2})(\d{2})",
                               custom_regex_replace="$2$1")
        kept, _ = run_cleanup(units, config)
        assert kept[0].source.text == "1234"
        assert kept[0].target.text == "3412"

    def test_dedupe_counts_after_removal(self):
        units = [build_unit("a", " A", order=1), build_unit("a", "A ", order=2)]
        kept, report = run_cleanup(units, CleanupConfig(delete_exact_duplicates=True))
        assert [u.id for u in kept] == ["u1"]
        assert report.duplicates_removed == 1
        assert report.modified == 1

    def test_locked_units_kept_and_block_duplicates(self):
        units = [build_unit("a", "A", order=1, is_locked=True), build_unit(" a ", "A ", order=2)]
        kept, report = run_cleanup(units, CleanupConfig(delete_exact_duplicates=True))
        assert kept == [units[0]]
        assert report.duplicates_removed == 1

    def test_locked_units_never_cleaned(self):
        units = [build_unit("a", "", order=1, is_locked=True)]
        kept, report = run_cleanup(units, CleanupConfig(remove_empty=True))
        assert kept[0] is units[0]
        assert report.deleted == 0

    def test_anonymize_users(self):
        unit = build_unit("a", "b", order=1, metadata={"creationid": "bob"})
        kept, report = run_cleanup([unit], CleanupConfig(anonymize_users=True))
        assert kept[0].metadata["creationid"] == ANONYMOUS_USER
        assert kept[0].metadata["changeid"] == ANONYMOUS_USER
        assert report.metadata_updated == 1

    def test_input_not_modified(self):
        units = [build_unit(" a ", " b ", order=1)]
        run_cleanup(units, CleanupConfig())
        assert units[0].source.text == " a "

    def test_progress_ends_at_100(self):
        seen = []
        run_cleanup([build_unit("a", "b", order=i) for i in range(3)], CleanupConfig(), seen.append)
        assert seen[-1] == 100

    def test_unknown_option_ignored(self):
        config = CleanupConfig.from_dict({"trim_whitespace": False, "bogus": True})
        assert config.trim_whitespace is False


def test_batch_is_idempotent():
    units = [build_unit("x", "colour scheme", order=1)]
    config = BatchConfig(scope="target", rules=[BatchRule(find="colour", replace="color")])
    first = BatchTransformer().run(units, config)
    assert first.units[0].target.text == "color scheme"
    assert first.modified == 1
    assert BatchTransformer().run(first.units, config).modified == 0
