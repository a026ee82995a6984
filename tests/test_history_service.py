"""
历史与语料服务测试
"""

import pytest

from tmqa.core.consistency import TARGET_INCONSISTENCY
from tmqa.core.history import HistoryManager
from tmqa.core.qa import run_qa
from tmqa.core.service import CorpusService, LiveConsistency, ManualAudit
from tmqa.utils.logger import BatchInProgressError, PersistenceError, RuleGenerationError, UnitLockedError
from tmqa.utils.models import BatchConfig, BatchRule, CleanupConfig, GlossaryTerm, TmxTag
from tmqa.utils.settings import QASettings, UserDefinedCheck
from tmqa.utils.store import InMemoryGlossary, InMemoryUnitStore

from conftest import build_unit


class TestHistoryManager:
    """测试撤销 / 重做"""

    def setup_method(self):
        self.history = HistoryManager(max_history=3)
        self.v1 = [build_unit("a", "one", order=1)]
        self.v2 = [build_unit("a", "two", order=1)]
        self.v3 = [build_unit("a", "three", order=1)]

    def test_empty_history(self):
        assert not self.history.can_undo
        assert self.history.undo(self.v1) is None
        assert self.history.redo(self.v1) is None
        assert self.history.restore_snapshot() is None

    def test_snapshot_is_deep_copy(self):
        self.history.snapshot(self.v1, "Edit")
        self.v1[0].target.text = "changed"
        assert self.history.history[0].units[0].target.text == "one"

    def test_undo_then_redo(self):
        self.history.snapshot(self.v1, "Edit")
        restored = self.history.undo(self.v2)
        assert restored[0].target.text == "one"
        assert self.history.can_redo

        again = self.history.redo(restored)
        assert again[0].target.text == "two"
        assert self.history.can_undo

    def test_new_snapshot_clears_redo(self):
        self.history.snapshot(self.v1, "Edit")
        self.history.undo(self.v2)
        self.history.snapshot(self.v1, "Another edit")
        assert not self.history.can_redo

    def test_newest_first_and_bounded(self):
        for i in range(5):
            self.history.snapshot(self.v1, f"Edit {i}")
        assert [h.description for h in self.history.history] == ["Edit 4", "Edit 3", "Edit 2"]

    def test_restore_drops_newer_snapshots(self):
        self.history.snapshot(self.v1, "First")
        self.history.snapshot(self.v2, "Second")
        self.history.snapshot(self.v3, "Third")
        first_id = self.history.history[-1].id

        restored = self.history.restore_snapshot(first_id)
        assert restored[0].target.text == "one"
        assert self.history.history == []
        assert not self.history.can_redo

    def test_restore_unknown_id(self):
        self.history.snapshot(self.v1, "First")
        assert self.history.restore_snapshot("missing") is None
        assert self.history.can_undo

    def test_invalid_max_history(self):
        assert HistoryManager(max_history=0).max_history == 50


class FailingStore(InMemoryUnitStore):
    def put_units(self, units):
        raise OSError("disk full")


class TestCorpusService:
    """测试服务层的修改操作"""

    def setup_method(self):
        self.store = InMemoryUnitStore()
        self.units = [
            build_unit("Save", "Enregistrer", order=1),
            build_unit("Save", "", order=2),
            build_unit("Open", "Ouvrir", order=3, is_locked=True),
            build_unit("[ph_1]Close", "Fermer", order=4),
        ]
        self.units[3].source.tags = [TmxTag("[ph_1]")]
        self.service = CorpusService(self.units, store=self.store)

    def test_protocols(self):
        assert isinstance(self.service, LiveConsistency)
        assert isinstance(self.service, ManualAudit)

    def test_initial_state(self):
        assert self.service.active_language_pair == ("en-US", "fr-FR")
        # u2 的空译文与 u1 的 "Enregistrer" 不一致
        assert self.service.consistency.inconsistent_targets == {"save"}

    def test_update_segment(self):
        result = self.service.update_segment("u2", "Sauver")
        assert result.changed_ids == ["u2"]
        assert self.service.get_unit("u2").target.text == "Sauver"
        assert self.service.get_unit("u2").status == "translated"
        assert result.consistency.inconsistent_targets == {"save"}
        codes = [i.code for i in self.service.get_unit("u2").qa_issues]
        assert TARGET_INCONSISTENCY in codes
        assert len(self.store) == 1
        # 原对象不被修改
        assert self.units[1].target.text == ""

    def test_update_locked_unit(self):
        with pytest.raises(UnitLockedError):
            self.service.update_segment("u3", "x")
        assert not self.service.history.can_undo

    def test_update_unknown_unit(self):
        with pytest.raises(KeyError):
            self.service.update_segment("missing", "x")

    def test_copy_source_skips_locked(self):
        result = self.service.copy_source_to_target(["u2", "u3"])
        assert result.changed_ids == ["u2"]
        assert self.service.get_unit("u2").target.text == "Save"
        assert self.service.get_unit("u3").target.text == "Ouvrir"

    def test_clear_target(self):
        self.service.clear_target(["u1"])
        unit = self.service.get_unit("u1")
        assert unit.target.text == ""
        assert unit.status == "empty"

    def test_toggle_lock_follows_first_unit(self):
        self.service.toggle_lock(["u3", "u1"])
        assert not self.service.get_unit("u3").is_locked
        assert not self.service.get_unit("u1").is_locked

        self.service.toggle_lock(["u1", "u3"])
        assert self.service.get_unit("u1").is_locked
        assert self.service.get_unit("u3").is_locked

    def test_approve_skips_empty(self):
        result = self.service.approve(["u1", "u2"])
        assert result.changed_ids == ["u1"]
        assert self.service.get_unit("u1").status == "approved"
        assert self.service.get_unit("u2").status == "empty"

    def test_place_tags(self):
        self.service.place_tags("u4")
        unit = self.service.get_unit("u4")
        assert unit.target.text == "Fermer [ph_1]"
        assert unit.target.tag_ids() == ["[ph_1]"]

    def test_place_tags_nothing_missing(self):
        result = self.service.place_tags("u1")
        assert result.changed_ids == []
        assert not self.service.history.can_undo

    def test_delete_keeps_locked(self):
        result = self.service.delete_units(["u1", "u3"])
        assert result.deleted_ids == ["u1"]
        assert [u.id for u in self.service.units] == ["u2", "u3", "u4"]

    def test_undo_redo(self):
        self.service.update_segment("u2", "Sauver")
        self.service.undo()
        assert self.service.get_unit("u2").target.text == ""
        self.service.redo()
        assert self.service.get_unit("u2").target.text == "Sauver"

    def test_undo_restores_deleted_units(self):
        self.service.delete_units(["u1"])
        self.service.undo()
        assert [u.id for u in self.service.units] == ["u1", "u2", "u3", "u4"]

    def test_undo_without_history(self):
        result = self.service.undo()
        assert result.units == self.service.units
        assert result.changed_ids == []

    def test_restore_snapshot(self):
        self.service.update_segment("u2", "A")
        self.service.update_segment("u2", "B")
        oldest = self.service.history.history[-1].id
        self.service.restore_snapshot(oldest)
        assert self.service.get_unit("u2").target.text == ""

    def test_batch_transform(self):
        config = BatchConfig(rules=[BatchRule(find="Ouvrir", replace="Ouvre"), BatchRule(find="Fermer", replace="Ferme")])
        result, batch = self.service.run_batch_transform(config)
        assert batch.modified_ids == ["u4"]
        assert self.service.get_unit("u4").target.text == "Ferme"
        assert self.service.get_unit("u3").target.text == "Ouvrir"
        assert result.changed_ids == ["u4"]

    def test_batch_rejected_while_running_keeps_history(self):
        config = BatchConfig(rules=[BatchRule(find="Fermer", replace="Ferme")])
        depth = len(self.service.history.undo_stack)
        unchanged = []

        def reenter(percent):
            before = len(self.service.history.undo_stack)
            with pytest.raises(BatchInProgressError):
                self.service.run_batch_transform(config)
            unchanged.append(len(self.service.history.undo_stack) == before)

        self.service.run_batch_transform(config, on_progress=reenter)
        assert unchanged and all(unchanged)
        assert len(self.service.history.undo_stack) == depth + 1

    def test_batch_only_filtered(self):
        self.service.filter_criteria.source_query = "Save"
        config = BatchConfig(only_filtered=True, rules=[BatchRule(find="er", replace="ER")])
        _, batch = self.service.run_batch_transform(config)
        assert batch.modified_ids == ["u1"]

    def test_cleanup(self):
        result, report = self.service.run_cleanup(CleanupConfig(remove_empty=True))
        assert report.deleted_ids == ["u2"]
        assert result.deleted_ids == ["u2"]
        assert self.service.get_unit("u2") is None

    def test_run_project_qa(self):
        self.service.update_segment("u2", "Sauver")
        result = self.service.run_project_qa()
        assert self.service.last_engine is not None
        assert TARGET_INCONSISTENCY in [i.code for i in self.service.get_unit("u1").qa_issues]
        assert set(result.changed_ids) == {"u1", "u2", "u3", "u4"}

    def test_glossary_terms_used_in_qa(self):
        units = [build_unit("Open the file", "Ouvrir le document", order=1)]
        glossary = InMemoryGlossary({"g1": [GlossaryTerm("file", "fichier")]})
        settings = QASettings(active_glossary_ids=["g1"])
        service = CorpusService(units, settings=settings, glossary=glossary)
        service.run_project_qa()
        assert 'Terminology violation' in [i.code for i in service.get_unit("u1").qa_issues]

    def test_toggle_issue_ignore(self):
        self.service.update_segment("u2", "Sauver")
        issue = self.service.get_unit("u2").qa_issues[0]
        self.service.toggle_issue_ignore("u2", issue.id, user="Reviewer")
        toggled = self.service.get_unit("u2").qa_issues[0]
        assert toggled.is_ignored
        assert toggled.ignored_by == "Reviewer"

        self.service.toggle_issue_ignore("u2", issue.id)
        assert not self.service.get_unit("u2").qa_issues[0].is_ignored
        assert self.service.get_unit("u2").qa_issues[0].ignored_by is None

    def test_ignore_issue_group(self):
        self.service.update_segment("u2", "Sauver")
        result = self.service.ignore_issue_group("save")
        assert set(result.changed_ids) == {"u1", "u2"}
        issues = [i for u in self.service.units for i in u.qa_issues]
        assert issues and all(i.is_ignored for i in issues)

    def test_ignored_issue_kept_and_untouched_by_other_units(self):
        self.service.update_segment("u2", "Sauver")
        issue = self.service.get_unit("u1").qa_issues[0]
        self.service.toggle_issue_ignore("u1", issue.id)
        before = self.service.get_unit("u1").qa_issues
        assert [i.id for i in before] == [issue.id]

        run_qa(self.service.get_unit("u4"), self.service.settings)
        assert self.service.get_unit("u1").qa_issues == before

    def test_persistence_error_keeps_memory_state(self):
        service = CorpusService(self.units, store=FailingStore())
        with pytest.raises(PersistenceError) as excinfo:
            service.update_segment("u2", "Sauver")
        assert excinfo.value.unit_ids == ["u2"]
        assert service.get_unit("u2").target.text == "Sauver"

    def test_apply_locale_defaults(self):
        settings = self.service.apply_locale_defaults("fr-FR")
        assert settings is self.service.settings

    def test_concordance(self):
        hits = self.service.concordance_search("save")
        assert {h.unit_id for h in hits} == {"u1", "u2"}


class TestGeneratedChecks:
    """测试外部规则生成"""

    def setup_method(self):
        self.service = CorpusService([build_unit("a", "b", order=1)])

    def test_dict_result_added(self):
        check = self.service.add_generated_check(
            lambda text: {"title": text, "sourcePattern": "foo", "condition": "source_found_target_missing"},
            "foo needs translation",
        )
        assert check.source_pattern == "foo"
        assert self.service.settings.user_defined_checks == [check]

    def test_check_instance_added(self):
        check = UserDefinedCheck(title="x", target_pattern="bar", condition="target_found_source_missing")
        assert self.service.add_generated_check(lambda text: check, "bar") is check

    def test_generator_failure_wrapped(self):
        def broken(text):
            raise RuntimeError("offline")

        with pytest.raises(RuleGenerationError) as excinfo:
            self.service.add_generated_check(broken, "anything")
        assert excinfo.value.description == "anything"
        assert self.service.settings.user_defined_checks == []

    def test_unrecognized_result(self):
        with pytest.raises(RuleGenerationError):
            self.service.add_generated_check(lambda text: "not a check", "x")

    def test_empty_patterns_rejected(self):
        with pytest.raises(RuleGenerationError):
            self.service.add_generated_check(lambda text: {"title": "t"}, "x")
