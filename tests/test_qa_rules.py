"""
QA 规则族测试

每个规则族直接调用，使用默认设置（不合并区域默认值）
"""

import pytest

from tmqa.core.qa.casing import check_letter_case
from tmqa.core.qa.measurements import check_measurements
from tmqa.core.qa.numbers import check_numbers, format_problem, parse_number
from tmqa.core.qa.omissions import check_misc, check_omissions
from tmqa.core.qa.punctuation import check_end_punctuation, check_punctuation
from tmqa.core.qa.quotes import check_quotes
from tmqa.core.qa.tags import check_tags
from tmqa.core.qa.terminology import check_terminology
from tmqa.core.qa.untranslatables import (
    check_forbidden_words, check_untranslatables, find_potential_untranslatables,
)
from tmqa.core.qa.user_checks import compile_check_pattern, is_violation, run_user_check
from tmqa.utils.models import GlossaryTerm, Highlight, TmxTag, TranslationSegment
from tmqa.utils.settings import MatchOptions, MeasurementUnit, QASettings, UserDefinedCheck

from conftest import build_unit


def codes(issues):
    return [i.code for i in issues]


class TestOmissions:
    """测试遗漏检查"""

    def setup_method(self):
        self.settings = QASettings()

    def test_finished_unit_with_empty_target(self):
        unit = build_unit("Hello", "", status="translated")
        issues = check_omissions(unit, self.settings)
        assert codes(issues) == ['No translation in target']
        assert issues[0].severity == 'error'

    def test_empty_status_not_reported(self):
        unit = build_unit("Hello", "")
        assert check_omissions(unit, self.settings) == []

    def test_same_as_source(self):
        unit = build_unit("Hello world", "Hello world")
        assert 'Same source and target' in codes(check_omissions(unit, self.settings))

    @pytest.mark.parametrize("text", ["A", "12 + 3 = 15"])
    def test_same_as_source_exemptions(self, text):
        unit = build_unit(text, text)
        assert 'Same source and target' not in codes(check_omissions(unit, self.settings))

    def test_partial_translation(self):
        self.settings.check_partial_translation = True
        unit = build_unit("The quick brown fox jumps", "Le quick brown fox jumps")
        assert 'Partially translated segment' in codes(check_omissions(unit, self.settings))

    def test_sentence_count(self):
        unit = build_unit("One. Two.", "Un deux.")
        issues = check_omissions(unit, self.settings)
        assert codes(issues) == ['Different number of sentences']
        assert "Source: 2, Target: 1" in issues[0].message


class TestMisc:
    """测试重复词 / URL / 混合文字 / 长度"""

    def setup_method(self):
        self.settings = QASettings()

    def test_repeated_words(self):
        issues = check_misc("the cat", "le le chat", self.settings)
        assert codes(issues) == ['Repeated adjacent words']

    def test_repeated_words_in_source_allowed(self):
        assert check_misc("very very good", "very very bien", self.settings) == []

    def test_url_mismatch(self):
        issues = check_misc("See https://a.example", "Voir https://b.example", self.settings)
        assert codes(issues) == ['Inconsistent URLs']

    def test_mixed_script_word(self):
        # 第五个字母是拉丁字母 e
        issues = check_misc("Hello", "Привeт", self.settings)
        assert codes(issues) == ['Mixed script word']

    def test_length_limit(self):
        self.settings.check_length_limit = True
        assert codes(check_misc("abcde", "abcdefgh", self.settings)) == ['Length limit exceeded']
        assert check_misc("abcde", "abcdef", self.settings) == []


class TestLetterCase:
    """测试大小写检查"""

    def setup_method(self):
        self.settings = QASettings()

    def test_initial_capitalization(self):
        issues = check_letter_case("Hello", "bonjour", self.settings)
        assert codes(issues) == ['Inconsistent capitalization of the first letter in source and target']

    def test_highlights_map_through_tags(self):
        issues = check_letter_case("[ph_1]Hello", "[ph_1]bonjour", self.settings)
        assert issues[0].source_highlights == [Highlight(6, 7)]
        assert issues[0].target_highlights == [Highlight(6, 7)]

    def test_camel_case(self):
        issues = check_letter_case("the file", "le fichier myFile", self.settings)
        assert codes(issues) == ['Suspicious mid-word capitalization']
        assert issues[0].severity == 'info'

    def test_camel_case_present_in_source(self):
        assert check_letter_case("open myFile", "ouvrir myFile", self.settings) == []

    def test_all_caps(self):
        self.settings.check_all_upper = True
        assert codes(check_letter_case("WARNING", "Attention", self.settings)) == ['All caps mismatch']

    def test_special_case(self):
        self.settings.check_special_case = True
        self.settings.special_cases = ["iPhone"]
        issues = check_letter_case("my iPhone", "mon iphone", self.settings)
        assert 'Invalid special casing' in codes(issues)


class TestPunctuation:
    """测试标点与空格"""

    def setup_method(self):
        self.settings = QASettings()

    def test_multiple_spaces(self):
        assert 'Multiple consecutive spaces' in codes(check_punctuation("a b", "a  b", self.settings))

    def test_double_punctuation(self):
        assert 'Double punctuation mismatch' in codes(check_punctuation("Hi!", "Salut!!", self.settings))

    def test_double_punctuation_as_in_source(self):
        assert check_punctuation("Wait...", "Attendez...", self.settings) == []

    def test_end_punctuation_mismatch(self):
        issue = check_end_punctuation("Hello.", "Bonjour", self.settings)
        assert issue.message == 'End punctuation mismatch: expected ".".'
        assert issue.target_highlights == [Highlight(6, 7)]

    def test_end_punctuation_missing_target(self):
        issue = check_end_punctuation("Hello.", "", self.settings)
        assert "target is missing end punctuation" in issue.message

    def test_cjk_end_punctuation_equivalent(self):
        assert check_end_punctuation("Hello.", "你好。", self.settings) is None

    @pytest.mark.parametrize("target,code", [
        ("(a]", 'Mismatched brackets'),
        ("a)", 'Unmatched closing bracket'),
        ("(a", 'Unclosed opening bracket'),
    ])
    def test_brackets(self, target, code):
        assert code in codes(check_punctuation("a", target, self.settings))

    def test_unbalanced_source_skips_target(self):
        issues = check_punctuation("a)", "(a", self.settings)
        assert not any(i.rule_id == 'checkBrackets' for i in issues)

    def test_leading_trailing_spaces(self):
        assert 'Leading/trailing spaces' in codes(check_punctuation("Hello", " Bonjour", self.settings))

    def test_grid_no_space_before(self):
        issues = check_punctuation("Hello!", "Bonjour !", self.settings)
        assert codes(issues) == ['Invalid spacing before punctuation']
        assert issues[0].target_highlights == [Highlight(7, 8)]


class TestQuotes:
    """测试引号与撇号"""

    def setup_method(self):
        self.settings = QASettings()

    def test_invalid_apostrophe(self):
        issues = check_quotes("man's", "l'homme", self.settings)
        assert codes(issues) == ['Invalid apostrophe sign']
        assert issues[0].target_highlights == [Highlight(1, 2)]

    def test_allowed_apostrophe(self):
        assert check_quotes("man's", "l’homme", self.settings) == []

    def test_unclosed_quote(self):
        assert codes(check_quotes("Hello", "“Bonjour", self.settings)) == ['Unclosed quotation mark']

    def test_mismatched_quote(self):
        assert codes(check_quotes("Hello", "“Bonjour’", self.settings)) == ['Mismatched quotation mark']

    def test_unbalanced_source_skips_target(self):
        assert check_quotes("“Hello", "“Bonjour", self.settings) == []

    def test_inner_apostrophe_not_a_quote(self):
        assert check_quotes("“don't”", "“don’t”", self.settings) == []


class TestMeasurements:
    """测试计量单位与温度"""

    def setup_method(self):
        self.settings = QASettings()
        self.settings.measurement_units = [MeasurementUnit("Kilometer", "km")]

    def test_missing_space(self):
        issues = check_measurements("5 km", "5km", self.settings)
        assert codes(issues) == ['Invalid spacing before measurement unit']

    def test_nbsp_required(self):
        issues = check_measurements("5 km", "5 km", self.settings)
        assert codes(issues) == ['Non-breaking space required before measurement unit']

    def test_nbsp_accepted(self):
        assert check_measurements("5 km", "5\u00a0km", self.settings) == []

    def test_value_mismatch(self):
        issues = check_measurements("5 km", "6\u00a0km", self.settings)
        assert codes(issues) == ['Inconsistent measurement units']

    def test_temperature_spacing(self):
        issues = check_measurements("20°C", "20 °C", self.settings)
        assert codes(issues) == ['Forbidden spacing before temperature sign']

    def test_temperature_missing(self):
        issues = check_measurements("20°C", "vingt degrés", self.settings)
        assert codes(issues) == ['Temperature sign missing']


class TestNumbers:
    """测试数字与区间"""

    def setup_method(self):
        self.settings = QASettings()

    @pytest.mark.parametrize("raw,value", [
        ("1,234.5", 1234.5),
        ("1.234,5", 1234.5),
        ("1,5", 1.5),
        ("1,234", 1234.0),
        ("0,123", 0.123),
        ("1.234.567", 1234567.0),
        ("12 345", 12345.0),
    ])
    def test_parse_number(self, raw, value):
        assert parse_number(raw) == pytest.approx(value)

    def test_number_mismatch(self):
        issues = check_numbers("5 apples", "6 pommes", self.settings)
        assert codes(issues) == ['Inconsistent numbers in source and target']
        assert issues[0].source_highlights == [Highlight(0, 1)]
        assert issues[0].target_highlights == [Highlight(0, 1)]

    def test_digit_words_match(self):
        assert check_numbers("two apples", "2 pommes", self.settings) == []

    def test_number_order(self):
        issues = check_numbers("1 and 10", "10 et 1", self.settings)
        assert codes(issues) == ['Inconsistent order of numbers']
        assert issues[0].severity == 'info'

    def test_thousand_separator_required(self):
        issues = check_numbers("1,234,567 users", "1234567 utilisateurs", self.settings)
        assert codes(issues) == ['Invalid number formatting']
        assert issues[0].message == "Thousand separator 'comma' required."

    def test_decimal_separator(self):
        issues = check_numbers("3.5", "3,5", self.settings)
        assert codes(issues) == ['Invalid number formatting']
        assert issues[0].message == "Incorrect decimal separator: expected '.'."

    def test_leading_zero(self):
        assert format_problem("07", self.settings, {"7"}) == "Leading zeros are not allowed."

    def test_raw_from_source_exempt(self):
        assert format_problem("2024", self.settings, {"2024"}) is None

    @pytest.mark.parametrize("target", ["10–20", "10 - 20"])
    def test_range_format(self, target):
        assert 'Invalid format of number range' in codes(check_numbers("10-20", target, self.settings))

    def test_number_sign(self):
        issues = check_numbers("#5", "No. 5", self.settings)
        assert codes(issues) == ['Invalid number sign']
        assert issues[0].message == 'Number sign should be "#".'

    def test_number_sign_spacing(self):
        issues = check_numbers("#5", "# 5", self.settings)
        assert issues[0].message == "Space not allowed between number sign and number."

    def test_math_signs(self):
        issues = check_numbers("2 + 2 = 4", "2 + 2 4", self.settings)
        assert codes(issues) == ['Inconsistent math signs']

    def test_imperial_in_parens_skipped(self):
        assert check_numbers("5 km (3 mi)", "5 km", self.settings) == []

    def test_ignore_regex(self):
        self.settings.ignore_numbers_regex = r"v\d+"
        assert check_numbers("v2 build", "build", self.settings) == []


class TestTags:
    """测试标签与实体"""

    def setup_method(self):
        self.settings = QASettings()

    def test_tag_count(self):
        unit = build_unit("[bpt_1]Bold[ept_1]", "Gras")
        assert 'Different amount of tags' in codes(check_tags(unit, self.settings))

    def test_tag_ids(self):
        unit = build_unit("[ph_1] x", "[ph_2] x")
        assert codes(check_tags(unit, self.settings)) == ['Inconsistent tags in source and target']

    def test_tag_order(self):
        unit = build_unit("[ph_1] a [ph_2]", "[ph_2] a [ph_1]")
        assert 'Inconsistent tag order' in codes(check_tags(unit, self.settings))

    def test_orphan_placeholder(self):
        unit = build_unit("[ph_1] x", "[ph_1] [ph_2]")
        unit.source.tags = [TmxTag("[ph_1]")]
        unit.target.tags = [TmxTag("[ph_1]")]
        issues = [i for i in check_tags(unit, self.settings) if i.code == 'Orphan tag placeholder']
        assert issues[0].target_highlights == [Highlight(7, 13)]

    def test_space_inside_tag_pair(self):
        unit = build_unit("[bpt_1]Bold[ept_1]", "[bpt_1] Gras[ept_1]")
        assert 'Space inside tag pair' in codes(check_tags(unit, self.settings))

    def test_malformed_entity(self):
        unit = build_unit("Tom & Jerry", "Tom &amp Jerry")
        assert 'Malformed XML entity' in codes(check_tags(unit, self.settings))

    def test_missing_entity(self):
        unit = build_unit("A &amp; B", "A et B")
        assert codes(check_tags(unit, self.settings)) == ['XML entity present in source but missing in target']

    def test_matching_tags_clean(self):
        unit = build_unit("[bpt_1]Bold[ept_1] text", "[bpt_1]Gras[ept_1] texte")
        assert check_tags(unit, self.settings) == []


class TestTerminology:
    """测试术语"""

    def setup_method(self):
        self.settings = QASettings()
        self.glossary = [GlossaryTerm("file", "fichier")]

    def test_violation(self):
        issues = check_terminology("Open the file", "Ouvrir le document", self.settings, self.glossary)
        assert codes(issues) == ['Terminology violation']
        assert issues[0].source_highlights == [Highlight(9, 13)]

    def test_approved_translation(self):
        assert check_terminology("Open the file", "Ouvrir le fichier", self.settings, self.glossary) == []

    def test_variants(self):
        glossary = self.glossary + [GlossaryTerm("file", "fichiers")]
        assert check_terminology("Open the file", "Ouvrir les fichiers", self.settings, glossary) == []

    def test_count_mismatch(self):
        issues = check_terminology("file and file", "fichier", self.settings, self.glossary)
        assert codes(issues) == ['Terminology count mismatch']

    def test_forbidden_term(self):
        glossary = [GlossaryTerm("folder", "dossier", is_forbidden=True)]
        issues = check_terminology("Open", "Ouvrir le dossier", self.settings, glossary)
        assert codes(issues) == ['Forbidden term detected']

    def test_reverse_check(self):
        self.settings.reverse_term_check = True
        issues = check_terminology("Open", "le fichier", self.settings, self.glossary)
        assert issues[0].rule_id == 'reverseTermCheck'
        assert issues[0].severity == 'warning'

    def test_term_tags(self):
        self.settings.check_term_tags = True
        issues = check_terminology("[bpt_1]file[ept_1]", "fichier", self.settings, self.glossary)
        assert codes(issues) == ['Term tag mismatch']

    def test_untranslatables_skipped(self):
        self.settings.untranslatables = ["File"]
        assert check_terminology("Open the file", "Ouvrir", self.settings, self.glossary) == []


class TestUntranslatables:
    """测试不可翻译词与禁用表达"""

    def setup_method(self):
        self.settings = QASettings()
        self.settings.untranslatables = ["GitHub"]

    def test_missing_in_target(self):
        issues = check_untranslatables("Push to GitHub", "Pousser", self.settings)
        assert codes(issues) == ['Untranslatable term missing in target']

    def test_missing_in_source(self):
        issues = check_untranslatables("Push", "Pousser vers GitHub", self.settings)
        assert codes(issues) == ['Untranslatable term missing in source']

    def test_count_mismatch(self):
        issues = check_untranslatables("GitHub GitHub", "GitHub", self.settings)
        assert codes(issues) == ['Different amount of untranslatables']

    def test_scope_source_only(self):
        self.settings.untranslatable_scope = "source"
        assert check_untranslatables("Push", "Pousser vers GitHub", self.settings) == []

    def test_case_insensitive(self):
        assert check_untranslatables("github", "GitHub", self.settings) == []

    def test_forbidden_words(self):
        self.settings.check_forbidden_words = True
        self.settings.forbidden_words = ["gonna", "("]
        issues = check_forbidden_words("x", "I'm gonna go", self.settings)
        assert codes(issues) == ['Forbidden expression detected']

    def test_forbidden_word_in_source_exempt(self):
        self.settings.check_forbidden_words = True
        self.settings.forbidden_words = ["gonna"]
        assert check_forbidden_words("gonna", "gonna", self.settings) == []

    def test_find_potential(self):
        units = [build_unit("Use the API_KEY with myApp and JSON")]
        assert find_potential_untranslatables(units, self.settings) == ["API_KEY", "JSON", "myApp"]
        self.settings.untranslatables = ["JSON"]
        assert find_potential_untranslatables(units, self.settings) == ["API_KEY", "myApp"]
        assert find_potential_untranslatables(units, self.settings, limit=0) == []


class TestUserChecks:
    """测试用户自定义检查"""

    def setup_method(self):
        self.check = UserDefinedCheck(
            title="Brand", source_pattern="Acme", target_pattern="Acme",
            condition="source_found_target_missing",
        )

    def test_violation(self):
        issue = run_user_check(build_unit("Acme rocks", "Ça roule"), self.check)
        assert issue.code == "Brand"
        assert issue.message == "User Check: Brand"
        assert issue.rule_id == self.check.id

    def test_no_violation(self):
        assert run_user_check(build_unit("Acme rocks", "Acme roule"), self.check) is None

    def test_invalid_pattern_skips_check(self):
        self.check.source_options = MatchOptions(is_regex=True)
        self.check.source_pattern = "("
        assert run_user_check(build_unit("(", "x"), self.check) is None

    def test_whole_word_regex(self):
        regex = compile_check_pattern("cat|dog", MatchOptions(is_regex=True, whole_word=True))
        assert regex.search("category") is None
        assert regex.search("a dog")

    def test_untitled_check(self):
        check = UserDefinedCheck(source_pattern="x", condition="source_found_target_missing")
        issue = run_user_check(build_unit("x", "y"), check)
        assert issue.code == "User check"
        assert issue.message == "User Check: Untitled Check"

    def test_unknown_condition_disables_check(self):
        check = UserDefinedCheck(source_pattern="x", condition="sometimes")
        assert check.enabled is False

    @pytest.mark.parametrize("condition,source,target,expected", [
        ("both_found", True, True, True),
        ("both_found", True, False, False),
        ("source_found_target_missing", True, False, True),
        ("source_found_target_missing", True, True, False),
        ("target_found_source_missing", False, True, True),
        ("both_regex_match", True, True, True),
    ])
    def test_conditions(self, condition, source, target, expected):
        assert is_violation(condition, source, target) is expected


def test_segment_accepts_plain_string():
    assert TranslationSegment.from_dict("Hello").text == "Hello"
