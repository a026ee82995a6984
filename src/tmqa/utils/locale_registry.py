"""
语言区域默认值注册表

按目标语言提供 QA 设置的局部默认值（标点网格、引号、计量单位、数字格式）。
查找顺序：完整代码（如 zh-TW）-> 基础语言（zh）-> 英语。
"""

from __future__ import annotations

from typing import Optional

from .common import base_language

# ========================================
# 标点网格
# ========================================

_EMPTY_GRID = {
    "space_before": "",
    "space_after": "",
    "no_space_before": "",
    "no_space_after": "",
    "nbsp_before": "",
    "nbsp_after": "",
}


def _grid(**values: str) -> dict:
    return {**_EMPTY_GRID, **values}


# 大多数语言：句末标点前无空格、后有空格
_LATIN_PUNCT = _grid(space_after=".,:;!?", no_space_before=".,:;!?", no_space_after="'")
_SIGNS_A = _grid(space_before="©§", space_after="®%©§", no_space_before="®%")
_SIGNS_B = _grid(space_before="%©§", space_after="®%©§", no_space_before="®")

PUNCTUATION_PRESETS: dict[str, tuple[dict, dict]] = {
    "en": (_LATIN_PUNCT, _SIGNS_A),
    "zh-CN": (_grid(no_space_before=".,:;!?", no_space_after=".,:;!?"), _SIGNS_A),
    "zh-TW": (_grid(no_space_before=".,:;!?", no_space_after=".,:;!?"), _grid(space_before="©§", space_after="®%©§", no_space_before="®")),
    "fr": (
        _grid(space_after=".,", no_space_before=".,", no_space_after="'", nbsp_before=":;!?»", nbsp_after="«"),
        _grid(space_before="§", space_after="®©§", no_space_before="©®™", nbsp_before="%‰", nbsp_after="§"),
    ),
    "de": (_LATIN_PUNCT, _grid(space_before="%©§", space_after="®%©§")),
    "es": (_grid(space_before="¡¿", space_after=".,:;!?", no_space_before=".,:;!?", no_space_after="¡¿"), _SIGNS_A),
}
for _code in ("sq", "ar", "bg", "nl", "et", "el", "he", "it", "ja", "ko", "pl", "pt-PT", "ro", "th", "uz"):
    PUNCTUATION_PRESETS[_code] = (_LATIN_PUNCT, _SIGNS_A)
for _code in ("hr", "cs", "da", "fi", "is", "kk", "lt", "nb", "pt-BR", "ru", "sr", "sk", "sl", "sv", "tr", "uk", "vi"):
    PUNCTUATION_PRESETS[_code] = (_LATIN_PUNCT, _SIGNS_B)

# ========================================
# 引号与撇号
# ========================================

_STD_APOSTROPHES = ["’", "'"]

QUOTE_PRESETS: dict[str, list[tuple[str, str]]] = {
    "sq": [("„", "”"), ("«", "»"), ("“", "„")],
    "ar": [("«", "»"), ("“", "”")],
    "bg": [("„", "“")],
    "zh-CN": [("“", "”"), ("‘", "’")],
    "zh-TW": [("「", "」"), ("『", "』")],
    "hr": [("„", "“"), ("»", "«")],
    "cs": [("„", "“"), ("‚", "‘")],
    "da": [("»", "«"), ("„", "“")],
    "nl": [("„", "”"), ("‘", "’"), ("“", "”")],
    "en": [("“", "”"), ("‘", "’")],
    "et": [("„", "“")],
    "fi": [("”", "”"), ("’", "’")],
    "fr": [("«", "»"), ("“", "”")],
    "de": [("„", "“"), ("‚", "‘")],
    "el": [("«", "»"), ("“", "”")],
    "he": [("”", "”"), ("“", "”")],
    "is": [("„", "“")],
    "it": [("«", "»"), ("“", "”")],
    "ja": [("「", "」"), ("『", "』")],
    "kk": [("«", "»")],
    "ko": [("“", "”"), ("‘", "’")],
    "lt": [("„", "“")],
    "nb": [("«", "»"), ("„", "“")],
    "pl": [("„", "”"), ("«", "»")],
    "pt-PT": [("«", "»"), ("“", "”")],
    "pt-BR": [("“", "”"), ("‘", "’")],
    "ro": [("„", "”"), ("«", "»")],
    "ru": [("«", "»"), ("„", "“")],
    "sr": [("„", "”"), ("»", "«")],
    "sk": [("„", "“"), ("‚", "‘")],
    "sl": [("„", "“"), ("»", "«")],
    "es": [("«", "»"), ("“", "”"), ("‘", "’")],
    "sv": [("”", "”"), ("»", "«")],
    "th": [("“", "”"), ("‘", "’")],
    "tr": [("“", "”"), ("‘", "’")],
    "uk": [("«", "»"), ("„", "“")],
    "uz": [("«", "»"), ("“", "”")],
    "vi": [("“", "”")],
}

APOSTROPHE_OVERRIDES = {"uz": ["’", "'", "ʻ"]}

# ========================================
# 计量单位
# ========================================

BASE_UNITS = [
    ("Meter", "m"), ("Kilometer", "km"), ("Centimeter", "cm"), ("Millimeter", "mm"),
    ("Kilogram", "kg"), ("Gram", "g"), ("Liter", "l"),
    ("Kilobyte", "KB"), ("Megabyte", "MB"), ("Gigabyte", "GB"),
    ("Volt", "V"), ("Watt", "W"), ("Hertz", "Hz"),
]

_CYRILLIC_UNITS = {"Kilobyte": "КБ", "Megabyte": "МБ", "Gigabyte": "ГБ", "Meter": "м", "Gram": "г"}
_KAZAKH_UNITS = {"Kilobyte": "КБ", "Megabyte": "МБ", "Gigabyte": "ГБ", "Meter": "м"}
_FRENCH_UNITS = {"Kilobyte": "ko", "Megabyte": "Mo", "Gigabyte": "Go"}

UNIT_OVERRIDES = {
    "bg": _CYRILLIC_UNITS, "ru": _CYRILLIC_UNITS, "uk": _CYRILLIC_UNITS,
    "kk": _KAZAKH_UNITS,
    "fr": _FRENCH_UNITS,
}

NO_SPACE_UNIT_LOCALES = {"zh-CN", "zh-TW", "ja", "ko", "th"}

NBSP_UNIT_LOCALES = {
    "hr", "cs", "nl", "et", "fi", "fr", "de", "lt", "nb", "pl",
    "ro", "ru", "sr", "sk", "sl", "es", "sv", "uk",
}

# ========================================
# 数字格式
# ========================================

# 小数点、千位分隔符、区间符号及空格、编号符号及空格、数字单词
_EN_WORDS = {1: ["one"], 2: ["two"], 3: ["three"]}

NUMBER_PRESETS: dict[str, dict] = {
    "en": dict(decimal="dot", thousand="comma", range="-", range_spacing="no-space",
               sign="#", sign_spacing="no-space", words=_EN_WORDS),
    "fr": dict(decimal="comma", thousand="nbsp", range="-", range_spacing="no-space",
               sign="n°", sign_spacing="space", words={1: ["un", "une"], 2: ["deux"], 3: ["trois"]}),
    "de": dict(decimal="comma", thousand="dot", range="–", range_spacing="no-space",
               sign="Nr.", sign_spacing="space", words={1: ["eins", "ein", "eine"], 2: ["zwei"], 3: ["drei"]}),
    "es": dict(decimal="comma", thousand="dot", range="-", range_spacing="no-space",
               sign="n.º", sign_spacing="space", words={1: ["uno", "una"], 2: ["dos"], 3: ["tres"]}),
    "it": dict(decimal="comma", thousand="dot", range="-", range_spacing="no-space",
               sign="n.", sign_spacing="space", words={1: ["uno", "una"], 2: ["due"], 3: ["tre"]}),
    "ru": dict(decimal="comma", thousand="space", range="–", range_spacing="no-space",
               sign="№", sign_spacing="space", words={1: ["один", "одна"], 2: ["два", "две"], 3: ["три"]}),
    "uk": dict(decimal="comma", thousand="space", range="–", range_spacing="no-space",
               sign="№", sign_spacing="space", words={1: ["один", "одна"], 2: ["два", "дві"], 3: ["три"]}),
    "pl": dict(decimal="comma", thousand="space", range="–", range_spacing="no-space",
               sign="nr", sign_spacing="space", words={1: ["jeden", "jedna"], 2: ["dwa"], 3: ["trzy"]}),
    "cs": dict(decimal="comma", thousand="space", range="–", range_spacing="no-space",
               sign="č.", sign_spacing="space", words={1: ["jeden", "jedna"], 2: ["dva"], 3: ["tři"]}),
    "pt-BR": dict(decimal="comma", thousand="dot", range="-", range_spacing="no-space",
                  sign="nº", sign_spacing="space", words={1: ["um", "uma"], 2: ["dois", "duas"], 3: ["três"]}),
    "nl": dict(decimal="comma", thousand="dot", range="-", range_spacing="no-space",
               sign="nr.", sign_spacing="space", words={1: ["een"], 2: ["twee"], 3: ["drie"]}),
    "sv": dict(decimal="comma", thousand="space", range="–", range_spacing="no-space",
               sign="nr", sign_spacing="space", words={1: ["en", "ett"], 2: ["två"], 3: ["tre"]}),
    "zh-CN": dict(decimal="dot", thousand="comma", range="-", range_spacing="no-space",
                  sign="#", sign_spacing="no-space", words={1: ["一"], 2: ["二", "两"], 3: ["三"]}),
    "ja": dict(decimal="dot", thousand="comma", range="～", range_spacing="no-space",
               sign="#", sign_spacing="no-space", words={1: ["一"], 2: ["二"], 3: ["三"]}),
}
NUMBER_PRESETS["pt-PT"] = {**NUMBER_PRESETS["pt-BR"], "thousand": "space"}
NUMBER_PRESETS["zh-TW"] = NUMBER_PRESETS["zh-CN"]


def _resolve(table: dict, locale: Optional[str], default: str = "en") -> tuple[str, object]:
    """完整代码 -> 基础语言 -> 默认"""
    if locale:
        lowered = {key.lower(): key for key in table}
        key = lowered.get(locale.replace("_", "-").lower())
        if key is None:
            key = lowered.get(base_language(locale))
        if key is not None:
            return key, table[key]
    return default, table[default]


def get_punctuation_preset(locale: Optional[str]) -> dict:
    key, (grid, signs) = _resolve(PUNCTUATION_PRESETS, locale)
    return {"id": key, "punctuation_grid": dict(grid), "special_signs_grid": dict(signs)}


def get_quote_preset(locale: Optional[str]) -> dict:
    key, pairs = _resolve(QUOTE_PRESETS, locale)
    return {
        "id": key,
        "pairs": [{"open": o, "close": c} for o, c in pairs],
        "apostrophes": list(APOSTROPHE_OVERRIDES.get(key, _STD_APOSTROPHES)),
    }


def get_unit_preset(locale: Optional[str]) -> dict:
    key, _ = _resolve(dict.fromkeys(QUOTE_PRESETS), locale)
    overrides = UNIT_OVERRIDES.get(key, {})
    no_space = key in NO_SPACE_UNIT_LOCALES
    return {
        "id": key,
        "units": [{"name": name, "target_unit": overrides.get(name, unit)} for name, unit in BASE_UNITS],
        "spacing": "no-space" if no_space else "space",
        "temp_spacing": "no-space" if no_space else "space",
        "require_nbsp": key in NBSP_UNIT_LOCALES,
    }


def get_number_preset(locale: Optional[str]) -> dict:
    key, preset = _resolve(NUMBER_PRESETS, locale)
    return {"id": key, **preset}


def get_settings_for_locale(locale: Optional[str]) -> dict:
    """
    获取目标语言的 QA 设置默认值

    Args:
        locale: 目标语言代码，如 'fr-FR'

    Returns:
        可传给 merge_settings() 的局部设置映射
    """
    punct = get_punctuation_preset(locale)
    quotes = get_quote_preset(locale)
    units = get_unit_preset(locale)
    numbers = get_number_preset(locale)

    return {
        "punctuation_grid": punct["punctuation_grid"],
        "special_signs_grid": punct["special_signs_grid"],

        "allowed_quote_pairs": quotes["pairs"],
        "allowed_apostrophes": quotes["apostrophes"],
        "quote_locale_preset": quotes["id"],

        "decimal_separator": numbers["decimal"],
        "thousand_separator": numbers["thousand"],
        "preferred_range_symbol": numbers["range"],
        "range_spacing": numbers["range_spacing"],
        "preferred_number_sign": numbers["sign"],
        "number_sign_spacing": numbers["sign_spacing"],
        "digit_to_text_map": [
            # 原文通常是英语，英语数字单词始终保留
            {"digit": digit, "forms": list(dict.fromkeys([*forms, *_EN_WORDS.get(digit, [])])), "id": str(digit)}
            for digit, forms in numbers["words"].items()
        ],
        "number_locale_preset": numbers["id"],

        "measurement_units": units["units"],
        "measurement_locale_preset": units["id"],
        "measurement_spacing": units["spacing"],
        "temperature_spacing": units["temp_spacing"],
        "measurement_require_nbsp": units["require_nbsp"],

        "check_initial_capitalization": True,
        "check_camel_case": True,
        "ignore_single_latin": True,
        "ignore_math_only": True,
    }
