"""Spoken number words (1 to 100, cardinal and ordinal) per locale.

Tables map normalized phrases (lowercase, no accents) to their value.
Multi-word forms such as "vinte e um" or "twenty first" are included.
"""

# Portuguese

_PT_UNITS = {
    1: ("um", "uma"),
    2: ("dois", "duas"),
    3: ("tres",),
    4: ("quatro",),
    5: ("cinco",),
    6: ("seis",),
    7: ("sete",),
    8: ("oito",),
    9: ("nove",),
}
_PT_TEENS = {
    10: ("dez",),
    11: ("onze",),
    12: ("doze",),
    13: ("treze",),
    14: ("quatorze", "catorze"),
    15: ("quinze",),
    16: ("dezesseis", "dezasseis"),
    17: ("dezessete", "dezassete"),
    18: ("dezoito",),
    19: ("dezenove", "dezanove"),
}
_PT_TENS = {
    20: "vinte",
    30: "trinta",
    40: "quarenta",
    50: "cinquenta",
    60: "sessenta",
    70: "setenta",
    80: "oitenta",
    90: "noventa",
}
_PT_ORDINAL_UNITS = {
    1: "primeiro",
    2: "segundo",
    3: "terceiro",
    4: "quarto",
    5: "quinto",
    6: "sexto",
    7: "setimo",
    8: "oitavo",
    9: "nono",
}
_PT_ORDINAL_TENS = {
    10: "decimo",
    20: "vigesimo",
    30: "trigesimo",
    40: "quadragesimo",
    50: "quinquagesimo",
    60: "sexagesimo",
    70: "septuagesimo",
    80: "octogesimo",
    90: "nonagesimo",
}


def _pt_genders(word: str) -> tuple[str, str]:
    """Masculine and feminine forms of an ordinal ending in -o."""
    return word, word[:-1] + "a"


def _build_pt() -> dict[str, int]:
    table: dict[str, int] = {}

    for value, words in {**_PT_UNITS, **_PT_TEENS}.items():
        for word in words:
            table[word] = value
    for tens, word in _PT_TENS.items():
        table[word] = tens
        for unit, unit_words in _PT_UNITS.items():
            for unit_word in unit_words:
                table[f"{word} e {unit_word}"] = tens + unit
    table["cem"] = 100
    table["cento"] = 100

    for value, word in _PT_ORDINAL_UNITS.items():
        for form in _pt_genders(word):
            table[form] = value
    for tens, word in _PT_ORDINAL_TENS.items():
        for form in _pt_genders(word):
            table[form] = tens
        for unit, unit_word in _PT_ORDINAL_UNITS.items():
            for tens_form, unit_form in zip(_pt_genders(word), _pt_genders(unit_word)):
                table[f"{tens_form} {unit_form}"] = tens + unit
    for form in _pt_genders("centesimo"):
        table[form] = 100

    return table


# English

_EN_CARDINALS = {
    1: "one",
    2: "two",
    3: "three",
    4: "four",
    5: "five",
    6: "six",
    7: "seven",
    8: "eight",
    9: "nine",
    10: "ten",
    11: "eleven",
    12: "twelve",
    13: "thirteen",
    14: "fourteen",
    15: "fifteen",
    16: "sixteen",
    17: "seventeen",
    18: "eighteen",
    19: "nineteen",
}
_EN_ORDINALS = {
    1: "first",
    2: "second",
    3: "third",
    4: "fourth",
    5: "fifth",
    6: "sixth",
    7: "seventh",
    8: "eighth",
    9: "ninth",
    10: "tenth",
    11: "eleventh",
    12: "twelfth",
    13: "thirteenth",
    14: "fourteenth",
    15: "fifteenth",
    16: "sixteenth",
    17: "seventeenth",
    18: "eighteenth",
    19: "nineteenth",
}
_EN_TENS = {
    20: ("twenty", "twentieth"),
    30: ("thirty", "thirtieth"),
    40: ("forty", "fortieth"),
    50: ("fifty", "fiftieth"),
    60: ("sixty", "sixtieth"),
    70: ("seventy", "seventieth"),
    80: ("eighty", "eightieth"),
    90: ("ninety", "ninetieth"),
}


def _build_en() -> dict[str, int]:
    table: dict[str, int] = {}

    for value, word in _EN_CARDINALS.items():
        table[word] = value
    for value, word in _EN_ORDINALS.items():
        table[word] = value
    for tens, (cardinal, ordinal) in _EN_TENS.items():
        table[cardinal] = tens
        table[ordinal] = tens
        for unit in range(1, 10):
            table[f"{cardinal} {_EN_CARDINALS[unit]}"] = tens + unit
            table[f"{cardinal} {_EN_ORDINALS[unit]}"] = tens + unit
    for prefix in ("", "one ", "a "):
        table[f"{prefix}hundred"] = 100
        table[f"{prefix}hundredth"] = 100

    return table


NUMBER_WORDS: dict[str, dict[str, int]] = {
    "pt": _build_pt(),
    "en": _build_en(),
}

# Words that are also articles or pronouns ("uma coca", "the blue one");
# they only count as numbers alone or right after a cue word.
AMBIGUOUS_WORDS: dict[str, frozenset[str]] = {
    "pt": frozenset({"um", "uma"}),
    "en": frozenset({"one"}),
}
CUE_WORDS: dict[str, frozenset[str]] = {
    "pt": frozenset({"opcao", "numero", "alternativa", "item", "escolha"}),
    "en": frozenset({"option", "number", "choice", "item"}),
}

MAX_PHRASE_TOKENS = 3


def find_number_word(tokens: list[str], language: str = "pt") -> list[int]:
    """Return every number value spoken in ``tokens``, in order.

    At each position the longest known phrase wins and its tokens are consumed,
    so "vinte e um" yields 21 and never a separate 1.
    """
    table = NUMBER_WORDS.get(language, {})
    ambiguous = AMBIGUOUS_WORDS.get(language, frozenset())
    cues = CUE_WORDS.get(language, frozenset())

    values: list[int] = []
    i = 0
    while i < len(tokens):
        for size in range(min(MAX_PHRASE_TOKENS, len(tokens) - i), 0, -1):
            phrase = " ".join(tokens[i : i + size])
            value = table.get(phrase)
            if value is None:
                continue
            if phrase in ambiguous:
                alone = len(tokens) == 1
                after_cue = i > 0 and tokens[i - 1] in cues
                if not (alone or after_cue):
                    continue
            values.append(value)
            i += size
            break
        else:
            i += 1
    return values
