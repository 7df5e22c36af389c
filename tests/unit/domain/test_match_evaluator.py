from timeline_image_search.domain.match_evaluator import (
    main_subject_words,
    matches,
    passes_numeric_gate,
)


def test_numeric_gate_rejects_other_model_number():
    assert not matches("Commodore 128 home computer", None, "Commodore 64")
    assert not matches("Commodore 128 home computer", None, "Commodore 64", strict=False)


def test_numeric_gate_distinguishes_decimal_versions():
    assert not passes_numeric_gate("Windows 1.0", "Windows 10")
    assert not passes_numeric_gate("Windows 10", "Windows 1.0")
    assert passes_numeric_gate("Windows 1.0", "Windows 1.0 screenshot")


def test_numeric_gate_accepts_number_found_in_snippet():
    assert passes_numeric_gate("Commodore 64", "Commodore computer", "the <b>64</b> model")


def test_title_authority_for_short_queries():
    snippet = "In 1980 <span class=\"searchmatch\">John</span> <span>Lennon</span> was shot"

    assert not matches("1980 in music", snippet, "John Lennon")
    assert matches("John Lennon", None, "John Lennon")


def test_apple_macintosh_history_article_is_rejected():
    assert not matches(
        "History of Apple Inc.",
        "The Macintosh was introduced in 1984",
        "Apple Macintosh",
    )


def test_commons_file_title_matches_single_word_query():
    assert matches("File:Sneeuwpret.jpg", None, "Sneeuwpret")


def test_long_query_requires_three_quarters_coverage():
    query = "Elfstedentocht winter schaatsen Friesland"

    assert matches("Elfstedentocht schaatsen Friesland", None, query)
    assert not matches("Elfstedentocht in Friesland", None, query)


def test_long_query_coverage_may_come_from_snippet():
    query = "Elfstedentocht winter schaatsen Friesland"

    assert matches("Some page", "elfstedentocht winter schaatsen", query)


def test_short_words_use_word_boundaries():
    assert not matches("Whoopi Goldberg", None, "The Who")
    assert matches("The Who live", None, "The Who")


def test_lenient_accepts_single_word_from_snippet():
    assert matches("1980 in music", "John Lennon was shot", "John Lennon", strict=False)
    assert not matches("1980 in music", "nothing relevant", "John Lennon", strict=False)


def test_empty_subject_words_pass():
    assert main_subject_words("de foto van 1984") == []
    assert matches("Anything at all 1984", None, "de foto van 1984")


def test_main_subject_words_truncates_to_four():
    words = main_subject_words("Beatles Stones Kinks Who Animals")

    assert words == ["beatles", "stones", "kinks", "who"]
