from confessbot.services.text_utils import extract_hashtags, level_for, sanitize_input, truncate


def test_sanitize_strips_script_and_tags():
    assert sanitize_input("Hello <script>alert(1)</script> #test") == "Hello  #test"
    assert sanitize_input('<b onclick="x()">bold</b>') == "bold"
    assert sanitize_input("javascript:alert(1)") == "alert(1)"
    assert sanitize_input("   ") == ""
    assert sanitize_input(None) == ""


def test_extract_hashtags():
    assert extract_hashtags("Exams #stress and #ju_life!") == ["#stress", "#ju_life"]
    assert extract_hashtags("no tags") == []


def test_truncate():
    assert truncate("abc", 5) == "abc"
    assert truncate("abcdef", 3) == "abc..."


def test_levels():
    assert level_for(0).level == 1
    assert level_for(24).level == 1
    assert level_for(25).level == 2
    assert level_for(100).level == 4
    assert level_for(1000).symbol == "👑"
