# tests/test_word_filter.py

from vocab_core.schema import Word
from vocab_core.word_filter import is_compound, is_valid_word, prioritize_compounds


def test_rejects_numbers_and_counters():
    assert not is_valid_word("123"), "Chuỗi toàn số phải bị loại"
    assert not is_valid_word("１２"), "Số full-width phải bị loại"
    assert not is_valid_word("六十二年度"), "Số Hán + hậu tố đếm phải bị loại"
    assert not is_valid_word("三日目")
    assert not is_valid_word("五人")
    assert not is_valid_word("二十"), "Chuỗi toàn số Hán phải bị loại"
    assert not is_valid_word("3月")


def test_rejects_symbols_and_empty():
    for text in ("10:30", "東京・大阪", "50%", "５０％", "比：率", "", None):
        assert not is_valid_word(text), f"{text!r} phải bị loại"


def test_accepts_ordinary_words():
    for text in ("environment-like-word", "食べる", "カメラ", "学校", "一緒", "人々"):
        assert is_valid_word(text), f"{text!r} phải hợp lệ"


def test_compound_detection():
    assert is_compound("学校")
    assert is_compound("日本語")
    assert is_compound("人々"), "々 tính là chữ Hán"
    assert is_compound("お茶漬け"), "chỉ cần 2 chữ Hán liên tiếp"
    assert not is_compound("お茶")
    assert not is_compound("食べる")
    assert not is_compound("カメラ")
    assert not is_compound("")


def test_prioritize_compounds_fills_with_simple_words():
    words = [
        Word(1, "食べる"),
        Word(2, "学校"),
        Word(3, "カメラ"),
        Word(4, "電話"),
        Word(5, "あの"),
    ]

    picked = prioritize_compounds(words, 3)
    assert [w.id for w in picked] == [2, 4, 1], "Jukugo trước (giữ thứ tự), thiếu mới lấy từ thường"

    assert [w.id for w in prioritize_compounds(words, 10)] == [2, 4, 1, 3, 5]
    assert prioritize_compounds(words, 0) == []
