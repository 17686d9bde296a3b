import pytest

from sixfs.kbd import KEY_UP, KeyboardDecoder, decode


def test_plain_letters_and_digits():
    assert decode([0x10, 0x1E]) == "qa"
    assert decode([0x02, 0x03]) == "12"


def test_shift_held_and_released():
    assert decode([0x2A, 0x1E, 0xAA]) == "A"
    assert decode([0x2A, 0xAA, 0x1E]) == "a"


def test_caps_lock_flips_case():
    assert decode([0x3A, 0x1E]) == "A"
    assert decode([0x3A, 0x2A, 0x1E]) == "a"
    assert decode([0x3A, 0x3A, 0x1E]) == "a"


def test_control_key():
    assert decode([0x1D, 0x20]) == chr(ord("D") - ord("@"))


def test_escaped_arrow_key():
    dec = KeyboardDecoder()
    assert dec.feed(0xE0) == 0
    assert dec.feed(0x48) == KEY_UP


def test_release_produces_nothing():
    dec = KeyboardDecoder()
    assert dec.feed(0x9E) == 0
    assert dec.modifiers == 0


def test_enter_maps_to_newline():
    assert decode([0x1C]) == "\n"


@pytest.mark.parametrize("code", [-1, 256])
def test_out_of_range(code):
    with pytest.raises(ValueError):
        KeyboardDecoder().feed(code)