from mailbeacon.infrastructure.email.window import recent_window


def test_empty_mailbox_has_empty_window():
    assert list(recent_window(0)) == []


def test_small_mailbox_is_scanned_whole():
    assert list(recent_window(3)) == [1, 2, 3]


def test_window_keeps_newest_ten():
    window = recent_window(25)
    assert list(window) == list(range(16, 26))


def test_window_bound_holds_for_any_count():
    for count in range(0, 40):
        window = list(recent_window(count))
        assert len(window) == min(count, 10)
        if count:
            assert window[-1] == count


def test_custom_window_size():
    assert list(recent_window(8, size=3)) == [6, 7, 8]
