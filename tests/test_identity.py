from identity import ANIMALS, COLORS, UNKNOWN_DEVICE, generate_display_name, hash_string, is_rtc_supported, resolve_identity

CHROME_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
FIREFOX_MAC = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:120.0) Gecko/20100101 Firefox/120.0"
SAFARI_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)


def test_hash_is_rolling_and_non_negative():
    assert hash_string("") == 0
    assert hash_string("a") == 97
    assert hash_string("ab") == 97 * 31 + 98
    assert 0 <= hash_string("x" * 500) <= 0x7FFFFFFFFFFFFFFF


def test_display_name_is_deterministic_color_animal():
    name = generate_display_name("6f1c7a52-8d1e-4a0b-9f7e-3b2d1c0a9e8f")
    assert name == generate_display_name("6f1c7a52-8d1e-4a0b-9f7e-3b2d1c0a9e8f")
    color, animal = name.split(" ")
    assert color in COLORS
    assert animal in ANIMALS


def test_desktop_chrome():
    identity = resolve_identity(CHROME_WINDOWS, "peer-1")
    assert identity.rtc_supported
    assert identity.name.browser == "Chrome"
    assert identity.name.os.startswith("Windows")
    assert identity.name.type == "desktop"
    assert identity.name.device_name.startswith("Windows")
    assert identity.name.device_name.endswith("Chrome")
    assert identity.name.display_name == generate_display_name("peer-1")


def test_mac_os_is_shortened():
    identity = resolve_identity(FIREFOX_MAC, "peer-2")
    assert identity.name.device_name == "Mac Firefox"
    assert identity.rtc_supported


def test_mobile_safari_uses_device_model():
    identity = resolve_identity(SAFARI_IPHONE, "peer-3")
    assert identity.name.os == "iOS"
    assert identity.name.type == "mobile"
    assert identity.name.device_name.startswith("iOS ")
    assert identity.rtc_supported


def test_unknown_agent():
    identity = resolve_identity("", "peer-4")
    assert identity.name.device_name == UNKNOWN_DEVICE
    assert identity.name.browser == ""
    assert identity.rtc_supported is False


def test_rtc_browsers():
    assert is_rtc_supported("Chrome Mobile")
    assert is_rtc_supported("Edge")
    assert not is_rtc_supported("IE")
    assert not is_rtc_supported("")
