"""Turn a browser user-agent into the display metadata shown to other peers."""
from typing import NamedTuple

import user_agents

from schemas.messages import PeerName

COLORS = ["Red", "Blue", "Green", "Yellow", "Purple", "Orange", "Pink"]
ANIMALS = ["Dog", "Cat", "Elephant", "Lion", "Tiger", "Bear", "Penguin"]

RTC_BROWSERS = ("Chrome", "Firefox", "Safari", "Edge")

UNKNOWN_DEVICE = "Unknown Device"

_HASH_MASK = 0x7FFFFFFFFFFFFFFF


class Identity(NamedTuple):
    name: PeerName
    rtc_supported: bool


def _family(value) -> str:
    # ua-parser reports "Other" when it cannot tell
    if not value or value == "Other":
        return ""
    return value


def hash_string(value: str) -> int:
    result = 0
    for char in value:
        result = ((result << 5) - result + ord(char)) & _HASH_MASK
    return result


def generate_display_name(seed: str) -> str:
    seed_hash = hash_string(seed)
    color = COLORS[seed_hash % len(COLORS)]
    animal = ANIMALS[(seed_hash // len(COLORS)) % len(ANIMALS)]
    return f"{color} {animal}"


def is_rtc_supported(browser: str) -> bool:
    return any(name in browser for name in RTC_BROWSERS)


def resolve_identity(user_agent: str, peer_id: str) -> Identity:
    ua = user_agents.parse(user_agent or "")
    os_name = _family(ua.os.family)
    browser = _family(ua.browser.family)
    model = _family(ua.device.model)

    if ua.is_mobile:
        device_type = "mobile"
    elif ua.is_tablet:
        device_type = "tablet"
    else:
        device_type = "desktop"

    device_name = os_name.replace("Mac OS X", "Mac").replace("Mac OS", "Mac")
    if model and device_type != "desktop":
        suffix = model
    else:
        suffix = browser
    device_name = f"{device_name} {suffix}".strip()
    if not device_name:
        device_name = UNKNOWN_DEVICE

    name = PeerName(
        model=model,
        os=os_name,
        browser=browser,
        type=device_type,
        device_name=device_name,
        display_name=generate_display_name(peer_id),
    )
    return Identity(name=name, rtc_supported=is_rtc_supported(browser))
