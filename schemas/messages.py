import json
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# Server -> client

class PeerName(WireModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    model: str = ""
    os: str = ""
    browser: str = ""
    type: str = ""
    device_name: str = Field("", alias="deviceName")
    display_name: str = Field("", alias="displayName")


class PeerInfo(WireModel):
    id: str
    name: PeerName
    rtc_supported: bool = Field(False, alias="rtcSupported")


class DisplayName(WireModel):
    display_name: str = Field(alias="displayName")
    device_name: str = Field(alias="deviceName")


class DisplayNameMessage(WireModel):
    type: Literal["display-name"] = "display-name"
    message: DisplayName


class PeersMessage(WireModel):
    type: Literal["peers"] = "peers"
    peers: List[PeerInfo]


class PeerJoinedMessage(WireModel):
    type: Literal["peer-joined"] = "peer-joined"
    peer: PeerInfo


class PeerLeftMessage(WireModel):
    type: Literal["peer-left"] = "peer-left"
    peer_id: str = Field(alias="peerId")


class PingMessage(WireModel):
    type: Literal["ping"] = "ping"


# Client -> server

class PongMessage(WireModel):
    type: Literal["pong"] = "pong"


class DisconnectMessage(WireModel):
    type: Literal["disconnect"] = "disconnect"


class RelayRequest(WireModel):
    """Anything that is not a control message. `payload` is the client document
    minus its `to` field and is forwarded untouched."""

    to: str
    payload: Dict[str, Any]


InboundMessage = Union[PongMessage, DisconnectMessage, RelayRequest]


def parse_inbound(text: str) -> Optional[InboundMessage]:
    """Classify a text frame. Returns None for anything the relay ignores."""
    try:
        document = json.loads(text)
    except ValueError:
        return None
    if not isinstance(document, dict):
        return None

    message_type = document.get("type")
    if not isinstance(message_type, str):
        return None
    if message_type == "pong":
        return PongMessage()
    if message_type == "disconnect":
        return DisconnectMessage()

    to = document.get("to")
    if not isinstance(to, str):
        return None
    payload = {key: value for key, value in document.items() if key != "to"}
    return RelayRequest(to=to, payload=payload)


def to_document(message: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(message, BaseModel):
        return message.model_dump(by_alias=True, mode="json")
    return message


class HealthResponse(BaseModel):
    status: str
    rooms: int
    peers: int
    connections: int
