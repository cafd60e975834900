"""Decoding of meta information packages and interpretation of stream related meta information."""

from __future__ import annotations

import json
import logging
import struct
from typing import Any, Mapping

import msgpack

from .types import (
    META_FILLLEVEL,
    META_METHOD_ALIVE,
    META_METHOD_APIVERSION,
    META_METHOD_AVAILABLE,
    META_METHOD_INIT,
    META_METHOD_UNAVAILABLE,
    META_STREAMID,
    METAINFORMATION_MSGPACK,
    METHOD,
    PARAMS,
    VERSION,
    ProtocolError,
)

_log = logging.getLogger(__name__)

_TYPE_FIELD = struct.Struct("<I")


class MetaInformation:
    """A meta information package: a type followed by a MessagePack document.

    The document has the form ``{"method": ..., "params": ...}``. It stays
    empty if the package could not be interpreted.
    """

    def __init__(self) -> None:
        self.type: int = 0
        self.json_content: dict[str, Any] = {}

    def interpret(self, data: bytes) -> None:
        """Decode a package. Raises ProtocolError if it can not be interpreted."""
        self.json_content = {}
        if len(data) < _TYPE_FIELD.size:
            raise ProtocolError("meta information package is too short")
        (self.type,) = _TYPE_FIELD.unpack_from(data)
        if self.type != METAINFORMATION_MSGPACK:
            raise ProtocolError(f"unsupported meta information type {self.type}")
        try:
            content = msgpack.unpackb(
                bytes(data[_TYPE_FIELD.size:]), raw=False, strict_map_key=False
            )
        except (ValueError, msgpack.UnpackException) as error:
            raise ProtocolError(f"could not decode meta information: {error}") from error
        if not isinstance(content, dict):
            raise ProtocolError("meta information must be an object")
        self.json_content = content

    @property
    def method(self) -> str:
        value = self.json_content.get(METHOD, "")
        return value if isinstance(value, str) else ""

    @property
    def params(self) -> Any:
        return self.json_content.get(PARAMS, {})


def _text(element: Mapping[str, Any], key: str) -> str:
    try:
        value = element[key]
    except KeyError as error:
        raise ProtocolError(f"command interface lacks '{key}'") from error
    if not isinstance(value, str):
        raise ProtocolError(f"command interface '{key}' must be a string")
    return value


class StreamMeta:
    """Interprets and holds stream related meta information."""

    def __init__(self) -> None:
        self.api_version = ""
        self.stream_id = ""
        self.http_control_path = ""
        self.http_control_port = ""
        self.http_version = 0

    def process_meta_information(
        self, meta_information: MetaInformation, session_url: str
    ) -> None:
        """Interpret stream related meta information; unknown methods are ignored.

        Raises ProtocolError if the api version is missing, malformed or too old.
        """
        method = meta_information.method
        params = meta_information.params
        if not isinstance(params, Mapping):
            params = {}

        if method == META_METHOD_APIVERSION:
            self._process_api_version(params, session_url)
        elif method == META_METHOD_INIT:
            self._process_init(params, session_url)
        elif method == META_METHOD_ALIVE:
            fill_level = params.get(META_FILLLEVEL)
            if isinstance(fill_level, int) and fill_level >= 50:
                _log.debug("Fill level: %s", fill_level)
        elif method in (META_METHOD_AVAILABLE, META_METHOD_UNAVAILABLE):
            pass
        else:
            _log.debug(
                "%s: Unhandled stream related meta information %s",
                session_url,
                json.dumps(meta_information.json_content, default=repr),
            )

    def _process_api_version(self, params: Mapping[str, Any], session_url: str) -> None:
        if VERSION not in params:
            raise ProtocolError(f"{META_METHOD_APIVERSION}: Missing version information")
        version = params[VERSION]
        if not isinstance(version, str):
            raise ProtocolError(f"{META_METHOD_APIVERSION}: version must be a string")
        self.api_version = version
        _log.debug("%s: %s:%s", session_url, META_METHOD_APIVERSION, version)

        try:
            tokens = [int(token) for token in version.split(".")]
        except ValueError as error:
            raise ProtocolError(f"{META_METHOD_APIVERSION}: Invalid format") from error
        if len(tokens) != 3 or any(token < 0 for token in tokens):
            raise ProtocolError(f"{META_METHOD_APIVERSION}: Invalid format")
        major, minor, _ = tokens
        if major < 1 and minor < 6:
            raise ProtocolError(
                f"{META_METHOD_APIVERSION}: Must be at least 0.6.0! Got: {version}"
            )

    def _process_init(self, params: Mapping[str, Any], session_url: str) -> None:
        stream_id = params.get(META_STREAMID, "")
        self.stream_id = stream_id if isinstance(stream_id, str) else str(stream_id)
        _log.debug("%s: this is %s", session_url, self.stream_id)

        supported = params.get("supported")
        if isinstance(supported, Mapping):
            for feature in supported:
                _log.debug("%s: supported feature: %s", session_url, feature)

        interfaces = params.get("commandInterfaces")
        if interfaces is None:
            return
        if isinstance(interfaces, Mapping):
            elements = list(interfaces.values())
        elif isinstance(interfaces, list):
            elements = interfaces
        else:
            raise ProtocolError("commandInterfaces must be an object or an array")

        for element in elements:
            if not isinstance(element, Mapping):
                raise ProtocolError("command interface must be an object")
            _log.debug("%s: command interfaces: %s", session_url, element)
            if _text(element, "httpMethod").lower() != "post":
                continue
            self.http_control_path = _text(element, "httpPath")
            version_digits = _text(element, "httpVersion").replace(".", "")
            try:
                self.http_version = int(version_digits)
            except ValueError as error:
                raise ProtocolError("invalid httpVersion") from error
            if not self.http_control_port:
                self.http_control_port = _text(element, "port")

        _log.debug("http control path: %s", self.http_control_path)
        _log.debug("http control port: %s", self.http_control_port)