"""Broker configuration: defaults, JSON form and address parsing."""

from __future__ import annotations

import ipaddress
import json
import logging
import os
import socket
import ssl
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple, Union

_log = logging.getLogger(__name__)

CHANNEL_SEPARATOR = "/"
_MAX_MESSAGE_SIZE = 65536


def _field(
    name: Optional[str] = None,
    default: Any = None,
    *,
    omitempty: bool = True,
    nested: Any = None,
    factory: Any = None,
) -> Any:
    """A configuration field; its JSON key is ``name`` or, if omitted, the attribute name."""
    metadata = {"json": name, "omitempty": omitempty, "nested": nested}
    if factory is not None:
        return field(default_factory=factory, metadata=metadata)
    return field(default=default, metadata=metadata)


def _json_key(f: Any) -> Optional[str]:
    if "json" not in f.metadata:
        return None
    return f.metadata["json"] or f.name


def _dump(obj: Any) -> dict:
    out = {}
    for f in fields(obj):
        key = _json_key(f)
        if key is None:
            continue
        value = getattr(obj, f.name)
        if f.metadata["nested"] is not None and value is not None:
            value = _dump(value)
        if f.metadata["omitempty"] and not value:
            continue
        out[key] = value
    return out


def _load(cls: Any, data: Any) -> Any:
    if not isinstance(data, Mapping):
        raise ValueError(f"expected an object for {cls.__name__}")
    kwargs = {}
    for f in fields(cls):
        key = _json_key(f)
        if key is None or key not in data:
            continue
        value = data[key]
        nested = f.metadata["nested"]
        if nested is not None and value is not None:
            value = _load(nested, value)
        kwargs[f.name] = value
    return cls(**kwargs)


@dataclass
class ClusterConfig:
    """Settings for joining and gossiping with a cluster."""

    node_name: str = _field("name")
    listen_addr: str = _field("listen", "", omitempty=False)
    advertise_addr: str = _field("advertise", "", omitempty=False)
    seed: str = _field("seed", "")
    passphrase: str = _field(factory=str)
    directory: str = _field("dir", "")

    def __post_init__(self) -> None:
        if self.node_name is None:
            self.node_name = ""


@dataclass
class LimitConfig:
    """Per-connection limits."""

    message_size: int = _field("messageSize", 0)
    read_rate: int = _field("readRate", 0)
    flush_rate: int = _field("flushRate", 0)


@dataclass
class TLSConfig:
    """Secure listener settings with certificate and private key files."""

    listen_addr: str = _field("listen", "")
    certificate: str = _field("certificate", "")
    private: str = _field(factory=str)


@dataclass
class ProviderConfig:
    """The name of a provider and its own settings."""

    provider: str = _field("provider", "", omitempty=False)
    config: Optional[dict] = _field("config")


@dataclass
class Config:
    """The main broker configuration."""

    listen_addr: str = _field("listen", "", omitempty=False)
    license: str = _field("license", "", omitempty=False)
    matcher: str = _field("matcher", "")
    debug: bool = _field("debug", False)
    limit: LimitConfig = _field("limit", nested=LimitConfig, factory=LimitConfig)
    tls: Optional[TLSConfig] = _field("tls", nested=TLSConfig)
    cluster: Optional[ClusterConfig] = _field("cluster", nested=ClusterConfig)
    storage: Optional[ProviderConfig] = _field("storage", nested=ProviderConfig)
    contract: Optional[ProviderConfig] = _field("contract", nested=ProviderConfig)
    metering: Optional[ProviderConfig] = _field("metering", nested=ProviderConfig)
    logging: Optional[ProviderConfig] = _field("logging", nested=ProviderConfig)
    monitor: Optional[ProviderConfig] = _field("monitor", nested=ProviderConfig)
    vault: Optional[dict] = _field("vault")
    dynamo: Optional[dict] = _field("dynamodb")

    _listen_addr: Optional[Tuple[str, int]] = field(default=None, init=False, repr=False, compare=False)

    def max_message_bytes(self) -> int:
        """The configured maximum message size, capped at 64 KiB."""
        size = self.limit.message_size
        if size <= 0 or size > _MAX_MESSAGE_SIZE:
            return _MAX_MESSAGE_SIZE
        return size

    def addr(self) -> Tuple[str, int]:
        """The parsed listen address; raises ValueError if it is invalid."""
        if self._listen_addr is None:
            self._listen_addr = parse_address(self.listen_addr, 8080)
        return self._listen_addr

    def certificate(self) -> Tuple[Optional[ssl.SSLContext], None, bool]:
        """Build the TLS context from the configured certificate files, if any."""
        tls = self.tls
        if tls is not None and tls.certificate and tls.private:
            context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
            context.load_cert_chain(tls.certificate, tls.private)
            _log.info("setting up certificates with file cache")
            return context, None, True

        _log.info("unable to configure certificates, make sure a valid cache or certificate is configured")
        return None, None, False

    def to_dict(self) -> dict:
        """The JSON form, leaving out empty optional settings."""
        return _dump(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Config":
        """Build a configuration from its JSON form."""
        return _load(cls, data)


def _local_ip() -> str:
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as probe:
            probe.connect(("10.255.255.255", 1))
            return probe.getsockname()[0]
    except OSError:
        return "127.0.0.1"


def _resolve_host(host: str) -> str:
    name = host.lower()
    if name in ("", "any"):
        return "0.0.0.0"
    if name in ("loopback", "localhost"):
        return "127.0.0.1"
    if name == "private":
        local = _local_ip()
        return local if ipaddress.ip_address(local).is_private else "127.0.0.1"
    if name in ("external", "public"):
        return _local_ip()
    try:
        return str(ipaddress.ip_address(host))
    except ValueError as exc:
        raise ValueError(f"invalid address {host!r}") from exc


def _split_host_port(text: str) -> Tuple[str, str]:
    if text.startswith("["):
        end = text.find("]")
        if end < 0:
            raise ValueError(f"missing ']' in address {text!r}")
        rest = text[end + 1:]
        if rest and not rest.startswith(":"):
            raise ValueError(f"invalid address {text!r}")
        return text[1:end], rest[1:]
    if text.count(":") == 1:
        host, port = text.split(":")
        return host, port
    return text, ""


def parse_address(text: str, default_port: int) -> Tuple[str, int]:
    """Parse ``host:port`` into an (ip, port) pair, using ``default_port`` if none is given.

    The host may be an IP literal, empty (all interfaces), or one of the words
    ``private``, ``external``, ``public``, ``loopback`` and ``localhost``.
    """
    host, port_text = _split_host_port(text.strip())
    if port_text:
        if not port_text.isdigit():
            raise ValueError(f"invalid port {port_text!r}")
        port = int(port_text)
    else:
        port = default_port
    if not 0 <= port <= 65535:
        raise ValueError(f"port {port} is out of range")
    return _resolve_host(host), port


def new_default() -> Config:
    """The configuration written when none exists yet."""
    return Config(
        listen_addr=":8080",
        tls=TLSConfig(listen_addr=":443"),
        cluster=ClusterConfig(listen_addr=":4000", advertise_addr="external:4000"),
        storage=ProviderConfig(provider="inmemory"),
    )


def read_or_create(filename: Union[str, "os.PathLike[str]"]) -> Config:
    """Read the configuration file, or write and return the defaults if it is missing."""
    path = Path(filename)
    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"unable to parse configuration, due to {exc}") from exc
        return Config.from_dict(data)

    config = new_default()
    path.write_text(json.dumps(config.to_dict(), indent=4), encoding="utf-8")
    return config