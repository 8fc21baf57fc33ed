"""Descriptions of ipset sets and entries, with their validation rules."""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union


class IPSetType(str, Enum):
    """Set types understood by the ``ipset`` utility."""

    HASH_IP_PORT = "hash:ip,port"
    HASH_IP_PORT_IP = "hash:ip,port,ip"
    HASH_IP_PORT_NET = "hash:ip,port,net"
    BITMAP_PORT = "bitmap:port"
    HASH_IP = "hash:ip"
    HASH_NET = "hash:net"

    def __str__(self) -> str:
        return self.value


DEFAULT_PORT_RANGE = "0-65535"
DEFAULT_HASH_SIZE = 1024
DEFAULT_MAX_ELEM = 65536

PROTOCOL_FAMILY_IPV4 = "inet"
PROTOCOL_FAMILY_IPV6 = "inet6"
PROTOCOL_TCP = "tcp"
PROTOCOL_UDP = "udp"
PROTOCOL_SCTP = "sctp"

VALID_IPSET_TYPES = (
    IPSetType.HASH_IP_PORT,
    IPSetType.HASH_IP_PORT_IP,
    IPSetType.BITMAP_PORT,
    IPSetType.HASH_IP_PORT_NET,
    IPSetType.HASH_IP,
    IPSetType.HASH_NET,
)

_FAMILY_CHECKED_TYPES = (
    IPSetType.HASH_IP_PORT,
    IPSetType.HASH_IP_PORT_IP,
    IPSetType.HASH_IP_PORT_NET,
    IPSetType.HASH_NET,
)

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")
_PREFIX_PATTERN = re.compile(r"[0-9]+")

SetTypeLike = Union[IPSetType, str]


class IPSetError(Exception):
    """Raised when an ipset description, entry or command is invalid."""


class AlreadyAddedEntryError(IPSetError):
    """Raised when an entry is added to a set that already holds it."""

    def __init__(self, message: str = "error already added entry") -> None:
        super().__init__(message)


def _type_name(set_type: SetTypeLike) -> str:
    return set_type.value if isinstance(set_type, IPSetType) else str(set_type)


def _atoi(text: str) -> int:
    if not _INT_PATTERN.fullmatch(text):
        raise ValueError(f"invalid syntax: {text!r}")
    return int(text)


def _parse_ip(text: str) -> Optional[ipaddress._BaseAddress]:
    if not text or "%" in text:
        return None
    try:
        return ipaddress.ip_address(text)
    except ValueError:
        return None


def _parse_cidr(text: str) -> ipaddress._BaseNetwork:
    address, sep, prefix = text.rpartition("/")
    if not sep or not _PREFIX_PATTERN.fullmatch(prefix):
        raise ValueError(f"invalid CIDR address: {text}")
    ip = _parse_ip(address)
    if ip is None:
        raise ValueError(f"invalid CIDR address: {text}")
    bits = int(prefix)
    if bits > ip.max_prefixlen:
        raise ValueError(f"invalid CIDR address: {text}")
    return ipaddress.ip_network(f"{ip}/{bits}", strict=False)


def parse_port_range(port_range: str) -> Tuple[int, int]:
    """Return ``(begin, end)`` of an ``a-b`` range, ordered so begin <= end.

    An empty range means the default ``0-65535``.
    """
    if not port_range:
        port_range = DEFAULT_PORT_RANGE
    parts = port_range.split("-")
    if len(parts) != 2:
        raise IPSetError("port range should be in the format of `a-b`")
    numbers = []
    for part in parts:
        try:
            num = _atoi(part)
        except ValueError as exc:
            raise IPSetError(str(exc)) from exc
        if num < 0:
            raise IPSetError(f"port number {num} should be >=0")
        numbers.append(num)
    begin, end = numbers
    return (min(begin, end), max(begin, end))


def validate_port_range(port_range: str) -> Tuple[int, int]:
    """Check an ``a-b`` port range; either order is accepted.

    Returns the two port numbers in the order given.
    """
    parts = port_range.split("-")
    if len(parts) != 2:
        raise IPSetError("port range should be in the format of `a-b`")
    numbers = []
    for part in parts:
        try:
            num = _atoi(part)
        except ValueError as exc:
            raise IPSetError(f"Failed to parse {part}, error: {exc}") from exc
        if num < 0:
            raise IPSetError(f"port number {num} should be >=0")
        numbers.append(num)
    return (numbers[0], numbers[1])


def validate_ipset_type(set_type: SetTypeLike) -> IPSetType:
    """Return the set type as an :class:`IPSetType`, or raise if unsupported."""
    for valid in VALID_IPSET_TYPES:
        if set_type == valid:
            return valid
    supported = "[" + " ".join(t.value for t in VALID_IPSET_TYPES) + "]"
    raise IPSetError(
        f"currently supported ipset types are: {supported}, "
        f"{_type_name(set_type)} is not supported"
    )


def validate_hash_family(family: str) -> str:
    """Return the hash family if it is ``inet`` or ``inet6``, else raise."""
    if family in (PROTOCOL_FAMILY_IPV4, PROTOCOL_FAMILY_IPV6):
        return family
    raise IPSetError(
        "currently supported ip set hash families are: "
        f"[{PROTOCOL_FAMILY_IPV4}, {PROTOCOL_FAMILY_IPV6}], {family} is not supported"
    )


def validate_protocol(protocol: str) -> str:
    """Return the protocol if it is tcp, udp or sctp, else raise."""
    if protocol in (PROTOCOL_TCP, PROTOCOL_UDP, PROTOCOL_SCTP):
        return protocol
    raise IPSetError(
        f"invalid entry's protocol: {protocol}, supported protocols are "
        f"[{PROTOCOL_TCP}, {PROTOCOL_UDP}, {PROTOCOL_SCTP}]"
    )


@dataclass
class IPSet:
    """A named ipset and its creation parameters."""

    name: str = ""
    set_type: SetTypeLike = ""
    hash_family: str = ""
    hash_size: int = 0
    max_elem: int = 0
    port_range: str = ""
    comment: str = ""

    def validate(self) -> None:
        """Raise :class:`IPSetError` if the set description is invalid."""
        if self.set_type in _FAMILY_CHECKED_TYPES:
            validate_hash_family(self.hash_family)
        validate_ipset_type(self.set_type)
        if self.set_type == IPSetType.BITMAP_PORT:
            validate_port_range(self.port_range)
        if self.hash_size <= 0:
            raise IPSetError(f"invalid hashsize value {self.hash_size}, should be >0")
        if self.max_elem <= 0:
            raise IPSetError(f"invalid maxelem value {self.max_elem}, should be >0")

    def set_defaults(self) -> None:
        """Fill unset fields with their default values."""
        if self.hash_size == 0:
            self.hash_size = DEFAULT_HASH_SIZE
        if self.max_elem == 0:
            self.max_elem = DEFAULT_MAX_ELEM
        if not self.hash_family:
            self.hash_family = PROTOCOL_FAMILY_IPV4
        if not self.set_type:
            self.set_type = IPSetType.HASH_IP_PORT
        if not self.port_range:
            self.port_range = DEFAULT_PORT_RANGE


@dataclass
class Entry:
    """One member of an ipset; which fields matter depends on the set type."""

    ip: str = ""
    port: int = 0
    protocol: str = ""
    net: str = ""
    ip2: str = ""
    set_type: SetTypeLike = ""

    def _check_ip_and_protocol(self, ipset: Optional[IPSet]) -> None:
        if not self.protocol:
            self.protocol = PROTOCOL_TCP
        else:
            validate_protocol(self.protocol)
        if _parse_ip(self.ip) is None:
            raise IPSetError(
                f"error parsing entry {self} ip address {self.ip} for ipset {ipset}"
            )

    def validate(self, ipset: Optional[IPSet]) -> None:
        """Raise :class:`IPSetError` if the entry is invalid for ``ipset``.

        An empty protocol is set to tcp for the port-carrying hash types.
        """
        if self.port < 0:
            raise IPSetError(
                f"entry {self} port number {self.port} should be >=0 for ipset {ipset}"
            )
        kind = self.set_type
        if kind == IPSetType.HASH_IP_PORT:
            self._check_ip_and_protocol(ipset)
        elif kind == IPSetType.HASH_IP_PORT_IP:
            self._check_ip_and_protocol(ipset)
            if _parse_ip(self.ip2) is None:
                raise IPSetError(
                    f"error parsing entry {self} second ip address {self.ip2} "
                    f"for ipset {ipset}"
                )
        elif kind == IPSetType.HASH_IP_PORT_NET:
            self._check_ip_and_protocol(ipset)
            try:
                _parse_cidr(self.net)
            except ValueError as exc:
                raise IPSetError(
                    f"error parsing entry {self} ip net {self.net} for ipset {ipset}, "
                    f"error: {exc}"
                ) from exc
        elif kind == IPSetType.BITMAP_PORT:
            if ipset is None:
                raise IPSetError(
                    f"unable to reference ip set where the entry {self} exists"
                )
            try:
                begin, end = parse_port_range(ipset.port_range)
            except IPSetError as exc:
                raise IPSetError(
                    f"failed to parse set {ipset} port range {ipset.port_range} "
                    f"for ipset {ipset}, error: {exc}"
                ) from exc
            if not begin <= self.port <= end:
                raise IPSetError(
                    f"entry {self} port number {self.port} is not in the port range "
                    f"{ipset.port_range} of its ipset {ipset}"
                )
        elif kind == IPSetType.HASH_IP:
            if _parse_ip(self.ip) is None:
                raise IPSetError(
                    f"failed to parse entry {self} ip {self.ip} for ipset {ipset}, "
                    f"error: {self.ip} is not a valid textual representation "
                    "of an IP address"
                )
        elif kind == IPSetType.HASH_NET:
            try:
                _parse_cidr(self.net)
            except ValueError as exc:
                raise IPSetError(
                    f"failed to parse entry {self} net {self.net} for ipset {ipset}, "
                    f"error: {exc}"
                ) from exc

    def __str__(self) -> str:
        kind = self.set_type
        if kind == IPSetType.HASH_IP_PORT:
            return f"{self.ip},{self.protocol}:{self.port}"
        if kind == IPSetType.HASH_IP_PORT_IP:
            return f"{self.ip},{self.protocol}:{self.port},{self.ip2}"
        if kind == IPSetType.HASH_IP_PORT_NET:
            return f"{self.ip},{self.protocol}:{self.port},{self.net}"
        if kind == IPSetType.BITMAP_PORT:
            return str(self.port)
        if kind == IPSetType.HASH_IP:
            return self.ip
        if kind == IPSetType.HASH_NET:
            return self.net
        return ""