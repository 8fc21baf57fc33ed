"""Status records of an egress gateway and lookups over its node list."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, MutableSequence, Optional


class TunnelPhase(str, Enum):
    """Phases of a node's egress tunnel that gateway allocation cares about."""

    READY = "Ready"
    FAILED = "Failed"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Policy:
    """Reference to an egress policy; an empty namespace means cluster scope."""

    name: str
    namespace: str = ""

    @property
    def is_cluster_scoped(self) -> bool:
        return not self.namespace


@dataclass
class Eip:
    """An egress IP pair on a gateway node and the policies that use it."""

    ipv4: str = ""
    ipv6: str = ""
    policies: List[Policy] = field(default_factory=list)


@dataclass
class EgressIPStatus:
    """A gateway node, its tunnel status and the egress IPs it carries."""

    name: str
    eips: List[Eip] = field(default_factory=list)
    status: str = ""

    @property
    def is_ready(self) -> bool:
        return self.status == TunnelPhase.READY.value

    def policies(self) -> List[Policy]:
        """Return every policy bound to this node, in order."""
        return [policy for eip in self.eips for policy in eip.policies]


def _all_eips(node_list: Iterable[EgressIPStatus]):
    for node in node_list:
        for eip in node.eips:
            yield node, eip


def get_eip_by_ipv4(ipv4: str, node_list: Iterable[EgressIPStatus]) -> Eip:
    """Return the last EIP whose IPv4 address is ``ipv4``, or an empty one."""
    found = Eip()
    for _, eip in _all_eips(node_list):
        if eip.ipv4 == ipv4:
            found = eip
    return found


def get_eip_by_ipv6(ipv6: str, node_list: Iterable[EgressIPStatus]) -> Eip:
    """Return the last EIP whose IPv6 address is ``ipv6``, or an empty one."""
    found = Eip()
    for _, eip in _all_eips(node_list):
        if eip.ipv6 == ipv6:
            found = eip
    return found


def get_node_by_ip(ipv4: str, node_list: Iterable[EgressIPStatus]) -> str:
    """Return the name of the last node holding the IPv4 EIP, or ``""``."""
    name = ""
    for node, eip in _all_eips(node_list):
        if eip.ipv4 == ipv4:
            name = node.name
    return name


def get_policies_by_node(
    node_name: str, node_list: Iterable[EgressIPStatus]
) -> Optional[List[Policy]]:
    """Return the policies bound to the named node.

    Returns ``None`` when the node is not in the list at all, so that a node
    without policies (an empty list) can be told apart from a missing one.
    """
    match: Optional[EgressIPStatus] = None
    for node in node_list:
        if node.name == node_name:
            match = node
    if match is None:
        return None
    return match.policies()


def get_eip_status_by_policy(
    policy: Policy, node_list: Iterable[EgressIPStatus]
) -> Optional[EgressIPStatus]:
    """Return the last node whose EIPs reference ``policy``, or ``None``."""
    found: Optional[EgressIPStatus] = None
    for node, eip in _all_eips(node_list):
        if policy in eip.policies:
            found = node
    return found


def delete_policy_from_gateway(
    policy: Policy, node_list: MutableSequence[EgressIPStatus]
) -> bool:
    """Remove the first reference to ``policy`` from the node list in place.

    When the EIP that held it is left without policies, the EIP is released:
    the first EIP of the node sharing its IPv4 or its IPv6 address is removed.
    Returns whether a reference was found.
    """
    for node in node_list:
        for eip in node.eips:
            if policy not in eip.policies:
                continue
            remaining = list(eip.policies)
            remaining.remove(policy)
            if remaining:
                eip.policies = remaining
            else:
                released = next(
                    (
                        index
                        for index, other in enumerate(node.eips)
                        if eip.ipv4 == other.ipv4 or eip.ipv6 == other.ipv6
                    ),
                    None,
                )
                if released is None:
                    node.eips = []
                else:
                    node.eips = node.eips[:released] + node.eips[released + 1:]
            return True
    return False