"""Choosing gateway nodes for egress policies and recording the bindings."""

from __future__ import annotations

from typing import Dict, MutableMapping

from egressgw.gateway_status import EgressIPStatus, Eip, Policy


class GatewayError(Exception):
    """Raised when a gateway node cannot be chosen or updated."""


def _policy_count(node: EgressIPStatus) -> int:
    return sum(len(eip.policies) for eip in node.eips)


def allocate_node(node_map: Dict[str, EgressIPStatus]) -> str:
    """Return the ready node carrying the fewest policies.

    Among nodes with equally few policies the one seen last wins. Returns
    ``""`` when no node is ready, and raises :class:`GatewayError` when the
    map is empty.
    """
    if not node_map:
        raise GatewayError("nodeList is empty")

    chosen = ""
    chosen_count = 0
    seen_ready = False
    for node in node_map.values():
        if not node.is_ready:
            continue
        count = _policy_count(node)
        if not seen_ready or count <= chosen_count:
            seen_ready = True
            chosen = node.name
            chosen_count = count
    return chosen


def set_eip_status(
    ipv4: str,
    ipv6: str,
    node_name: str,
    policy: Policy,
    node_map: MutableMapping[str, EgressIPStatus],
) -> None:
    """Bind ``policy`` to the EIP with address ``ipv4`` on the named node.

    Every EIP of the node whose IPv4 address equals ``ipv4`` gains the policy;
    the node record is then rebuilt from its name and EIPs alone. When no EIP
    matches, a new EIP ``(ipv4, ipv6)`` holding the policy is added and the
    node keeps its status. An empty ``node_name`` does nothing; a node missing
    from the map raises :class:`GatewayError`.
    """
    if not node_name:
        return

    current = node_map.get(node_name)
    if current is None:
        raise GatewayError(f"the {node_name} node is not a gateway node")

    found = False
    rebuilt = []
    for eip in current.eips:
        policies = list(eip.policies)
        if eip.ipv4 == ipv4:
            policies.append(policy)
            found = True
        rebuilt.append(Eip(ipv4=eip.ipv4, ipv6=eip.ipv6, policies=policies))

    if found:
        node_map[node_name] = EgressIPStatus(name=node_name, eips=rebuilt)
    else:
        new_eip = Eip(ipv4=ipv4, ipv6=ipv6, policies=[policy])
        node_map[node_name] = EgressIPStatus(
            name=current.name,
            eips=list(current.eips) + [new_eip],
            status=current.status,
        )