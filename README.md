# egressgw

This package helps with two jobs around egress gateways on Linux hosts:

- **ipset management**: describe sets and entries, validate them, and
  drive the `ipset` command-line tool.
- **egress IP bookkeeping**: keep track of which gateway node holds which
  egress IP (EIP) and which policies use it, and choose a node for a policy.

## Install

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## ipset descriptions

`egressgw.ipset` describes sets (`IPSet`) and entries (`Entry`) and checks
them before they are sent to the kernel. Set types are the `IPSetType`
enum: `hash:ip,port`, `hash:ip,port,ip`, `hash:ip,port,net`, `bitmap:port`,
`hash:ip` and `hash:net`.

```python
from egressgw.ipset import IPSet, IPSetType, Entry

s = IPSet(name="egress-dst", set_type=IPSetType.HASH_NET)
s.set_defaults()   # hashsize 1024, maxelem 65536, family inet, range 0-65535
s.validate()       # raises IPSetError when something is wrong

e = Entry(net="10.10.0.0/16", set_type=IPSetType.HASH_NET)
e.validate(s)      # raises IPSetError when the entry does not fit the set
str(e)             # "10.10.0.0/16"
```

For the port-carrying hash types, `Entry.validate` sets an empty protocol
to `tcp`. The module also provides:

- `parse_port_range("100-1")` returns `(1, 100)`; an empty string means
  `0-65535`.
- `validate_port_range` checks an `a-b` range and returns the two numbers
  in the order given.
- `validate_ipset_type`, `validate_hash_family` (`inet` or `inet6`) and
  `validate_protocol` (`tcp`, `udp` or `sctp`) raise `IPSetError` for
  values they do not accept.

`AlreadyAddedEntryError` is a subclass of `IPSetError` for an entry that a
set already holds.

## Running ipset

`egressgw.ipset_runner.Runner` calls the `ipset` binary. It takes a
callable that runs an argument list and returns the combined output. The
default is `run_command`, which runs the command through `subprocess` and
raises `subprocess.CalledProcessError` on a non-zero exit. To use it in
tests, pass a stub in its place.

```python
from egressgw.ipset_runner import Runner, run_command

ipset = Runner(run_command)
ipset.create_set(s, ignore_exist_err=True)    # fills defaults, validates, adds -exist
ipset.add_entry(str(e), s, ignore_exist_err=True)
ipset.test_entry(str(e), "egress-dst")        # True unless "is NOT in set" is printed
ipset.list_entries("egress-dst")              # ["10.10.0.0/16"]
ipset.list_sets()                             # lines of `ipset list -n`
ipset.get_version()                           # e.g. "v7.15"
ipset.del_entry(str(e), "egress-dst")
ipset.flush_set("egress-dst")
ipset.destroy_set("egress-dst")
ipset.destroy_all_sets()
```

Every failure is raised as `IPSetError`. `is_not_found_error(err)` tells
whether an error's message says that a set does not exist or that an
element is missing.

## Gateway status

`egressgw.gateway_status` models a gateway's node list:

- `EgressIPStatus` is one node, with its `name`, its `eips` and its tunnel
  `status`.
- `Eip` is an IPv4/IPv6 pair and its `policies`.
- `Policy` is a name and namespace. An empty namespace means the policy is
  cluster-scoped.
- `TunnelPhase` holds `Ready` and `Failed`.

The lookups are these:

- `get_eip_by_ipv4` and `get_eip_by_ipv6` return the matching `Eip`, or an
  empty one.
- `get_node_by_ip` returns the name of the node holding an IPv4 EIP, or `""`.
- `get_policies_by_node` returns the node's policies, or `None` when the
  node is not listed.
- `get_eip_status_by_policy` returns the node whose EIPs reference the
  policy, or `None`.

`delete_policy_from_gateway(policy, node_list)` removes the first reference
to a policy in place. When that leaves the EIP without policies, it releases
the EIP. It returns whether a reference was found.

## Allocation

`egressgw.allocation` chooses a node and records the binding:

```python
from egressgw.allocation import allocate_node, set_eip_status
from egressgw.gateway_status import EgressIPStatus, Policy

node_map = {
    "node-a": EgressIPStatus(name="node-a", status="Ready"),
    "node-b": EgressIPStatus(name="node-b", status="Failed"),
}
policy = Policy(name="web", namespace="default")

node = allocate_node(node_map)   # "node-a": the ready node with the fewest policies
set_eip_status("10.6.0.10", "", node, policy, node_map)
```

`allocate_node` behaves as follows:

- It raises `GatewayError` for an empty map.
- It returns `""` when no node is ready.

`set_eip_status` behaves as follows:

- It adds the policy to an existing EIP with the same IPv4 address, or
  appends a new EIP.
- It does nothing for an empty node name.
- It raises `GatewayError` when the named node is not in the map.

## What this package does not do

This package does not talk to a cluster API server, and it does not watch
or update gateway and policy resources. It does not validate or mutate
admission requests. It does not choose free egress addresses from IP pools.
It offers the bookkeeping pieces that such a controller would use, but no
controller, server or command of its own.