import pytest

from egressgw.ipset import (
    DEFAULT_PORT_RANGE,
    PROTOCOL_FAMILY_IPV4,
    PROTOCOL_FAMILY_IPV6,
    PROTOCOL_TCP,
    AlreadyAddedEntryError,
    Entry,
    IPSet,
    IPSetError,
    IPSetType,
    parse_port_range,
    validate_hash_family,
    validate_ipset_type,
    validate_port_range,
    validate_protocol,
)


def test_set_defaults_fills_empty_fields():
    s = IPSet(name="foo")
    s.set_defaults()
    assert s.hash_size == 1024
    assert s.max_elem == 65536
    assert s.hash_family == PROTOCOL_FAMILY_IPV4
    assert s.set_type == IPSetType.HASH_IP_PORT
    assert s.port_range == DEFAULT_PORT_RANGE


def test_set_defaults_keeps_explicit_values():
    s = IPSet(
        name="foo",
        set_type=IPSetType.HASH_NET,
        hash_family=PROTOCOL_FAMILY_IPV6,
        hash_size=7,
        max_elem=9,
        port_range="1-2",
    )
    s.set_defaults()
    assert (s.set_type, s.hash_family, s.hash_size, s.max_elem, s.port_range) == (
        IPSetType.HASH_NET,
        PROTOCOL_FAMILY_IPV6,
        7,
        9,
        "1-2",
    )


def test_validate_after_defaults_leaves_set_unchanged():
    s = IPSet(name="foo")
    s.set_defaults()
    before = IPSet(**vars(s))
    s.validate()
    assert s == before


@pytest.mark.parametrize("field", ["hash_size", "max_elem"])
def test_validate_rejects_non_positive_sizes(field):
    s = IPSet(name="foo")
    s.set_defaults()
    setattr(s, field, -1)
    with pytest.raises(IPSetError, match=field.replace("_", "")):
        s.validate()


def test_validate_rejects_unknown_family_for_hash_net():
    s = IPSet(name="foo", set_type=IPSetType.HASH_NET, hash_family="bogus",
              hash_size=1, max_elem=1)
    with pytest.raises(IPSetError, match="bogus is not supported"):
        s.validate()


def test_validate_rejects_unknown_type():
    s = IPSet(name="foo", set_type="list:set", hash_size=1, max_elem=1)
    with pytest.raises(IPSetError, match="list:set is not supported"):
        s.validate()


def test_validate_rejects_bad_bitmap_port_range():
    s = IPSet(name="foo", set_type=IPSetType.BITMAP_PORT, port_range="abc",
              hash_size=1, max_elem=1)
    with pytest.raises(IPSetError, match="a-b"):
        s.validate()


def test_validate_ipset_type_accepts_strings():
    assert validate_ipset_type("hash:ip") is IPSetType.HASH_IP
    assert validate_ipset_type(IPSetType.BITMAP_PORT) is IPSetType.BITMAP_PORT


def test_validate_hash_family():
    assert validate_hash_family(PROTOCOL_FAMILY_IPV6) == PROTOCOL_FAMILY_IPV6
    with pytest.raises(IPSetError):
        validate_hash_family("inet4")


def test_validate_protocol():
    assert validate_protocol("sctp") == "sctp"
    with pytest.raises(IPSetError, match="icmp"):
        validate_protocol("icmp")


def test_validate_port_range_keeps_order():
    assert validate_port_range("100-1") == (100, 1)
    for bad in ("1-2-3", "x-1", "", "5"):
        with pytest.raises(IPSetError):
            validate_port_range(bad)


def test_parse_port_range_orders_and_defaults():
    assert parse_port_range("100-1") == (1, 100)
    assert parse_port_range("1-100") == (1, 100)
    assert parse_port_range("") == parse_port_range(DEFAULT_PORT_RANGE)
    assert parse_port_range("") == (0, 65535)


@pytest.mark.parametrize("bad", ["1-2-3", "a-b", "-1-5", "1 -2", "1_0-2"])
def test_parse_port_range_errors(bad):
    with pytest.raises(IPSetError):
        parse_port_range(bad)


@pytest.mark.parametrize(
    "entry, expected",
    [
        (Entry(ip="192.168.1.1", protocol="udp", port=53,
               set_type=IPSetType.HASH_IP_PORT), "192.168.1.1,udp:53"),
        (Entry(ip="192.168.1.2", protocol="tcp", port=8080,
               set_type=IPSetType.HASH_IP_PORT), "192.168.1.2,tcp:8080"),
        (Entry(ip="192.168.1.1", protocol="udp", port=53, ip2="10.0.0.1",
               set_type=IPSetType.HASH_IP_PORT_IP), "192.168.1.1,udp:53,10.0.0.1"),
        (Entry(ip="192.168.1.2", protocol="udp", port=80, net="10.0.1.0/24",
               set_type=IPSetType.HASH_IP_PORT_NET), "192.168.1.2,udp:80,10.0.1.0/24"),
        (Entry(port=8080, set_type=IPSetType.BITMAP_PORT), "8080"),
        (Entry(ip="127.0.0.1", set_type=IPSetType.HASH_IP), "127.0.0.1"),
        (Entry(net="10.10.0.0/16", set_type=IPSetType.HASH_NET), "10.10.0.0/16"),
        (Entry(ip="127.0.0.1", set_type=""), ""),
    ],
)
def test_entry_str(entry, expected):
    assert str(entry) == expected


def test_entry_validate_defaults_protocol_to_tcp():
    e = Entry(ip="192.168.1.1", port=53, set_type=IPSetType.HASH_IP_PORT)
    e.validate(IPSet(name="foo"))
    assert e.protocol == PROTOCOL_TCP


def test_entry_validate_negative_port():
    e = Entry(ip="192.168.1.1", port=-1, set_type=IPSetType.HASH_IP)
    with pytest.raises(IPSetError, match="should be >=0"):
        e.validate(None)


def test_entry_validate_bad_protocol():
    e = Entry(ip="192.168.1.1", protocol="icmp", port=1,
              set_type=IPSetType.HASH_IP_PORT)
    with pytest.raises(IPSetError, match="protocol"):
        e.validate(None)


def test_entry_validate_bad_ip():
    e = Entry(ip="not-an-ip", port=1, set_type=IPSetType.HASH_IP_PORT)
    with pytest.raises(IPSetError, match="not-an-ip"):
        e.validate(None)


def test_entry_validate_missing_second_ip():
    e = Entry(ip="192.168.1.1", port=1, set_type=IPSetType.HASH_IP_PORT_IP)
    with pytest.raises(IPSetError, match="second ip"):
        e.validate(None)


@pytest.mark.parametrize("net", ["", "10.0.1.0", "10.0.1.0/33", "10.0.0.0/255.0.0.0"])
def test_entry_validate_bad_net(net):
    e = Entry(ip="192.168.1.1", port=1, net=net, set_type=IPSetType.HASH_IP_PORT_NET)
    with pytest.raises(IPSetError, match="ip net"):
        e.validate(None)
    with pytest.raises(IPSetError, match="net"):
        Entry(net=net, set_type=IPSetType.HASH_NET).validate(None)


def test_entry_validate_net_with_host_bits_is_accepted():
    e = Entry(ip="fd00::1", port=1, net="fd00::5/64",
              set_type=IPSetType.HASH_IP_PORT_NET)
    e.validate(None)
    assert e.protocol == PROTOCOL_TCP


def test_entry_validate_bitmap_port_needs_set():
    with pytest.raises(IPSetError, match="unable to reference"):
        Entry(port=80, set_type=IPSetType.BITMAP_PORT).validate(None)


def test_entry_validate_bitmap_port_out_of_range():
    s = IPSet(name="ports", set_type=IPSetType.BITMAP_PORT, port_range="200-100")
    with pytest.raises(IPSetError, match="not in the port range"):
        Entry(port=99, set_type=IPSetType.BITMAP_PORT).validate(s)
    with pytest.raises(IPSetError, match="not in the port range"):
        Entry(port=201, set_type=IPSetType.BITMAP_PORT).validate(s)


def test_entry_validate_bitmap_port_bad_set_range():
    s = IPSet(name="ports", set_type=IPSetType.BITMAP_PORT, port_range="x-1")
    with pytest.raises(IPSetError, match="failed to parse set"):
        Entry(port=1, set_type=IPSetType.BITMAP_PORT).validate(s)


def test_entry_validate_hash_ip_rejects_zone():
    with pytest.raises(IPSetError, match="not a valid textual representation"):
        Entry(ip="fe80::1%eth0", set_type=IPSetType.HASH_IP).validate(None)


def test_already_added_entry_error():
    err = AlreadyAddedEntryError()
    assert isinstance(err, IPSetError)
    assert str(err) == "error already added entry"