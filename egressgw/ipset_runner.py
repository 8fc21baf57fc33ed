"""Run the ``ipset`` command-line utility to manage sets and their entries."""

from __future__ import annotations

import re
import subprocess
from typing import Callable, List, Sequence

from egressgw.ipset import IPSet, IPSetError, IPSetType

IPSET_CMD = "ipset"

# Everything up to and including the "Members:" line of `ipset list <set>` output.
ENTRY_MEMBER_PATTERN = re.compile(r"(?m)^(.*\n)*Members:\n")
VERSION_PATTERN = re.compile(r"v[0-9]+\.[0-9]+")

_FAMILY_TYPES = (
    IPSetType.HASH_IP_PORT_IP,
    IPSetType.HASH_IP_PORT,
    IPSetType.HASH_IP_PORT_NET,
    IPSetType.HASH_NET,
)

CommandRunner = Callable[[Sequence[str]], str]


def run_command(args: Sequence[str]) -> str:
    """Run ``args`` with empty stdin and return stdout and stderr combined.

    Raises :class:`subprocess.CalledProcessError` when the command exits with
    a non-zero status; its ``output`` holds what the command printed.
    """
    try:
        completed = subprocess.run(
            list(args),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            check=False,
        )
    except OSError as exc:
        raise subprocess.CalledProcessError(127, list(args), output=str(exc)) from exc
    if completed.returncode != 0:
        raise subprocess.CalledProcessError(
            completed.returncode, list(args), output=completed.stdout
        )
    return completed.stdout


def is_not_found_error(err: BaseException) -> bool:
    """Tell whether an error message says a set or an entry was not found."""
    message = str(err)
    return "does not exist" in message or "element is missing" in message


_FAILURES = (subprocess.CalledProcessError, OSError)


def _output_of(exc: BaseException) -> str:
    output = getattr(exc, "output", None)
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode(errors="replace")
    return str(output)


class Runner:
    """Manages ipsets by running the ``ipset`` utility through ``run``."""

    def __init__(self, run: CommandRunner = run_command) -> None:
        self._run = run

    def _ipset(self, *args: str) -> str:
        return self._run([IPSET_CMD, *args])

    def create_set(self, ipset: IPSet, ignore_exist_err: bool) -> None:
        """Create ``ipset`` after filling defaults and validating it.

        With ``ignore_exist_err`` an identical existing set is not an error.
        """
        ipset.set_defaults()
        try:
            ipset.validate()
        except IPSetError as exc:
            raise IPSetError(f"error creating ipset since it's invalid: {exc}") from exc

        args = ["create", ipset.name, str(ipset.set_type)]
        if ipset.set_type in _FAMILY_TYPES:
            args += [
                "family", ipset.hash_family,
                "hashsize", str(ipset.hash_size),
                "maxelem", str(ipset.max_elem),
            ]
        if ipset.set_type == IPSetType.BITMAP_PORT:
            args += ["range", ipset.port_range]
        if ignore_exist_err:
            args.append("-exist")
        try:
            self._ipset(*args)
        except _FAILURES as exc:
            raise IPSetError(
                f"error creating ipset {ipset.name}, error: {exc}, out: {_output_of(exc)}"
            ) from exc

    def add_entry(self, entry: str, ipset: IPSet, ignore_exist_err: bool) -> None:
        """Add ``entry`` to the set; ``ignore_exist_err`` tolerates duplicates."""
        args = ["add", ipset.name, entry]
        if ignore_exist_err:
            args.append("-exist")
        try:
            self._ipset(*args)
        except _FAILURES as exc:
            raise IPSetError(f"error adding entry {entry}, error: {exc}") from exc

    def del_entry(self, entry: str, set_name: str) -> None:
        """Delete ``entry`` from the named set."""
        try:
            self._ipset("del", set_name, entry)
        except _FAILURES as exc:
            raise IPSetError(
                f"error deleting entry {entry}: from set: {set_name}, error: {exc}"
            ) from exc

    def test_entry(self, entry: str, set_name: str) -> bool:
        """Return whether ``entry`` is in the named set."""
        try:
            out = self._ipset("test", set_name, entry)
        except _FAILURES as exc:
            raise IPSetError(
                f"error testing entry {entry}: {exc} ({_output_of(exc)})"
            ) from exc
        try:
            pattern = re.compile("is NOT in set " + set_name)
        except re.error as exc:
            raise IPSetError(f"error testing entry: {entry}, error: {exc}") from exc
        return pattern.search(out) is None

    def flush_set(self, set_name: str) -> None:
        """Delete every entry of the named set, keeping the set."""
        try:
            self._ipset("flush", set_name)
        except _FAILURES as exc:
            raise IPSetError(f"error flushing set: {set_name}, error: {exc}") from exc

    def destroy_set(self, set_name: str) -> None:
        """Destroy the named set."""
        try:
            self._ipset("destroy", set_name)
        except _FAILURES as exc:
            raise IPSetError(
                f"error destroying set {set_name}, error: {exc}({_output_of(exc)})"
            ) from exc

    def destroy_all_sets(self) -> None:
        """Destroy every set."""
        try:
            self._ipset("destroy")
        except _FAILURES as exc:
            raise IPSetError(f"error destroying all sets, error: {exc}") from exc

    def list_sets(self) -> List[str]:
        """Return the lines of ``ipset list -n``, one set name per line."""
        try:
            out = self._ipset("list", "-n")
        except _FAILURES as exc:
            raise IPSetError(f"error listing all sets, error: {exc}") from exc
        return out.split("\n")

    def list_entries(self, set_name: str) -> List[str]:
        """Return the members of the named set."""
        if not set_name:
            raise IPSetError("set name can't be nil")
        try:
            out = self._ipset("list", set_name)
        except _FAILURES as exc:
            raise IPSetError(
                f"error listing set: {set_name}, error: {exc} ({_output_of(exc)})"
            ) from exc
        members = ENTRY_MEMBER_PATTERN.sub("", out)
        return [line for line in members.split("\n") if line]

    def get_version(self) -> str:
        """Return the version reported by ``ipset --version``, such as ``v6.10``."""
        try:
            out = self._ipset("--version")
        except _FAILURES as exc:
            raise IPSetError(str(exc)) from exc
        match = VERSION_PATTERN.search(out)
        if match is None:
            raise IPSetError(f"no ipset version found in string: {out}")
        return match.group(0)