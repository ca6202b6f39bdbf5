"""Shared fakes for the test suite."""

import threading
from typing import Iterable, List

from trafficmeter.counters import CounterError, LinkType, RawInterface


class FakeTicks:
    """Controllable 32-bit millisecond tick source."""

    def __init__(self, start: int = 1_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now = (self.now + ms) & 0xFFFFFFFF


class FakeClock:
    """Controllable wall clock returning epoch seconds."""

    def __init__(self, now: float):
        self.now = now

    def __call__(self) -> float:
        return self.now


def raw(name, bytes_in=0, bytes_out=0, link_type=LinkType.ETHERNET, oper_up=True):
    return RawInterface(
        name=name,
        description=f"{name} adapter",
        oper_up=oper_up,
        link_type=link_type,
        bytes_in=bytes_in,
        bytes_out=bytes_out,
    )


class FakeSource:
    """Counter source whose report is set by the test before each cycle."""

    def __init__(self, interfaces: Iterable[RawInterface] = ()):
        self.interfaces: List[RawInterface] = list(interfaces)
        self.fail = False
        self.calls = 0

    def set(self, *interfaces: RawInterface) -> None:
        self.interfaces = list(interfaces)

    def read(self) -> List[RawInterface]:
        self.calls += 1
        if self.fail:
            raise CounterError("simulated failure")
        return list(self.interfaces)


class BlockingSource:
    """Counter source that hangs until released."""

    def __init__(self):
        self.release = threading.Event()

    def read(self) -> List[RawInterface]:
        self.release.wait(5)
        return []
