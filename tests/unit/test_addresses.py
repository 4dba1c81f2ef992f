"""Tests for the tunnel address pool."""

from __future__ import annotations

import random

import pytest

from tunnelctl.errors import AssignmentFailed
from tunnelctl.session.addresses import DEFAULT_ADDRESSES, AddressPool
from tunnelctl.session.models import ADDRESS_PLACEHOLDER


def test_acquire_leases_distinct_addresses():
    pool = AddressPool(rng=random.Random(1))
    leased = {pool.acquire() for _ in range(len(DEFAULT_ADDRESSES))}
    assert leased == set(DEFAULT_ADDRESSES)
    assert ADDRESS_PLACEHOLDER not in leased
    assert pool.available == 0


def test_exhausted_pool_raises():
    pool = AddressPool(["10.0.0.1"])
    pool.acquire()
    with pytest.raises(AssignmentFailed):
        pool.acquire()


def test_empty_pool_raises():
    with pytest.raises(AssignmentFailed):
        AddressPool([]).acquire()


def test_release_returns_address():
    pool = AddressPool(["10.0.0.1"])
    address = pool.acquire()
    pool.release(address)
    assert pool.available == 1
    assert pool.acquire() == "10.0.0.1"


def test_release_of_unknown_address_is_ignored():
    pool = AddressPool(["10.0.0.1"])
    pool.release("192.0.2.99")
    assert pool.available == 1


def test_duplicate_addresses_collapse():
    pool = AddressPool(["10.0.0.1", "10.0.0.1", "10.0.0.2"])
    assert pool.available == 2
