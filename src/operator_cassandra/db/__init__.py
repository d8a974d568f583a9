"""Durable coordinator state: decommission jobs and member addresses."""

from operator_cassandra.db.addresses import AddressDB
from operator_cassandra.db.jobs import JobDB

__all__ = ["AddressDB", "JobDB"]
