"""Offline-first content sync."""

from studypilot.services.sync.coordinator import SyncCoordinator
from studypilot.services.sync.lock import RedisSyncLock, SyncLock
from studypilot.services.sync.merge import merge_content
from studypilot.services.sync.network import HttpReachabilityOracle, ReachabilityOracle
from studypilot.services.sync.remote import HttpDeltaSource, RemoteDeltaSource
from studypilot.services.sync.scheduler import BackgroundScheduler, CeleryBeatScheduler

__all__ = [
    "SyncCoordinator",
    "merge_content",
    "ReachabilityOracle",
    "HttpReachabilityOracle",
    "RemoteDeltaSource",
    "HttpDeltaSource",
    "BackgroundScheduler",
    "CeleryBeatScheduler",
    "SyncLock",
    "RedisSyncLock",
]
