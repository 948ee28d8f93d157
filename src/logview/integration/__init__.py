from .rest_client import SnapshotFetcher, SnapshotFetchError
from .live_subscriber import LiveEventSubscriber, ReconnectPolicy
