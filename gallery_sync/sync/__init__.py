"""Optimistic mutation queue and snapshot reconciliation engine."""

from gallery_sync.sync.collection_view import CollectionView
from gallery_sync.sync.mutation_queue import MutationQueue, MutationTask
from gallery_sync.sync.optimistic_store import DeletionMask, OptimisticStore
from gallery_sync.sync.reconciler import reconcile

__all__ = [
    "CollectionView",
    "DeletionMask",
    "MutationQueue",
    "MutationTask",
    "OptimisticStore",
    "reconcile",
]
