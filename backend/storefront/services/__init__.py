"""Services Layer — transactional shells around the pure core.

Invariants:
    - Every mutating method holds the owner's lock and commits once
    - Services talk to persistence only through RecordStore

Design Decisions:
    - One service per aggregate (addresses, carts); no shared base class
"""
