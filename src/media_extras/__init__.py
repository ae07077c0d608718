"""Media Extras -- keep per-show metadata documents and artwork in sync.

Core modules:
    engine       -- Reconciliation: hash-gated metadata writes, move-on-rename,
                    duplicate record collapsing (match_one), image slots that
                    never overwrite files already on disk.
    images       -- Image acquisition (httpx download or local copy) with
                    failures logged and retried on the next pass.
    existing     -- Adopts extra files already on disk by asking each consumer
                    to recognize them; episode files must map to one media file.
    store        -- SQLite store for items, media file ids and extra file records.
    runner       -- Caller pipeline: load, discover, reconcile, persist; thread
                    pool for many shows with one in-flight run per show.
    config       -- Configuration via pydantic-settings (.env + env vars).
    cli          -- Click CLI (sync, import, relocate, discover, housekeep).
    disk         -- Filesystem primitives and permission normalization.
    parsing      -- Season/episode references from file names.
    library      -- Show folder scan into LibraryItem and MediaFile values.
    clean        -- Pre-resync removal of stale records.
    housekeeping -- Sweep that deletes HTML-masquerading artwork.
    fingerprint  -- Content hashing and path comparison.

Subpackages:
    api       -- HTTP download client
    consumers -- Consumer contract, registry, and the built-in Kodi consumer
"""
