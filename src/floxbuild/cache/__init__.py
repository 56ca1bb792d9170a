"""Incremental build-cache and source tarball APIs."""

from .archive import cache_members, extract_source, md5_checksums, merge_cache, write_cache

__all__ = ["cache_members", "extract_source", "md5_checksums", "merge_cache", "write_cache"]
