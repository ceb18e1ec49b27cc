"""Flushes a CaptureSet into a named bundle.

The active bundle is session-wide state. The orchestrator holds it as a
switch/restore pair: whatever happens while writing, the CaptureSet is
cleared and the caller's original bundle is put back.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from .capture_set import CaptureSet
from .errors import BundleRestoreWarning, InvalidArgument
from .models import Bundle, CommitResult, Skipped, Written, is_null
from .store.base import BundleManager, RecordStore, ScopeResolver

logger = logging.getLogger(__name__)


class CommitOrchestrator:
    def __init__(self, store: RecordStore, bundles: BundleManager, scope_resolver: ScopeResolver):
        self.store = store
        self.bundles = bundles
        self.scope_resolver = scope_resolver

    def resolve_bundle(self, name: str) -> tuple[Bundle, bool]:
        scope = self.scope_resolver.current_scope()
        bundle = self.bundles.find_bundle(scope, name)
        if bundle is not None:
            logger.info(f"EXISTING bundle named '{name}' found in scope '{scope}'")
            return bundle, False
        bundle = self.bundles.create_bundle(scope, name)
        logger.info(f"CREATED new bundle named '{name}' in scope '{scope}'")
        return bundle, True

    def commit(self, bundle_name: str, capture_set: CaptureSet) -> CommitResult:
        if is_null(bundle_name):
            raise InvalidArgument("commit: parameter 'bundle_name' is nil!")

        bundle, created = self.resolve_bundle(str(bundle_name))
        original = self.bundles.get_active()
        logger.info(f"Writing {len(capture_set)} captured objects to bundle '{bundle.name}' (active was {original!r})")

        result = CommitResult(bundle=bundle, created=created)
        try:
            with self._switched(bundle, original, result):
                for ref in capture_set:
                    try:
                        row = self.store.get(ref.container_name, ref.store_identifier)
                        if row is None:
                            reason = f"no {ref.container_name} found for sys_id '{ref.store_identifier}'"
                            logger.warning(f"Skipping {ref}: {reason}")
                            result.entries.append(Skipped(ref, reason))
                            continue
                        self.bundles.save_row(row)
                        result.entries.append(Written(ref))
                    except Exception as e:
                        logger.warning(f"Skipping {ref}: {e}")
                        result.entries.append(Skipped(ref, f"{type(e).__name__}: {e}"))
        finally:
            capture_set.clear()

        logger.info(f"Wrote {result.written} of {result.attempted} captured objects to bundle '{bundle.name}'")
        return result

    @contextmanager
    def _switched(self, bundle: Bundle, original: Optional[str], result: CommitResult) -> Iterator[None]:
        try:
            logger.info(f"Moving to bundle '{bundle.name}'")
            self.bundles.set_active(bundle.sys_id)
            yield
        finally:
            self._restore(original, result)

    def _restore(self, original: Optional[str], result: CommitResult) -> None:
        try:
            self.bundles.set_active(original)
            restored = self.bundles.get_active() == original
            problem = "active bundle still differs after switching back"
        except Exception as e:
            restored = False
            problem = f"{type(e).__name__}: {e}"

        result.restored = restored
        if restored:
            logger.info(f"Moved back to original bundle {original!r}")
            return

        message = f"Failed to move back to original bundle {original!r} ({problem}); switch back manually"
        result.warnings.append(BundleRestoreWarning(message))
        logger.warning(message)
