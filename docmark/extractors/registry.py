# docmark/extractors/registry.py
"""
ExtractorRegistry - priority-ordered dispatch of inputs to extractors.

Architecture:
    ┌──────────────────────────────────────────┐
    │            ExtractorRegistry             │
    │  sorted by priority (lower = tried first)│
    └──────────────────────────────────────────┘
          │          │           │          │
          ▼          ▼           ▼          ▼
       zip/csv    notebook    docling    plaintext
       (0.0)       (0.0)       (0.0)      (10.0)

Each candidate is asked accepts_metadata() and, only if that passes,
accepts_content(). The first extractor to accept wins. Archives re-enter the
same registry for each member.

Usage:
    registry = ExtractorRegistry()
    extractor, result = registry.extract(stream, descriptor, context)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import BinaryIO, Iterator, List, Optional, Tuple

from docmark.core.cancellation import CancellationToken
from docmark.core.descriptor import InputDescriptor
from docmark.core.exceptions import (
    ConversionCancelled,
    ConversionError,
    ResourceError,
    UnsupportedFormatError,
)
from docmark.extractors.base import ExtractionContext, ExtractionResult, Extractor
from docmark.logging.logger import get_logger
from docmark.logging.tags import DISPATCH

logger = get_logger(__name__)

PRIORITY_SPECIFIC_FORMAT = 0.0
PRIORITY_GENERIC_FORMAT = 10.0


@dataclass(frozen=True)
class ExtractorRegistration:
    extractor: Extractor
    priority: float
    order: int

    @property
    def name(self) -> str:
        return self.extractor.plugin_name


@dataclass
class ExtractorRegistry:
    """
    Priority-ordered pool of extractors.

    Ties in priority are broken by registration order, so dispatch is
    deterministic for a given registry state.

    Example:
        registry = ExtractorRegistry(register_defaults=False)
        registry.register(CSVExtractor())
        extractor = registry.select(stream, descriptor)
    """

    register_defaults: bool = True
    disabled: List[str] = field(default_factory=list)
    _registrations: List[ExtractorRegistration] = field(default_factory=list, repr=False)
    _counter: int = field(default=0, repr=False)

    def __post_init__(self) -> None:
        if self.register_defaults:
            from docmark.extractors.plugins import default_extractors

            for extractor, priority in default_extractors():
                if extractor.plugin_name.lower() not in self.disabled:
                    self.register(extractor, priority)

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register(self, extractor: Extractor, priority: Optional[float] = None) -> None:
        """
        Register an extractor. Re-registering a name replaces the old entry.

        Args:
            extractor: Extractor instance.
            priority: Lower is tried first. Defaults to the extractor's own
                      ``priority`` attribute, or PRIORITY_GENERIC_FORMAT.
        """
        if priority is None:
            priority = getattr(extractor, "priority", PRIORITY_GENERIC_FORMAT)
        self.unregister(extractor.plugin_name)
        self._registrations.append(ExtractorRegistration(extractor, float(priority), self._counter))
        self._counter += 1
        self._registrations.sort(key=lambda r: (r.priority, r.order))
        logger.debug(f"{DISPATCH} Registered '{extractor.plugin_name}' (priority={priority})")

    def unregister(self, plugin_name: str) -> bool:
        before = len(self._registrations)
        self._registrations = [r for r in self._registrations if r.name != plugin_name]
        return len(self._registrations) != before

    @property
    def extractors(self) -> List[Extractor]:
        """Extractors in dispatch order."""
        return [r.extractor for r in self._registrations]

    @property
    def registrations(self) -> List[ExtractorRegistration]:
        return list(self._registrations)

    def get(self, plugin_name: str) -> Optional[Extractor]:
        for registration in self._registrations:
            if registration.name == plugin_name:
                return registration.extractor
        return None

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def _accepting(
        self,
        stream: BinaryIO,
        descriptor: InputDescriptor,
        failures: List[Exception],
        cancel: Optional[CancellationToken] = None,
    ) -> Iterator[Extractor]:
        """Yield accepting extractors in priority order, recording predicate errors."""
        position = stream.tell()
        for extractor in self.extractors:
            if cancel is not None:
                cancel.raise_if_cancelled()
            stream.seek(position)
            try:
                if not extractor.accepts_metadata(descriptor):
                    continue
                if not extractor.accepts_content(stream, descriptor):
                    continue
            except ConversionCancelled:
                raise
            except Exception as e:
                logger.debug(f"{DISPATCH} '{extractor.plugin_name}' failed acceptance: {e}")
                failures.append(e)
                continue
            finally:
                stream.seek(position)
            yield extractor

    def select(
        self,
        stream: BinaryIO,
        descriptor: InputDescriptor,
        cancel: Optional[CancellationToken] = None,
    ) -> Extractor:
        """
        Return the first extractor that accepts the input.

        Raises:
            UnsupportedFormatError: No extractor accepted; carries every
                                    predicate failure.
        """
        failures: List[Exception] = []
        for extractor in self._accepting(stream, descriptor, failures, cancel):
            return extractor
        raise UnsupportedFormatError(f"No extractor accepts {descriptor.display_name}", failures)

    def extract(
        self,
        stream: BinaryIO,
        descriptor: InputDescriptor,
        context: ExtractionContext,
        fallback_on_failure: Optional[bool] = None,
    ) -> Tuple[Extractor, ExtractionResult]:
        """
        Dispatch and convert.

        Args:
            stream: Seekable input stream.
            descriptor: Input descriptor.
            context: Per-call resources.
            fallback_on_failure: Try the next accepting extractor when one
                                 fails. Defaults to the context config.

        Raises:
            UnsupportedFormatError: No extractor accepted the input.
            ConversionError: The chosen extractor failed (or all of them, with
                             fallback); names the extractor, keeps the cause.
            ResourceError: Workspace persistence failed.
            ConversionCancelled: The context's token was cancelled.
        """
        if fallback_on_failure is None:
            fallback_on_failure = context.config.fallback_on_failure

        start = stream.tell()
        predicate_failures: List[Exception] = []
        conversion_failures: List[ConversionError] = []

        for extractor in self._accepting(stream, descriptor, predicate_failures, context.cancel):
            name = extractor.plugin_name
            logger.debug(f"{DISPATCH} {descriptor.display_name} -> '{name}'")
            stream.seek(start)
            try:
                result = extractor.convert(stream, descriptor, context)
            except (ConversionCancelled, ResourceError):
                raise
            except ConversionError as e:
                if e.extractor is None:
                    e.extractor = name
                if not fallback_on_failure:
                    raise
                conversion_failures.append(e)
                continue
            except Exception as e:
                error = ConversionError(f"Extractor '{name}' failed: {e}", extractor=name, cause=e)
                if not fallback_on_failure:
                    raise error from e
                error.__cause__ = e
                conversion_failures.append(error)
                logger.warning(f"{DISPATCH} '{name}' failed on {descriptor.display_name}, trying next: {e}")
                continue
            return extractor, result

        if conversion_failures:
            names = ", ".join(f"'{f.extractor}'" for f in conversion_failures)
            last = conversion_failures[-1]
            details = "; ".join(str(f) for f in conversion_failures)
            message = f"All accepting extractors failed for {descriptor.display_name} ({names}): {details}"
            if predicate_failures:
                checks = "; ".join(f"{type(e).__name__}: {e}" for e in predicate_failures)
                message += f" (acceptance check errors: {checks})"
            raise ConversionError(
                message,
                extractor=last.extractor,
                cause=last.cause,
                failures=[*predicate_failures, *conversion_failures],
            ) from last

        raise UnsupportedFormatError(
            f"No extractor accepts {descriptor.display_name}", predicate_failures
        )

    def __repr__(self) -> str:
        names = [f"{r.name}({r.priority:g})" for r in self._registrations]
        return f"ExtractorRegistry({names})"


__all__ = [
    "PRIORITY_SPECIFIC_FORMAT",
    "PRIORITY_GENERIC_FORMAT",
    "ExtractorRegistration",
    "ExtractorRegistry",
]
