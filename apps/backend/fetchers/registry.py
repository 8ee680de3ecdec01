"""
Static registry: SourceType -> (fetcher class, processor class).

Every SourceType member must have an entry; the check runs at import so a new
source type cannot ship without its fetcher/processor pair.
"""
import logging
from typing import Dict, NamedTuple, Type, Union

from fetchers.ashby import AshbyFetcher
from fetchers.base import JobFetcher, SourceType
from fetchers.greenhouse import GreenhouseFetcher
from fetchers.lever import LeverFetcher
from processors.ashby import AshbyProcessor
from processors.base import JobProcessor
from processors.greenhouse import GreenhouseProcessor
from processors.lever import LeverProcessor

logger = logging.getLogger(__name__)


class SourceHandlers(NamedTuple):
    fetcher: Type[JobFetcher]
    processor: Type[JobProcessor]


SOURCE_HANDLERS: Dict[SourceType, SourceHandlers] = {
    SourceType.GREENHOUSE: SourceHandlers(GreenhouseFetcher, GreenhouseProcessor),
    SourceType.ASHBY: SourceHandlers(AshbyFetcher, AshbyProcessor),
    SourceType.LEVER: SourceHandlers(LeverFetcher, LeverProcessor),
}


def _check_complete():
    missing = [t.value for t in SourceType if t not in SOURCE_HANDLERS]
    if missing:
        raise RuntimeError(f"No fetcher/processor registered for source types: {', '.join(missing)}")


_check_complete()


def get_handlers(source_type: Union[SourceType, str]) -> SourceHandlers:
    """
    Look up the handler pair for a source type.

    Raises:
        ValueError: if source_type is not a known SourceType value
    """
    return SOURCE_HANDLERS[SourceType(source_type)]
