"""In-memory data providers for testing."""

from collections.abc import Set

from medtopics.interfaces.provider import DataProviderInterface
from medtopics.models.provider import RawTopicData


class StaticProvider(DataProviderInterface):
    """Provider serving a fixed catalogue of topic texts.

    Names are matched case-insensitively. Every call is recorded so
    tests can assert on exclusion sets and fetch fallbacks.
    """

    def __init__(
        self,
        source_name: str = "TestSource",
        topics: dict[str, str] | None = None,
        *,
        groups: dict[str, list[str]] | None = None,
        content_hashes: dict[str, str] | None = None,
        extra_known: set[str] | None = None,
    ) -> None:
        self._source_name = source_name
        self.topics = dict(topics or {})
        self.groups = dict(groups or {})
        self.content_hashes = dict(content_hashes or {})
        self.extra_known = set(extra_known or set())

        self.fail_discover = False
        self.fail_fetch = False
        self.fail_known_names = False

        self.discover_calls: list[set[str]] = []
        self.fetch_calls: list[str] = []

    @property
    def source_name(self) -> str:
        return self._source_name

    def _lookup(self, name: str) -> str | None:
        for known in self.topics:
            if known.lower() == name.lower():
                return known
        return None

    def _data(self, name: str) -> RawTopicData:
        return RawTopicData(
            topic_name=name,
            raw_text=self.topics[name],
            source_name=self._source_name,
            groups=self.groups.get(name, []),
            content_hash=self.content_hashes.get(name),
        )

    async def discover(self, exclude: Set[str]) -> list[RawTopicData]:
        self.discover_calls.append(set(exclude))
        if self.fail_discover:
            raise ConnectionError(f"{self._source_name} discovery unavailable")
        return [self._data(name) for name in self.topics if name.lower() not in exclude]

    async def fetch(self, name: str) -> RawTopicData | None:
        self.fetch_calls.append(name)
        if self.fail_fetch:
            raise ConnectionError(f"{self._source_name} fetch unavailable")
        known = self._lookup(name)
        return self._data(known) if known is not None else None

    async def known_names(self) -> set[str]:
        if self.fail_known_names:
            raise ConnectionError(f"{self._source_name} catalogue unavailable")
        return set(self.topics) | self.extra_known
